import numpy as np
from .base_sink import BaseSink


class NullSink(BaseSink):
    """A sink that discards rendered frames. Used when no output is attached."""

    def write(self, frame: np.ndarray) -> None:
        return

    def close(self) -> None:
        return
