from abc import ABC, abstractmethod
import numpy as np


class BaseSink(ABC):
    """
    Abstract base class for channel output sinks.

    A playback device writes one rendered audio frame per video frame.
    """

    @abstractmethod
    def write(self, frame: np.ndarray) -> None:
        """
        Write a rendered frame to the sink.

        Args:
            frame: int16 PCM samples shaped (samples_per_frame, audio_channel_count)
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """
        Close the output sink and release resources.
        """
        ...
