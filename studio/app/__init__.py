"""Application wiring for the Studio rundown player."""
