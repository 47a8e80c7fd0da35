"""State read models for the Studio rundown player."""
