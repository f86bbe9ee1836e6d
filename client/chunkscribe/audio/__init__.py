"""Audio capture and segment encoding."""
