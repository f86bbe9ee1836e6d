"""In-memory session state."""
