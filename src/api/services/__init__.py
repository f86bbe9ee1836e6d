"""Gateway services (providers, transcoding, rate limiting)."""
