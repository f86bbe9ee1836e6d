"""HTTP gateway: authentication, transcription and summary endpoints."""
