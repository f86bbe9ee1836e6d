"""Capture clients."""
