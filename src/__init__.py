"""chunkscribe server packages."""
