"""chunkscribe capture client: segment encoder, delivery queue, transcript."""
