"""Background batch processing."""
