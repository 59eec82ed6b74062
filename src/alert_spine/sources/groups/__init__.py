"""Group directory sources."""
