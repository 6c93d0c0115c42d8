"""Console presentation (rich)."""
