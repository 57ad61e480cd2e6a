"""HTTP API for Query Console."""
