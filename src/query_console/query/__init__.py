"""Query engine client backed by DuckDB."""
