"""Query Console: statement-aware query editing sessions backed by DuckDB."""

__version__ = "0.1.0"
