"""Editor-side helpers: document addressing, statement extraction and error positions."""
