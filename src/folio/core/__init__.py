"""Core pipeline: loading, parsing, indexing and rendering."""
