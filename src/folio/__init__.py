"""Folio: index and render front-matter Markdown articles."""
