"""Lattice static site generator.

This package turns a directory of content files (front matter plus a markup
body) into an immutable site graph of pages, sections, taxonomies and
paginated listings, and renders that graph through Jinja2 templates.

The same render orchestrator backs both entry points:
- ``lattice build`` writes every route to the output directory.
- ``lattice serve`` rebuilds the graph per request and renders on demand.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
