"""
SQLite FTS5 Engine Package.

Exports:
- FtsEngine: Text search engine creating one FTS5 database per index directory
"""

from docindex.engines.fts.engine import FtsEngine, FtsHandle

__all__ = ["FtsEngine", "FtsHandle"]
