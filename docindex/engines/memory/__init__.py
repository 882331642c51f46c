"""
In-memory Engine Package.

Exports:
- MemoryEngine: Non-persistent text search engine for tests and development
"""

from docindex.engines.memory.engine import MemoryEngine, MemoryHandle

__all__ = ["MemoryEngine", "MemoryHandle"]
