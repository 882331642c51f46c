"""Protocols for the text search engine collaborator and the service surface."""

from docindex.protocols.engine import EngineHandle, ReadSnapshot, TextSearchEngine, WriterTxn
from docindex.protocols.service import DocIndexProtocol

__all__ = ["TextSearchEngine", "EngineHandle", "WriterTxn", "ReadSnapshot", "DocIndexProtocol"]
