"""Text search engine adapters implementing docindex.protocols.engine."""
