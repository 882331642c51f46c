"""Embeddable multi-index document store with pluggable text search engines."""

from importlib import metadata

__package_name__ = "docindex"
__version__ = metadata.version(__package_name__)

from docindex.settings import DocIndexSettings, docindex_settings, get_service  # noqa: E402
from docindex.models import Document, IndexInfo  # noqa: E402
from docindex.service import DocIndexService  # noqa: E402

__all__ = ["DocIndexService", "Document", "IndexInfo", "DocIndexSettings", "docindex_settings", "get_service"]
