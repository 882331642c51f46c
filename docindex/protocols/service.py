"""
Document Index Service Protocol Definition

The operation surface a host application consumes. All methods are
synchronous and blocking.

Exception contract:
- IndexNotFound (FileNotFoundError): Operating on an unregistered index
- IndexAlreadyExists (FileExistsError): Creating an index that is registered
- ValueError: Invalid index name or limit
- QuerySyntaxError (ValueError): Malformed keyword query
- StorageError (OSError): I/O failure on index storage
- EngineError (RuntimeError): Other text search engine failure
- CloseAllError: Aggregated failures from close_all
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from docindex.models import Document, IndexInfo  # noqa: F401


__all__ = ["DocIndexProtocol"]


@runtime_checkable
class DocIndexProtocol(Protocol):
    """Protocol for multi-index document stores."""

    def new_index(self, name):
        # type: (str) -> None
        """
        Create a new empty named index with its own storage and engine handle.

        :raises IndexAlreadyExists: If the name is already registered
        """
        ...

    def close(self, name):
        # type: (str) -> None
        """
        Close an index and permanently delete its storage.

        :raises IndexNotFound: If the name is not registered
        """
        ...

    def close_all(self):
        # type: () -> None
        """
        Close every registered index, continuing past failures.

        :raises CloseAllError: After all attempts, if any close failed
        """
        ...

    def add_doc(self, index_name, doc_name, content):
        # type: (str, str, str) -> None
        """Insert a document record without checking for an existing one."""
        ...

    def save_doc(self, index_name, doc_name, content):
        # type: (str, str, str) -> None
        """Insert or replace the document with this name."""
        ...

    def del_doc(self, index_name, doc_name):
        # type: (str, str) -> int
        """Delete every record with this name. Deleting a missing name is a no-op."""
        ...

    def search_doc(self, index_name, keywords, limit=None):
        # type: (str, str, int|None) -> list[Document]
        """Return the top ranked documents matching keywords over name and content."""
        ...

    def all_docs(self, index_name):
        # type: (str) -> list[Document]
        """Return every live document of the index, unordered."""
        ...

    def list_indexes(self):
        # type: () -> list[IndexInfo]
        """List registered indexes with metadata."""
        ...

    def get_index(self, name):
        # type: (str) -> IndexInfo
        """Get metadata of one registered index."""
        ...
