"""
Text Search Engine Protocol Definition

Defines the interface docindex requires from a text search engine. The engine
owns tokenization, inverted index construction, relevance scoring and query
parsing. docindex only drives it through these four roles:

- TextSearchEngine: opens or creates storage at a path
- EngineHandle: an open engine instance bound to one storage location
- WriterTxn: a write transaction (add, delete-by-term, commit)
- ReadSnapshot: a read-only view fixed at open time (query, full iteration)

Field mappings exchanged with the engine use the keys index_name, id, name and
content (see docindex.models).

Exception contract for implementations:
- QuerySyntaxError: Malformed query string
- StorageError: I/O failure on the storage location
- EngineError: Any other engine failure, including use after close
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence  # noqa: F401
    from pathlib import Path  # noqa: F401


__all__ = ["TextSearchEngine", "EngineHandle", "WriterTxn", "ReadSnapshot"]


@runtime_checkable
class WriterTxn(Protocol):
    """
    Write transaction on one engine handle.

    Only one writer may be active per handle at a time. Changes become visible
    to new snapshots only after commit_and_close(). Used as a context manager,
    a writer that exits with an exception is rolled back.
    """

    def add_document(self, fields):
        # type: (dict[str, str]) -> None
        """
        Stage a new document record.

        :param fields: Mapping with index_name, id, name and content
        """
        ...

    def delete_by_term(self, field, value):
        # type: (str, str) -> int
        """
        Stage deletion of every record whose field equals value exactly.

        :param field: Field name (not analyzed)
        :param value: Exact value to match
        :return: Number of records deleted
        """
        ...

    def commit_and_close(self):
        # type: () -> None
        """
        Commit staged changes and release the writer.

        On failure the writer must be rolled back and released before the
        error propagates.
        """
        ...

    def rollback_and_close(self):
        # type: () -> None
        """Discard staged changes and release the writer. Idempotent."""
        ...

    def __enter__(self):
        # type: () -> WriterTxn
        ...

    def __exit__(self, exc_type, exc_value, traceback):
        # type: (...) -> None
        ...


@runtime_checkable
class ReadSnapshot(Protocol):
    """Read-only view of an index, consistent as of the moment it was opened."""

    def search(self, query, fields, limit):
        # type: (str, Sequence[str], int) -> list[tuple[dict[str, str], float]]
        """
        Run a keyword query over the given analyzed fields.

        :param query: Query string in the engine's query syntax
        :param fields: Analyzed field names the query applies to
        :param limit: Maximum number of hits
        :return: (fields, score) pairs in descending relevance order
        :raises QuerySyntaxError: If the query cannot be parsed
        """
        ...

    def iterate_all(self):
        # type: () -> Iterator[dict[str, str]]
        """Yield every live document record in engine-internal order."""
        ...

    def count(self):
        # type: () -> int
        """Return the number of live document records."""
        ...

    def close(self):
        # type: () -> None
        """Release the snapshot. Idempotent."""
        ...

    def __enter__(self):
        # type: () -> ReadSnapshot
        ...

    def __exit__(self, exc_type, exc_value, traceback):
        # type: (...) -> None
        ...


@runtime_checkable
class EngineHandle(Protocol):
    """An open engine instance bound to one storage location."""

    path: "Path"

    def writer(self):
        # type: () -> WriterTxn
        """Begin a write transaction, blocking while another writer is active."""
        ...

    def reader(self):
        # type: () -> ReadSnapshot
        """Open a read snapshot."""
        ...

    def close(self):
        # type: () -> None
        """Release the engine instance. Further writer()/reader() calls raise EngineError."""
        ...


@runtime_checkable
class TextSearchEngine(Protocol):
    """Factory for engine handles."""

    name: str

    def open_or_create(self, path):
        # type: (Path) -> EngineHandle
        """
        Open the index stored at path, creating it if missing.

        :param path: Existing directory owned by the index
        :return: Open engine handle
        :raises StorageError: If the storage cannot be opened or initialized
        """
        ...
