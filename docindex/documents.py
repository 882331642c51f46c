"""
Document write operations: add, upsert and delete by name.

Documents are keyed by an id derived from their name (see docindex.identity),
never by their content.

save_doc is delete followed by add in two separate write transactions. If the
add fails after the delete committed, the document is gone. Indexes are not
durable, so this window is accepted rather than guarded.
"""

from typing import TYPE_CHECKING
from loguru import logger
from docindex.identity import get_hasher
from docindex.models import FIELD_ID, Document

if TYPE_CHECKING:
    from collections.abc import Callable  # noqa: F401
    from docindex.registry import IndexHandle, IndexRegistry  # noqa: F401


__all__ = ["DocumentOps"]


class DocumentOps:
    """Orchestrates document writes against the engine of a registered index."""

    def __init__(self, registry, hasher=None):
        # type: (IndexRegistry, Callable[[str], str]|None) -> None
        """
        :param registry: Registry resolving index names to handles
        :param hasher: Function deriving a document id from a name (xxh3_128 if None)
        """
        self.registry = registry
        self.hasher = hasher or get_hasher()

    def add_doc(self, index_name, doc_name, content):
        # type: (str, str, str) -> Document
        """
        Insert a document record.

        Does not look for an existing record with the same name: adding a
        name twice stores two records sharing one id.

        :param index_name: Target index name
        :param doc_name: Document name
        :param content: Document text
        :return: The stored document
        :raises IndexNotFound: If the index is not registered
        :raises StorageError: If the write fails (nothing is committed)
        """
        handle = self.registry.get(index_name)
        doc = self._document(index_name, doc_name, content)
        with handle.writer_lock:
            self._add(handle, doc)
        logger.debug(f"Added document '{doc_name}' ({doc.id}) to index '{index_name}'")
        return doc

    def save_doc(self, index_name, doc_name, content):
        # type: (str, str, str) -> Document
        """
        Insert or replace the document with this name.

        Afterwards the index holds exactly one record for the name, with the
        given content. Not atomic (see module docstring).

        :param index_name: Target index name
        :param doc_name: Document name
        :param content: New document text
        :return: The stored document
        :raises IndexNotFound: If the index is not registered
        """
        handle = self.registry.get(index_name)
        doc = self._document(index_name, doc_name, content)
        # Both steps run under the writer lock only; the registry lock is never taken inside it
        with handle.writer_lock:
            removed = self._delete(handle, doc.id)
            self._add(handle, doc)
        logger.debug(f"Saved document '{doc_name}' in index '{index_name}' (replaced {removed})")
        return doc

    def del_doc(self, index_name, doc_name):
        # type: (str, str) -> int
        """
        Delete every record whose id matches the document name.

        Deleting a name without records is a no-op.

        :param index_name: Target index name
        :param doc_name: Document name
        :return: Number of deleted records
        :raises IndexNotFound: If the index is not registered
        """
        handle = self.registry.get(index_name)
        with handle.writer_lock:
            removed = self._delete(handle, self.hasher(doc_name))
        logger.debug(f"Deleted {removed} record(s) of document '{doc_name}' from index '{index_name}'")
        return removed

    def _document(self, index_name, doc_name, content):
        # type: (str, str, str) -> Document
        return Document(index_name=index_name, id=self.hasher(doc_name), name=doc_name, content=content)

    @staticmethod
    def _add(handle, doc):
        # type: (IndexHandle, Document) -> None
        """Write one record in its own transaction. Caller holds handle.writer_lock."""
        with handle.writer() as txn:
            txn.add_document(doc.to_fields())

    @staticmethod
    def _delete(handle, id_):
        # type: (IndexHandle, str) -> int
        """Delete all records with id_ in one transaction. Caller holds handle.writer_lock."""
        with handle.writer() as txn:
            return txn.delete_by_term(FIELD_ID, id_)
