"""
Document index service - the operation surface for host applications.

Composes an IndexRegistry, DocumentOps and QueryFacade around one text search
engine. Each service owns its registry; two services never share indexes.

Example:
    with DocIndexService() as service:
        service.new_index("notes")
        service.save_doc("notes", "todo", "buy milk")
        hits = service.search_doc("notes", "milk")
"""

from typing import TYPE_CHECKING
from docindex import storage
from docindex.documents import DocumentOps
from docindex.identity import get_hasher
from docindex.models import IndexInfo
from docindex.query import QueryFacade
from docindex.registry import IndexRegistry
from docindex.settings import docindex_settings, get_engine

if TYPE_CHECKING:
    from collections.abc import Callable  # noqa: F401
    from docindex.models import Document  # noqa: F401
    from docindex.protocols.engine import TextSearchEngine  # noqa: F401
    from docindex.settings import DocIndexSettings  # noqa: F401


__all__ = ["DocIndexService"]


class DocIndexService:
    """
    Multi-index document store implementing DocIndexProtocol.

    Indexes live until close()/close_all() or the end of the process. Use the
    service as a context manager to close every index on exit.
    """

    def __init__(self, engine=None, settings=None, hasher=None):
        # type: (TextSearchEngine|None, DocIndexSettings|None, Callable[[str], str]|None) -> None
        """
        Initialize DocIndexService.

        :param engine: Text search engine (built from settings if None)
        :param settings: Settings for defaults (module-level docindex_settings if None)
        :param hasher: Document id function (settings.hash_algorithm if None)
        """
        self.settings = settings or docindex_settings
        self.engine = engine or get_engine(self.settings)
        self.registry = IndexRegistry(self.engine, storage_root=self.settings.storage_root)
        self.documents = DocumentOps(self.registry, hasher=hasher or get_hasher(self.settings.hash_algorithm))
        self.query = QueryFacade(self.registry, limit=self.settings.search_limit)

    # Index lifecycle

    def new_index(self, name):
        # type: (str) -> None
        """
        Create a new empty index.

        :param name: Index name
        :raises ValueError: If name is invalid
        :raises IndexAlreadyExists: If name is already registered
        :raises StorageError: If storage cannot be allocated
        """
        self.registry.create(name)

    def close(self, name):
        # type: (str) -> None
        """
        Close an index and delete its storage. Irreversible.

        :param name: Index name
        :raises IndexNotFound: If name is not registered
        """
        self.registry.close(name)

    def close_all(self):
        # type: () -> None
        """
        Close every index, continuing past failures.

        Indexes whose close failed stay registered so the call can be retried.

        :raises CloseAllError: If any close failed
        """
        self.registry.close_all()

    def list_indexes(self):
        # type: () -> list[IndexInfo]
        """
        List registered indexes with metadata.

        :return: IndexInfo objects sorted by name
        """
        return [self.get_index(name) for name in self.registry.names()]

    def get_index(self, name):
        # type: (str) -> IndexInfo
        """
        Get index metadata by name.

        :param name: Index name
        :return: IndexInfo with document count and storage size in bytes
        :raises IndexNotFound: If name is not registered
        """
        handle = self.registry.get(name)
        return IndexInfo(
            name=name,
            documents=self.query.count_docs(name),
            size=storage.size_of(handle.path),
        )

    # Documents

    def add_doc(self, index_name, doc_name, content):
        # type: (str, str, str) -> None
        """Insert a document record (duplicates allowed). See DocumentOps.add_doc."""
        self.documents.add_doc(index_name, doc_name, content)

    def save_doc(self, index_name, doc_name, content):
        # type: (str, str, str) -> None
        """Insert or replace a document by name. See DocumentOps.save_doc."""
        self.documents.save_doc(index_name, doc_name, content)

    def del_doc(self, index_name, doc_name):
        # type: (str, str) -> int
        """Delete a document by name, returning the number of removed records."""
        return self.documents.del_doc(index_name, doc_name)

    # Queries

    def search_doc(self, index_name, keywords, limit=None):
        # type: (str, str, int|None) -> list[Document]
        """Ranked keyword search over name and content. See QueryFacade.search_doc."""
        return self.query.search_doc(index_name, keywords, limit)

    def all_docs(self, index_name):
        # type: (str) -> list[Document]
        """Every live document of an index, unordered."""
        return self.query.all_docs(index_name)

    def __enter__(self):
        # type: () -> DocIndexService
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        # type: (...) -> None
        self.close_all()
