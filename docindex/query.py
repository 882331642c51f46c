"""
Read side: keyword search and full dumps.

Every call opens a fresh engine snapshot and closes it before returning, so
results reflect committed writes only. Engine hit objects are mapped to
Document values.
"""

from contextlib import contextmanager
from typing import TYPE_CHECKING
from loguru import logger
from docindex.exceptions import EngineError, QuerySyntaxError
from docindex.models import SEARCH_FIELDS, Document

if TYPE_CHECKING:
    from collections.abc import Iterator  # noqa: F401
    from docindex.protocols.engine import ReadSnapshot  # noqa: F401
    from docindex.registry import IndexHandle, IndexRegistry  # noqa: F401


__all__ = ["QueryFacade", "DEFAULT_LIMIT"]


DEFAULT_LIMIT = 10


class QueryFacade:
    """Runs read-only queries against registered indexes."""

    def __init__(self, registry, limit=DEFAULT_LIMIT, fields=SEARCH_FIELDS):
        # type: (IndexRegistry, int, tuple[str, ...]) -> None
        """
        :param registry: Registry resolving index names to handles
        :param limit: Default maximum number of search hits
        :param fields: Analyzed fields keyword queries apply to
        """
        self.registry = registry
        self.limit = self._check_limit(limit)
        self.fields = tuple(fields)

    def search_doc(self, index_name, keywords, limit=None):
        # type: (str, str, int|None) -> list[Document]
        """
        Search name and content for keywords.

        :param index_name: Target index name
        :param keywords: Query in the engine's query syntax
        :param limit: Maximum number of hits (defaults to the facade limit)
        :return: Documents in descending relevance order, at most limit
        :raises IndexNotFound: If the index is not registered
        :raises QuerySyntaxError: If keywords is blank or malformed
        :raises ValueError: If limit is not a positive integer
        """
        limit = self.limit if limit is None else self._check_limit(limit)
        handle = self.registry.get(index_name)
        if not isinstance(keywords, str) or not keywords.strip():
            raise QuerySyntaxError("Keyword query must not be empty")

        with self._snapshot(handle) as snapshot:
            hits = snapshot.search(keywords, self.fields, limit)

        docs = [Document.from_fields(fields) for fields, _score in hits[:limit]]
        logger.debug(f"Search '{keywords}' in index '{index_name}' returned {len(docs)} hit(s)")
        return docs

    def all_docs(self, index_name):
        # type: (str) -> list[Document]
        """
        Return every live document of an index in engine order.

        :param index_name: Target index name
        :return: All documents (no ordering guarantee)
        :raises IndexNotFound: If the index is not registered
        """
        handle = self.registry.get(index_name)
        with self._snapshot(handle) as snapshot:
            return [Document.from_fields(fields) for fields in snapshot.iterate_all()]

    def count_docs(self, index_name):
        # type: (str) -> int
        """
        Return the number of live document records of an index.

        :raises IndexNotFound: If the index is not registered
        """
        handle = self.registry.get(index_name)
        with self._snapshot(handle) as snapshot:
            return snapshot.count()

    @staticmethod
    @contextmanager
    def _snapshot(handle):
        # type: (IndexHandle) -> Iterator[ReadSnapshot]
        """Open a read snapshot, reporting a close that raced the read as IndexNotFound."""
        try:
            with handle.reader() as snapshot:
                yield snapshot
        except EngineError:
            handle.check_usable()
            raise

    @staticmethod
    def _check_limit(limit):
        # type: (int) -> int
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValueError(f"Search limit must be a positive integer, got {limit!r}")
        return limit
