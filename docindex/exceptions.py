"""
Error taxonomy for docindex.

Each error also derives from the builtin exception that the index protocols
already use for the same condition, so callers can catch either:

- IndexNotFound → FileNotFoundError
- IndexAlreadyExists → FileExistsError
- StorageError → OSError
- QuerySyntaxError → ValueError
- EngineError → RuntimeError
"""

__all__ = [
    "DocIndexError",
    "IndexNotFound",
    "IndexAlreadyExists",
    "StorageError",
    "QuerySyntaxError",
    "EngineError",
    "CloseAllError",
]


class DocIndexError(Exception):
    """Base class for all docindex errors."""


class IndexNotFound(DocIndexError, FileNotFoundError):
    """Raised when an operation names an index that is not registered."""

    def __init__(self, name):
        # type: (str) -> None
        self.name = name
        super().__init__(f"Index '{name}' not found")


class IndexAlreadyExists(DocIndexError, FileExistsError):
    """Raised when creating an index under a name that is already registered."""

    def __init__(self, name):
        # type: (str) -> None
        self.name = name
        super().__init__(f"Index '{name}' already exists")


class StorageError(DocIndexError, OSError):
    """I/O failure while creating, removing, writing or reading index storage."""


class QuerySyntaxError(DocIndexError, ValueError):
    """Raised when a keyword query cannot be parsed by the engine."""


class EngineError(DocIndexError, RuntimeError):
    """Opaque failure surfaced from the text search engine."""


class CloseAllError(DocIndexError):
    """
    Aggregated failures from closing several indexes.

    :ivar errors: Mapping of index name to the exception its close raised
    """

    def __init__(self, errors):
        # type: (dict[str, Exception]) -> None
        self.errors = dict(errors)
        details = "; ".join(f"{name}: {type(exc).__name__}: {exc}" for name, exc in self.errors.items())
        super().__init__(f"Failed to close {len(self.errors)} index(es): {details}")
