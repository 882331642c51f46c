"""
Index registry - owns the lifecycle of named indexes.

Each registered name maps to an IndexHandle: the index's storage directory
plus the open engine handle bound to it. The registry is an explicit object
owned by a service, not a module global.

Close policy: an entry leaves the registry only once both its engine handle is
closed and its storage is removed. When either step fails the entry stays
registered and close() may be retried. A retry skips the engine close when it
already succeeded.
"""

import re
import threading
from pathlib import Path
from typing import TYPE_CHECKING
from loguru import logger
from docindex import storage
from docindex.exceptions import CloseAllError, EngineError, IndexAlreadyExists, IndexNotFound

if TYPE_CHECKING:
    import os  # noqa: F401
    from docindex.protocols.engine import EngineHandle, ReadSnapshot, TextSearchEngine, WriterTxn  # noqa: F401


__all__ = ["IndexHandle", "IndexRegistry", "validate_index_name", "INDEX_NAME_PATTERN"]


# Validation pattern (names double as storage directory prefixes)
INDEX_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$")


def validate_index_name(name):
    # type: (str) -> None
    """
    Validate index name matches required pattern.

    Pattern: ^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$
    - Starts with a letter or digit
    - Followed by letters, digits, underscores, dots or hyphens
    - At most 64 characters

    :param name: Index name to validate
    :raises ValueError: If name doesn't match pattern
    """
    if not isinstance(name, str) or not INDEX_NAME_PATTERN.match(name):
        raise ValueError(
            f"Invalid index name: {name!r}. "
            f"Must match pattern ^[A-Za-z0-9][A-Za-z0-9_.-]{{0,63}}$ "
            f"(start with a letter or digit, then letters, digits, '_', '.' or '-')"
        )


class IndexHandle:
    """
    A registered index: name, storage location and open engine handle.

    The writer lock serializes write operations issued through this handle
    and lets close() wait for an in-flight write. It is reentrant so an upsert
    can hold it across its delete and add steps.
    """

    def __init__(self, name, path, engine_handle):
        # type: (str, Path, EngineHandle) -> None
        self.name = name
        self.path = Path(path)
        self.engine_handle = engine_handle
        self.engine_closed = False
        self.removed = False
        self.writer_lock = threading.RLock()

    def writer(self):
        # type: () -> WriterTxn
        """
        Begin a write transaction on the engine.

        :raises IndexNotFound: If the index was closed after this handle was looked up
        :raises EngineError: If the engine handle is already closed
        """
        self.check_usable()
        try:
            return self.engine_handle.writer()
        except EngineError:
            # A concurrent close() got in after the check above
            self.check_usable()
            raise

    def reader(self):
        # type: () -> ReadSnapshot
        """
        Open a read snapshot on the engine.

        Reads do not take the writer lock. If close() runs concurrently, the
        engine error is reported as IndexNotFound once the index is removed.

        :raises IndexNotFound: If the index was closed after this handle was looked up
        :raises EngineError: If the engine handle is already closed
        """
        self.check_usable()
        try:
            return self.engine_handle.reader()
        except EngineError:
            self.check_usable()
            raise

    def check_usable(self):
        # type: () -> None
        """
        :raises IndexNotFound: If the index has been closed and unregistered
        :raises EngineError: If the engine handle is closed but the index is still registered
        """
        if self.removed:
            raise IndexNotFound(self.name)
        if self.engine_closed:
            raise EngineError(f"Index '{self.name}' is closing, its engine handle is already closed")

    def __repr__(self):
        # type: () -> str
        return f"IndexHandle(name={self.name!r}, path={str(self.path)!r})"


class IndexRegistry:
    """
    Mapping of index name to IndexHandle with create and teardown semantics.

    Directory structure:
    storage_root/
    ├── <name>-<random>/    # one directory per live index, owned by the engine
    └── ...

    CONCURRENCY: Registry mutations are serialized by one lock. Lock order is
    registry lock, then a handle's writer lock. Document operations look up
    their handle first and never take the registry lock while holding a
    writer lock.
    """

    def __init__(self, engine, storage_root=None):
        # type: (TextSearchEngine, os.PathLike|None) -> None
        """
        Initialize IndexRegistry.

        :param engine: Text search engine used to open every index
        :param storage_root: Parent directory for index storage (system temp dir if None)
        """
        self.engine = engine
        self.storage_root = Path(storage_root) if storage_root is not None else None
        self._handles = {}  # type: dict[str, IndexHandle]
        self._lock = threading.RLock()

    def create(self, name):
        # type: (str) -> IndexHandle
        """
        Allocate storage, open an engine handle and register it under name.

        :param name: Index name
        :return: Registered IndexHandle
        :raises ValueError: If name is invalid
        :raises IndexAlreadyExists: If name is already registered
        :raises StorageError: If storage cannot be allocated or opened
        """
        validate_index_name(name)
        with self._lock:
            if name in self._handles:
                raise IndexAlreadyExists(name)

            path = storage.allocate(name, self.storage_root)
            try:
                engine_handle = self.engine.open_or_create(path)
            except Exception:
                # Engine never took ownership of the directory
                storage.remove(path)
                raise

            handle = IndexHandle(name, path, engine_handle)
            self._handles[name] = handle

        logger.info(f"Created index '{name}' at {path} ({self.engine.name} engine)")
        return handle

    def get(self, name):
        # type: (str) -> IndexHandle
        """
        Get the handle registered under name.

        :param name: Index name
        :return: IndexHandle
        :raises IndexNotFound: If name is not registered
        """
        with self._lock:
            try:
                return self._handles[name]
            except KeyError:
                raise IndexNotFound(name) from None

    def close(self, name):
        # type: (str) -> None
        """
        Close the engine handle, delete the storage and unregister name.

        Storage removal is irreversible. If a step fails, the entry stays
        registered (see module docstring) and the error propagates.

        :param name: Index name
        :raises IndexNotFound: If name is not registered
        :raises StorageError: If the storage cannot be removed
        :raises EngineError: If the engine handle fails to close
        """
        with self._lock:
            handle = self.get(name)
            # Wait for an in-flight write on this index to finish
            with handle.writer_lock:
                if not handle.engine_closed:
                    handle.engine_handle.close()
                    handle.engine_closed = True
                storage.remove(handle.path)
                # Writers queued on the lock must see the removal once they get in
                del self._handles[name]
                handle.removed = True

        logger.info(f"Closed index '{name}' and removed {handle.path}")

    def close_all(self):
        # type: () -> None
        """
        Close every registered index, continuing past individual failures.

        The registry ends holding only the entries whose close failed.

        :raises CloseAllError: If at least one close failed
        """
        errors = {}  # type: dict[str, Exception]
        with self._lock:
            names = list(self._handles)
            for name in names:
                try:
                    self.close(name)
                except Exception as e:
                    logger.warning(f"Failed to close index '{name}': {type(e).__name__}: {e}")
                    errors[name] = e

        if errors:
            raise CloseAllError(errors)
        if names:
            logger.info(f"Closed {len(names)} index(es)")

    def names(self):
        # type: () -> list[str]
        """Return registered index names sorted alphabetically."""
        with self._lock:
            return sorted(self._handles)

    def __contains__(self, name):
        # type: (object) -> bool
        with self._lock:
            return name in self._handles

    def __len__(self):
        # type: () -> int
        with self._lock:
            return len(self._handles)
