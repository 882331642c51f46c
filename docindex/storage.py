"""
Backing storage for indexes.

Every index owns a fresh directory, allocated under the configured storage
root (system temp directory by default). Removing an index removes its whole
directory. Nothing here survives the index's lifetime.
"""

import os
import shutil
import tempfile
from pathlib import Path
from loguru import logger
from docindex.exceptions import StorageError


__all__ = ["allocate", "remove", "size_of"]


def allocate(name, root=None):
    # type: (str, os.PathLike|None) -> Path
    """
    Create a new, empty, uniquely named storage directory for an index.

    :param name: Index name, used as directory prefix
    :param root: Parent directory (created if missing). System temp dir if None.
    :return: Path of the new directory
    :raises StorageError: If the directory cannot be created
    """
    try:
        if root is not None:
            Path(root).mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=f"{name}-", dir=root))
    except OSError as e:
        raise StorageError(f"Failed to allocate storage for index '{name}': {e}") from e
    logger.debug(f"Allocated storage for index '{name}' at {path}")
    return path


def remove(path):
    # type: (os.PathLike) -> None
    """
    Delete a storage directory and everything in it.

    Removing a path that no longer exists is not an error.

    :param path: Storage directory
    :raises StorageError: If the directory exists but cannot be removed
    """
    path = Path(path)
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise StorageError(f"Failed to remove storage at {path}: {e}") from e
    logger.debug(f"Removed storage at {path}")


def size_of(path):
    # type: (os.PathLike) -> int
    """
    Get the total size of all files below a storage directory.

    :param path: Storage directory
    :return: Size in bytes (0 if the directory is gone)
    """
    total = 0
    for root, _dirs, files in os.walk(path):
        for filename in files:
            try:
                total += os.path.getsize(os.path.join(root, filename))
            except OSError:
                # File vanished between listing and stat (e.g. WAL checkpoint)
                continue
    return total
