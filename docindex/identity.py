"""
Document identity.

A document's id is a one-way hash of its name. The id never depends on the
content, so replacing a document by name always targets the same records.
"""

import hashlib
from typing import TYPE_CHECKING

import xxhash

if TYPE_CHECKING:
    from collections.abc import Callable  # noqa: F401


__all__ = ["HASHERS", "DEFAULT_ALGORITHM", "get_hasher", "doc_id"]


def _xxh3_128(name):
    # type: (str) -> str
    return xxhash.xxh3_128_hexdigest(name.encode("utf-8"))


def _xxh64(name):
    # type: (str) -> str
    return xxhash.xxh64_hexdigest(name.encode("utf-8"))


def _sha256(name):
    # type: (str) -> str
    return hashlib.sha256(name.encode("utf-8")).hexdigest()


HASHERS = {
    "xxh3_128": _xxh3_128,
    "xxh64": _xxh64,
    "sha256": _sha256,
}

DEFAULT_ALGORITHM = "xxh3_128"


def get_hasher(algorithm=DEFAULT_ALGORITHM):
    # type: (str) -> Callable[[str], str]
    """
    Look up a document id function by algorithm name.

    :param algorithm: One of the keys of HASHERS
    :return: Callable mapping a document name to a fixed-length hex id
    :raises ValueError: If the algorithm is unknown
    """
    try:
        return HASHERS[algorithm]
    except KeyError:
        raise ValueError(f"Unknown hash algorithm: '{algorithm}'. Supported: {', '.join(sorted(HASHERS))}") from None


def doc_id(name, algorithm=DEFAULT_ALGORITHM):
    # type: (str, str) -> str
    """
    Derive the stable id of a document from its name.

    :param name: Document name
    :param algorithm: Hash algorithm name
    :return: Lowercase hex digest (32 chars for xxh3_128)
    """
    return get_hasher(algorithm)(name)
