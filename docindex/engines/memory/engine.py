"""
In-memory text search engine for testing and development.

Keeps document records in a dictionary per storage path. Nothing is written
to disk. Analysis is a lowercase word tokenizer; queries are whitespace
separated terms or double-quoted phrases which must all match (implicit AND).
Scores count term and phrase occurrences.

Writers stage changes on a copy of the record table and publish it on
commit. Snapshots keep a reference to the table that was current when they
were opened, so they never observe a partial write.
"""

import re
import threading
from pathlib import Path
from typing import TYPE_CHECKING
from docindex.exceptions import EngineError, QuerySyntaxError
from docindex.models import FIELD_CONTENT, FIELD_ID, FIELD_INDEX, FIELD_NAME, SEARCH_FIELDS

if TYPE_CHECKING:
    import os  # noqa: F401
    from collections.abc import Iterator, Sequence  # noqa: F401


__all__ = ["MemoryEngine", "MemoryHandle", "tokenize", "parse_query"]


REQUIRED_FIELDS = (FIELD_INDEX, FIELD_ID, FIELD_NAME, FIELD_CONTENT)

_TOKEN = re.compile(r"\w+", re.UNICODE)


def tokenize(text):
    # type: (str) -> list[str]
    """Split text into lowercase word tokens."""
    return [token.lower() for token in _TOKEN.findall(text)]


def parse_query(query):
    # type: (str) -> list[tuple[str, ...]]
    """
    Parse a query into phrases.

    A bare word is a one-token phrase. Text in double quotes is a multi-token
    phrase.

    :param query: Query string
    :return: List of token tuples, all of which must match
    :raises QuerySyntaxError: On unbalanced quotes or a query without tokens
    """
    if query.count('"') % 2:
        raise QuerySyntaxError(f"Invalid query '{query}': unterminated phrase")
    phrases = []
    for i, part in enumerate(query.split('"')):
        if i % 2:
            tokens = tokenize(part)
            if tokens:
                phrases.append(tuple(tokens))
        else:
            phrases.extend((token,) for token in tokenize(part))
    if not phrases:
        raise QuerySyntaxError(f"Invalid query '{query}': no search terms")
    return phrases


def _occurrences(phrase, tokens):
    # type: (tuple[str, ...], list[str]) -> int
    size = len(phrase)
    return sum(1 for i in range(len(tokens) - size + 1) if tuple(tokens[i : i + size]) == phrase)


class MemoryWriter:
    """Write transaction staging changes on a private copy of the record table."""

    def __init__(self, handle):
        # type: (MemoryHandle) -> None
        self._handle = handle
        self._records = dict(handle._records)
        self._next_seq = handle._next_seq
        self._closed = False

    def add_document(self, fields):
        # type: (dict[str, str]) -> None
        self._check_open()
        missing = [field for field in REQUIRED_FIELDS if field not in fields]
        if missing:
            raise EngineError(f"Document is missing fields {missing}")
        self._records[self._next_seq] = {field: fields[field] for field in REQUIRED_FIELDS}
        self._next_seq += 1

    def delete_by_term(self, field, value):
        # type: (str, str) -> int
        self._check_open()
        if field not in REQUIRED_FIELDS:
            raise EngineError(f"Unknown field '{field}'")
        doomed = [seq for seq, record in self._records.items() if record[field] == value]
        for seq in doomed:
            del self._records[seq]
        return len(doomed)

    def commit_and_close(self):
        # type: () -> None
        self._check_open()
        self._handle._publish(self._records, self._next_seq)
        self._release()

    def rollback_and_close(self):
        # type: () -> None
        if not self._closed:
            self._release()

    def _release(self):
        # type: () -> None
        self._closed = True
        self._records = {}
        self._handle._write_lock.release()

    def _check_open(self):
        # type: () -> None
        if self._closed:
            raise EngineError("Writer is closed")

    def __enter__(self):
        # type: () -> MemoryWriter
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        # type: (...) -> None
        if exc_type is not None:
            self.rollback_and_close()
        elif not self._closed:
            self.commit_and_close()


class MemorySnapshot:
    """Read snapshot over the record table current at open time."""

    def __init__(self, records):
        # type: (dict[int, dict[str, str]]) -> None
        self._records = records
        self._closed = False

    def search(self, query, fields=SEARCH_FIELDS, limit=10):
        # type: (str, Sequence[str], int) -> list[tuple[dict[str, str], float]]
        self._check_open()
        if not fields or any(field not in SEARCH_FIELDS for field in fields):
            raise EngineError(f"Fields {list(fields)} are not searchable, expected a subset of {list(SEARCH_FIELDS)}")
        phrases = parse_query(query or "")
        hits = []
        for seq, record in self._records.items():
            field_tokens = [tokenize(record[field]) for field in fields]
            score = 0
            for phrase in phrases:
                found = sum(_occurrences(phrase, tokens) for tokens in field_tokens)
                if not found:
                    break
                score += found
            else:
                hits.append((-score, seq, record))
        hits.sort(key=lambda hit: (hit[0], hit[1]))
        return [(dict(record), float(-neg_score)) for neg_score, _seq, record in hits[:limit]]

    def iterate_all(self):
        # type: () -> Iterator[dict[str, str]]
        self._check_open()
        for record in self._records.values():
            yield dict(record)

    def count(self):
        # type: () -> int
        self._check_open()
        return len(self._records)

    def close(self):
        # type: () -> None
        self._closed = True

    def _check_open(self):
        # type: () -> None
        if self._closed:
            raise EngineError("Snapshot is closed")

    def __enter__(self):
        # type: () -> MemorySnapshot
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        # type: (...) -> None
        self.close()


class MemoryHandle:
    """In-memory index bound to a storage path (the path itself stays empty)."""

    def __init__(self, path):
        # type: (os.PathLike) -> None
        self.path = Path(path)
        self._records = {}  # type: dict[int, dict[str, str]]
        self._next_seq = 0
        self._write_lock = threading.Lock()
        self._closed = False

    def writer(self):
        # type: () -> MemoryWriter
        self._check_open()
        self._write_lock.acquire()
        try:
            self._check_open()
        except EngineError:
            self._write_lock.release()
            raise
        return MemoryWriter(self)

    def reader(self):
        # type: () -> MemorySnapshot
        self._check_open()
        return MemorySnapshot(self._records)

    def close(self):
        # type: () -> None
        self._closed = True

    @property
    def closed(self):
        # type: () -> bool
        return self._closed

    def _publish(self, records, next_seq):
        # type: (dict[int, dict[str, str]], int) -> None
        # Swap in a new table; open snapshots keep the old one
        self._records = records
        self._next_seq = next_seq

    def _check_open(self):
        # type: () -> None
        if self._closed:
            raise EngineError(f"Index handle for {self.path} is closed")


class MemoryEngine:
    """Text search engine keeping every index in process memory."""

    name = "memory"

    def open_or_create(self, path):
        # type: (os.PathLike) -> MemoryHandle
        """
        Create a new, empty in-memory index bound to path.

        :param path: Storage directory owned by the index (left untouched)
        :return: Open MemoryHandle
        """
        return MemoryHandle(path)
