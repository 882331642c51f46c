"""
SQLite FTS5 text search engine.

Each index directory holds one SQLite database in WAL mode:

index_dir/
├── index.sqlite        # documents table + external-content FTS5 table
├── index.sqlite-wal
└── index.sqlite-shm

Document records live in a plain ``documents`` table (indexed on doc_id for
delete-by-term). A trigger-maintained FTS5 table analyzes name and content and
provides BM25 ranking. Keyword text is turned into an FTS5 query by
to_match() (docindex.engines.fts.query).

CONCURRENCY: One writer per handle (in-process lock plus BEGIN IMMEDIATE).
Readers use their own connection and a read transaction that is started at
open time, so they see a stable snapshot while writers commit.
"""

import sqlite3
import threading
import weakref
from pathlib import Path
from typing import TYPE_CHECKING
from loguru import logger
from docindex.exceptions import EngineError, QuerySyntaxError, StorageError
from docindex.engines.fts.query import to_match
from docindex.models import FIELD_CONTENT, FIELD_ID, FIELD_INDEX, FIELD_NAME, SEARCH_FIELDS

if TYPE_CHECKING:
    import os  # noqa: F401
    from collections.abc import Iterator, Sequence  # noqa: F401


__all__ = ["FtsEngine", "FtsHandle", "FtsWriter", "FtsSnapshot"]


DB_FILENAME = "index.sqlite"

# Document field name -> column of the documents table
COLUMNS = {
    FIELD_INDEX: "index_name",
    FIELD_ID: "doc_id",
    FIELD_NAME: "name",
    FIELD_CONTENT: "content",
}

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    seq INTEGER PRIMARY KEY,
    index_name TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    name TEXT NOT NULL,
    content TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS documents_doc_id ON documents(doc_id);
CREATE INDEX IF NOT EXISTS documents_name ON documents(name);
CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
    name,
    content,
    content='documents',
    content_rowid='seq',
    tokenize={tokenize}
);
CREATE TRIGGER IF NOT EXISTS documents_ai AFTER INSERT ON documents BEGIN
    INSERT INTO documents_fts(rowid, name, content) VALUES (new.seq, new.name, new.content);
END;
CREATE TRIGGER IF NOT EXISTS documents_ad AFTER DELETE ON documents BEGIN
    INSERT INTO documents_fts(documents_fts, rowid, name, content) VALUES ('delete', old.seq, old.name, old.content);
END;
"""

SEARCH_SQL = """
SELECT d.index_name, d.doc_id, d.name, d.content, hits.score
FROM (
    SELECT rowid AS seq, rank AS score FROM documents_fts
    WHERE documents_fts MATCH ?
    ORDER BY rank
    LIMIT ?
) AS hits
JOIN documents AS d ON d.seq = hits.seq
ORDER BY hits.score, d.seq
"""


def _quote(value):
    # type: (str) -> str
    """Quote a value as an SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def _is_query_error(error):
    # type: (sqlite3.Error) -> bool
    """Tell FTS5 query parse errors apart from storage failures."""
    message = str(error).lower()
    return (
        message.startswith("fts5:")
        or "unterminated string" in message
        or "no such column" in message
        or "unknown special query" in message
    )


def _translate(error, action):
    # type: (sqlite3.Error, str) -> Exception
    """
    Map a sqlite3 error onto the docindex error taxonomy.

    OperationalError covers I/O, locking and file access problems and maps to
    StorageError. Everything else is an opaque EngineError.
    """
    if isinstance(error, sqlite3.OperationalError):
        return StorageError(f"{action} failed: {error}")
    return EngineError(f"{action} failed: {type(error).__name__}: {error}")


def _row_fields(row):
    # type: (tuple) -> dict[str, str]
    return {FIELD_INDEX: row[0], FIELD_ID: row[1], FIELD_NAME: row[2], FIELD_CONTENT: row[3]}


class FtsWriter:
    """
    Write transaction on an FtsHandle.

    Holds the handle's writer lock from creation until commit_and_close() or
    rollback_and_close().
    """

    def __init__(self, handle, conn):
        # type: (FtsHandle, sqlite3.Connection) -> None
        self._handle = handle
        self._conn = conn
        self._closed = False

    def add_document(self, fields):
        # type: (dict[str, str]) -> None
        """
        Insert a document record.

        :param fields: Mapping with index_name, id, name and content
        :raises EngineError: If a field is missing or the writer is closed
        """
        self._check_open()
        try:
            values = tuple(fields[field] for field in COLUMNS)
        except KeyError as e:
            raise EngineError(f"Document is missing field {e}") from None
        try:
            self._conn.execute(
                "INSERT INTO documents (index_name, doc_id, name, content) VALUES (?, ?, ?, ?)",
                values,
            )
        except sqlite3.Error as e:
            raise _translate(e, "Adding document") from e

    def delete_by_term(self, field, value):
        # type: (str, str) -> int
        """
        Delete every record whose field equals value.

        :param field: Document field name
        :param value: Exact value to match
        :return: Number of deleted records
        :raises EngineError: If the field is unknown or the writer is closed
        """
        self._check_open()
        if field not in COLUMNS:
            raise EngineError(f"Unknown field '{field}'")
        try:
            cursor = self._conn.execute(f"DELETE FROM documents WHERE {COLUMNS[field]} = ?", (value,))
        except sqlite3.Error as e:
            raise _translate(e, "Deleting documents") from e
        return cursor.rowcount

    def commit_and_close(self):
        # type: () -> None
        """
        Commit and release the writer.

        :raises StorageError: If the commit fails (the writer is rolled back first)
        """
        self._check_open()
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            self.rollback_and_close()
            raise _translate(e, "Commit") from e
        self._release()

    def rollback_and_close(self):
        # type: () -> None
        """Discard staged changes and release the writer. Safe to call multiple times."""
        if self._closed:
            return
        try:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.warning(f"Rollback failed on {self._handle.db_path}: {e}")
        self._release()

    def _release(self):
        # type: () -> None
        self._closed = True
        try:
            self._conn.close()
        finally:
            self._handle._release_writer(self)

    def _check_open(self):
        # type: () -> None
        if self._closed:
            raise EngineError("Writer is closed")

    def __enter__(self):
        # type: () -> FtsWriter
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        # type: (...) -> None
        if exc_type is not None:
            self.rollback_and_close()
        elif not self._closed:
            self.commit_and_close()


class FtsSnapshot:
    """Read snapshot backed by a dedicated connection holding an open read transaction."""

    def __init__(self, handle, conn):
        # type: (FtsHandle, sqlite3.Connection) -> None
        self._handle = handle
        self._conn = conn
        self._closed = False

    def search(self, query, fields=SEARCH_FIELDS, limit=10):
        # type: (str, Sequence[str], int) -> list[tuple[dict[str, str], float]]
        """
        Run a keyword query restricted to the given analyzed fields.

        :param query: Keyword text (see docindex.engines.fts.query for the accepted FTS5 syntax)
        :param fields: Analyzed field names (name, content)
        :param limit: Maximum number of hits
        :return: (fields, score) pairs, best first. Higher scores are better.
        :raises QuerySyntaxError: If FTS5 rejects the query
        """
        self._check_open()
        if not query or not query.strip():
            raise QuerySyntaxError("Empty query")
        unknown = [field for field in fields if field not in SEARCH_FIELDS]
        if unknown or not fields:
            raise EngineError(f"Fields {list(fields)} are not searchable, expected a subset of {list(SEARCH_FIELDS)}")
        match = to_match(query)
        if set(fields) != set(SEARCH_FIELDS):
            match = "{" + " ".join(fields) + "} : (" + match + ")"
        try:
            rows = self._conn.execute(SEARCH_SQL, (match, limit)).fetchall()
        except sqlite3.OperationalError as e:
            if _is_query_error(e):
                raise QuerySyntaxError(f"Invalid query '{query}': {e}") from e
            raise _translate(e, "Search") from e
        except sqlite3.Error as e:
            raise _translate(e, "Search") from e
        # FTS5 rank is bm25() which is negative, lower is better
        return [(_row_fields(row), -row[4]) for row in rows]

    def iterate_all(self):
        # type: () -> Iterator[dict[str, str]]
        """Yield every live record in storage order."""
        self._check_open()
        try:
            cursor = self._conn.execute("SELECT index_name, doc_id, name, content FROM documents")
            for row in cursor:
                yield _row_fields(row)
        except sqlite3.Error as e:
            raise _translate(e, "Reading documents") from e

    def count(self):
        # type: () -> int
        """Return the number of live records."""
        self._check_open()
        try:
            return self._conn.execute("SELECT count(*) FROM documents").fetchone()[0]
        except sqlite3.Error as e:
            raise _translate(e, "Counting documents") from e

    def close(self):
        # type: () -> None
        """End the read transaction and close the connection. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.warning(f"Ending read transaction failed on {self._handle.db_path}: {e}")
        finally:
            self._conn.close()
            self._handle._release_reader(self)

    def _check_open(self):
        # type: () -> None
        if self._closed:
            raise EngineError("Snapshot is closed")

    def __enter__(self):
        # type: () -> FtsSnapshot
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        # type: (...) -> None
        self.close()


class FtsHandle:
    """
    Open FTS5 index bound to one storage directory.

    Connections are opened per transaction. The handle tracks live writers and
    snapshots so close() can release them.
    """

    def __init__(self, path, tokenizer="unicode61", busy_timeout=5.0):
        # type: (os.PathLike, str, float) -> None
        """
        Open or create the database below path.

        :param path: Existing storage directory
        :param tokenizer: FTS5 tokenizer spec used when the table is created
        :param busy_timeout: Seconds to wait on a locked database
        :raises StorageError: If the database cannot be opened or initialized
        """
        self.path = Path(path)
        self.db_path = self.path / DB_FILENAME
        self.tokenizer = tokenizer
        self.busy_timeout = busy_timeout
        self._closed = False
        self._write_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._writers = weakref.WeakSet()  # type: weakref.WeakSet[FtsWriter]
        self._readers = weakref.WeakSet()  # type: weakref.WeakSet[FtsSnapshot]
        self._initialize()

    def _initialize(self):
        # type: () -> None
        if not self.path.is_dir():
            raise StorageError(f"Storage directory {self.path} does not exist")
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise _translate(e, f"Opening {self.db_path}") from e
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA.format(tokenize=_quote(self.tokenizer)))
        except sqlite3.Error as e:
            raise StorageError(f"Initializing {self.db_path} failed: {e}") from e
        finally:
            conn.close()
        logger.debug(f"Opened FTS5 index at {self.db_path} (tokenizer={self.tokenizer!r})")

    def _connect(self):
        # type: () -> sqlite3.Connection
        return sqlite3.connect(
            self.db_path,
            timeout=self.busy_timeout,
            isolation_level=None,
            check_same_thread=False,
        )

    def writer(self):
        # type: () -> FtsWriter
        """
        Begin a write transaction.

        Blocks while another writer on this handle is active.

        :return: Open FtsWriter
        :raises EngineError: If the handle is closed
        :raises StorageError: If the transaction cannot be started
        """
        self._check_open()
        self._write_lock.acquire()
        conn = None
        try:
            # Handle may have been closed while waiting for the lock
            self._check_open()
            conn = self._connect()
            conn.execute("BEGIN IMMEDIATE")
        except BaseException as e:
            if conn is not None:
                conn.close()
            self._write_lock.release()
            if isinstance(e, sqlite3.Error):
                raise _translate(e, "Starting write transaction") from e
            raise
        txn = FtsWriter(self, conn)
        with self._state_lock:
            self._writers.add(txn)
        return txn

    def reader(self):
        # type: () -> FtsSnapshot
        """
        Open a read snapshot.

        :return: Open FtsSnapshot
        :raises EngineError: If the handle is closed
        :raises StorageError: If the read transaction cannot be started
        """
        self._check_open()
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise _translate(e, "Opening read snapshot") from e
        try:
            conn.execute("BEGIN")
            # The snapshot is taken by the first read inside the transaction
            conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
        except sqlite3.Error as e:
            conn.close()
            raise _translate(e, "Opening read snapshot") from e
        snapshot = FtsSnapshot(self, conn)
        with self._state_lock:
            self._readers.add(snapshot)
        return snapshot

    def close(self):
        # type: () -> None
        """
        Close the handle, rolling back any writer and closing any snapshot still open.

        Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True
        with self._state_lock:
            writers = list(self._writers)
            readers = list(self._readers)
        for txn in writers:
            txn.rollback_and_close()
        for snapshot in readers:
            snapshot.close()
        logger.debug(f"Closed FTS5 index at {self.db_path}")

    @property
    def closed(self):
        # type: () -> bool
        return self._closed

    def _release_writer(self, txn):
        # type: (FtsWriter) -> None
        with self._state_lock:
            self._writers.discard(txn)
        self._write_lock.release()

    def _release_reader(self, snapshot):
        # type: (FtsSnapshot) -> None
        with self._state_lock:
            self._readers.discard(snapshot)

    def _check_open(self):
        # type: () -> None
        if self._closed:
            raise EngineError(f"Index handle for {self.path} is closed")

    def __repr__(self):
        # type: () -> str
        return f"FtsHandle(path={str(self.path)!r}, tokenizer={self.tokenizer!r})"


class FtsEngine:
    """Text search engine backed by SQLite FTS5."""

    name = "fts"

    def __init__(self, tokenizer="unicode61", busy_timeout=5.0):
        # type: (str, float) -> None
        """
        :param tokenizer: FTS5 tokenizer spec for new indexes
        :param busy_timeout: Seconds a connection waits on a locked database
        """
        self.tokenizer = tokenizer
        self.busy_timeout = busy_timeout

    def open_or_create(self, path):
        # type: (os.PathLike) -> FtsHandle
        """
        Open the FTS5 index in path, creating the database and tables if missing.

        :param path: Existing storage directory
        :return: Open FtsHandle
        :raises StorageError: If the database cannot be opened or initialized
        """
        return FtsHandle(path, tokenizer=self.tokenizer, busy_timeout=self.busy_timeout)
