"""Test fixtures for docindex."""

import threading
import time
from pathlib import Path

import pytest

from docindex.engines.fts import FtsEngine
from docindex.engines.memory import MemoryEngine, MemoryHandle
from docindex.exceptions import EngineError, StorageError
from docindex.registry import IndexRegistry
from docindex.service import DocIndexService
from docindex.settings import DocIndexSettings


class FlakyHandle:
    """Memory engine handle whose close can be made to fail."""

    def __init__(self, path):
        # type: (Path) -> None
        self.inner = MemoryHandle(path)
        self.path = Path(path)
        self.fail_close = False
        self.close_calls = 0

    def writer(self):
        return self.inner.writer()

    def reader(self):
        return self.inner.reader()

    def close(self):
        # type: () -> None
        self.close_calls += 1
        if self.fail_close:
            raise EngineError(f"Simulated close failure for {self.path}")
        self.inner.close()


class FlakyEngine:
    """Engine producing FlakyHandles, optionally failing to open."""

    name = "flaky"

    def __init__(self):
        # type: () -> None
        self.fail_open = False
        self.handles = []  # type: list[FlakyHandle]

    def open_or_create(self, path):
        # type: (Path) -> FlakyHandle
        if self.fail_open:
            raise StorageError(f"Simulated open failure for {path}")
        handle = FlakyHandle(path)
        self.handles.append(handle)
        return handle


@pytest.fixture
def settings(tmp_path):
    # type: (Path) -> DocIndexSettings
    """Settings placing index storage below a per-test directory."""
    return DocIndexSettings(storage_root=tmp_path / "indexes")


@pytest.fixture(params=["fts", "memory"])
def engine(request):
    """Each supported text search engine."""
    if request.param == "fts":
        return FtsEngine()
    return MemoryEngine()


@pytest.fixture
def service(engine, settings):
    """DocIndexService over each engine, closed after the test."""
    svc = DocIndexService(engine=engine, settings=settings)
    yield svc
    svc.close_all()


@pytest.fixture
def fts_service(settings):
    """DocIndexService over the SQLite FTS5 engine."""
    svc = DocIndexService(engine=FtsEngine(), settings=settings)
    yield svc
    svc.close_all()


@pytest.fixture
def flaky_engine():
    # type: () -> FlakyEngine
    return FlakyEngine()


@pytest.fixture
def flaky_registry(flaky_engine, tmp_path):
    # type: (FlakyEngine, Path) -> IndexRegistry
    """Registry over an engine whose handles can fail to close."""
    return IndexRegistry(flaky_engine, storage_root=tmp_path / "indexes")


@pytest.fixture
def sample_docs():
    # type: () -> list[tuple[str, str]]
    """A few (name, content) pairs."""
    return [
        ("verne", "Around the world in eighty days, a classic adventure novel"),
        ("melville", "Moby Dick is a novel about the hunt for a white whale"),
        ("austen", "Pride and Prejudice follows the Bennet family"),
        ("twain", "The adventures of Tom Sawyer on the Mississippi river"),
    ]


@pytest.fixture
def slow_writer():
    """
    Patch an index so each write transaction starts after a delay.

    Returns a function taking an IndexHandle. It returns an Event that is set as
    soon as a write begins. When events is given, "write" is appended once the
    delay has passed and the engine transaction is about to open.
    """

    def patch(handle, delay=0.2, events=None):
        entered = threading.Event()
        original = handle.engine_handle.writer

        def writer():
            entered.set()
            time.sleep(delay)
            if events is not None:
                events.append("write")
            return original()

        handle.engine_handle.writer = writer
        return entered

    return patch
