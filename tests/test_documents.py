"""Test document add/upsert/delete through DocumentOps."""

import threading

import pytest
from docindex.documents import DocumentOps
from docindex.engines.memory import MemoryEngine
from docindex.exceptions import IndexNotFound, StorageError
from docindex.identity import doc_id
from docindex.registry import IndexRegistry


def _count(service, index_name, name):
    return sum(1 for doc in service.all_docs(index_name) if doc.name == name)


def test_add_doc_stores_record(service):
    """Test add_doc stores index name, derived id, name and content."""
    service.new_index("idx")
    service.add_doc("idx", "d1", "alpha beta")

    docs = service.all_docs("idx")
    assert len(docs) == 1
    doc = docs[0]
    assert doc.index_name == "idx"
    assert doc.id == doc_id("d1")
    assert doc.name == "d1"
    assert doc.content == "alpha beta"


def test_add_doc_returns_document(service):
    """Test DocumentOps.add_doc returns the stored value."""
    service.new_index("idx")
    doc = service.documents.add_doc("idx", "d1", "alpha")
    assert doc.id == doc_id("d1")
    assert service.all_docs("idx") == [doc]


@pytest.mark.parametrize("k", [1, 2, 5])
def test_add_doc_k_times_yields_k_records(service, k):
    """Test add_doc does not upsert: k adds yield k records sharing one id."""
    service.new_index("idx")
    for i in range(k):
        service.add_doc("idx", "a", f"version {i}")

    docs = service.all_docs("idx")
    assert len(docs) == k
    assert {doc.id for doc in docs} == {doc_id("a")}


def test_save_doc_twice_identical_yields_one(service):
    """Test save_doc with identical name and content twice leaves one record."""
    service.new_index("idx")
    service.save_doc("idx", "d1", "same content")
    service.save_doc("idx", "d1", "same content")

    docs = service.all_docs("idx")
    assert len(docs) == 1
    assert docs[0].content == "same content"


def test_save_doc_replaces_content(service):
    """Test save_doc keeps only the latest content for a name."""
    service.new_index("idx")
    service.save_doc("idx", "d1", "first")
    service.save_doc("idx", "d2", "other")
    service.save_doc("idx", "d1", "second")

    contents = {doc.name: doc.content for doc in service.all_docs("idx")}
    assert contents == {"d1": "second", "d2": "other"}


def test_save_doc_collapses_duplicates(service):
    """Test save_doc replaces every record added under the name."""
    service.new_index("idx")
    service.add_doc("idx", "a", "x")
    service.add_doc("idx", "a", "y")

    service.save_doc("idx", "a", "z")

    docs = service.all_docs("idx")
    assert [(doc.name, doc.content) for doc in docs] == [("a", "z")]


def test_del_doc_removes_all_records(service):
    """Test del_doc removes every record with the name and reports the count."""
    service.new_index("idx")
    service.add_doc("idx", "a", "x")
    service.add_doc("idx", "a", "y")
    service.add_doc("idx", "b", "z")

    assert service.del_doc("idx", "a") == 2

    assert [doc.name for doc in service.all_docs("idx")] == ["b"]


def test_del_doc_missing_name_is_noop(service):
    """Test deleting a name without records succeeds without changes."""
    service.new_index("idx")
    service.add_doc("idx", "a", "x")

    assert service.del_doc("idx", "missing") == 0
    assert service.del_doc("idx", "missing") == 0

    assert len(service.all_docs("idx")) == 1


def test_del_doc_only_affects_one_index(service):
    """Test documents with the same name in other indexes survive."""
    service.new_index("one")
    service.new_index("two")
    service.save_doc("one", "d1", "alpha")
    service.save_doc("two", "d1", "alpha")

    service.del_doc("one", "d1")

    assert service.all_docs("one") == []
    assert len(service.all_docs("two")) == 1


@pytest.mark.parametrize("op,args", [("add_doc", ("d", "x")), ("save_doc", ("d", "x")), ("del_doc", ("d",))])
def test_operations_on_unknown_index(service, op, args):
    """Test document operations on unregistered indexes raise IndexNotFound."""
    with pytest.raises(IndexNotFound):
        getattr(service, op)("missing", *args)


def test_operations_after_close(service):
    """Test document operations on a closed index raise IndexNotFound."""
    service.new_index("idx")
    service.close("idx")
    with pytest.raises(IndexNotFound):
        service.add_doc("idx", "d", "x")


def test_custom_hasher(tmp_path):
    """Test an injected id function is used for identity."""
    registry = IndexRegistry(MemoryEngine(), storage_root=tmp_path)
    ops = DocumentOps(registry, hasher=lambda name: f"custom-{name}")
    registry.create("idx")
    try:
        doc = ops.add_doc("idx", "d1", "x")
        assert doc.id == "custom-d1"
        ops.save_doc("idx", "d1", "y")
        with registry.get("idx").reader() as snapshot:
            records = list(snapshot.iterate_all())
        assert [(r["id"], r["content"]) for r in records] == [("custom-d1", "y")]
    finally:
        registry.close_all()


class _FailingAddWriter:
    """Writer whose add_document fails like an I/O error."""

    def __init__(self, inner):
        self.inner = inner

    def add_document(self, fields):
        raise StorageError("disk I/O error")

    def delete_by_term(self, field, value):
        return self.inner.delete_by_term(field, value)

    def commit_and_close(self):
        self.inner.commit_and_close()

    def rollback_and_close(self):
        self.inner.rollback_and_close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is not None:
            self.rollback_and_close()
        else:
            self.commit_and_close()


def test_save_doc_is_not_atomic(flaky_registry, flaky_engine):
    """Test a failed add after the committed delete loses the document."""
    ops = DocumentOps(flaky_registry)
    flaky_registry.create("idx")
    ops.add_doc("idx", "d1", "original")

    handle = flaky_registry.get("idx")
    inner_writer = handle.engine_handle.writer
    calls = []

    def writer():
        calls.append(1)
        txn = inner_writer()
        # Second transaction of save_doc is the add
        return _FailingAddWriter(txn) if len(calls) == 2 else txn

    handle.engine_handle.writer = writer
    try:
        with pytest.raises(StorageError):
            ops.save_doc("idx", "d1", "replacement")
    finally:
        handle.engine_handle.writer = inner_writer

    with handle.reader() as snapshot:
        assert snapshot.count() == 0
    # The index stays usable
    ops.save_doc("idx", "d1", "again")
    with handle.reader() as snapshot:
        assert snapshot.count() == 1
    flaky_registry.close_all()


def test_failed_add_commits_nothing(flaky_registry):
    """Test a failing add leaves the index unchanged and the writer released."""
    ops = DocumentOps(flaky_registry)
    flaky_registry.create("idx")
    handle = flaky_registry.get("idx")
    inner_writer = handle.engine_handle.writer
    handle.engine_handle.writer = lambda: _FailingAddWriter(inner_writer())
    try:
        with pytest.raises(StorageError):
            ops.add_doc("idx", "d1", "x")
    finally:
        handle.engine_handle.writer = inner_writer

    ops.add_doc("idx", "d2", "y")
    with handle.reader() as snapshot:
        assert [r["name"] for r in snapshot.iterate_all()] == ["d2"]
    flaky_registry.close_all()


def _run(*threads, timeout=10):
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout)
    assert not any(thread.is_alive() for thread in threads), "worker threads did not finish"


def test_save_doc_and_close_do_not_deadlock(service, slow_writer):
    """Test close waiting on an in-flight save_doc lets the save finish first."""
    service.new_index("idx")
    entered = slow_writer(service.registry.get("idx"))
    errors = []

    def save():
        try:
            service.save_doc("idx", "d1", "alpha")
        except Exception as e:
            errors.append(e)

    saver = threading.Thread(target=save, daemon=True)
    saver.start()
    assert entered.wait(5)
    closer = threading.Thread(target=service.close, args=("idx",), daemon=True)
    _run(closer)
    saver.join(10)

    assert not saver.is_alive()
    assert errors == []
    assert "idx" not in service.registry


def test_concurrent_adds_keep_every_record(service):
    """Test writers on one index are serialized without losing records."""
    service.new_index("idx")

    def add(worker):
        for i in range(10):
            service.add_doc("idx", f"w{worker}-d{i}", f"content {worker} {i}")

    _run(*[threading.Thread(target=add, args=(w,), daemon=True) for w in range(6)])

    assert len(service.all_docs("idx")) == 60


def test_concurrent_save_doc_on_one_name(service):
    """Test parallel upserts of one name leave exactly one record."""
    service.new_index("idx")

    def save(worker):
        for i in range(8):
            service.save_doc("idx", "shared", f"version {worker} {i}")

    _run(*[threading.Thread(target=save, args=(w,), daemon=True) for w in range(6)])

    docs = service.all_docs("idx")
    assert len(docs) == 1
    assert docs[0].name == "shared"
    assert docs[0].content.startswith("version ")
