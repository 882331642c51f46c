"""Test keyword search and full dumps through QueryFacade."""

import pytest
from docindex.exceptions import IndexNotFound, QuerySyntaxError
from docindex.models import Document
from docindex.query import DEFAULT_LIMIT, QueryFacade


def _names(docs):
    return [doc.name for doc in docs]


def test_search_returns_documents(service, sample_docs):
    """Test search hits are plain Document values."""
    service.new_index("books")
    for name, content in sample_docs:
        service.save_doc("books", name, content)

    hits = service.search_doc("books", "whale")

    assert _names(hits) == ["melville"]
    assert isinstance(hits[0], Document)
    assert hits[0].index_name == "books"
    assert "white whale" in hits[0].content


def test_search_matches_name(service, sample_docs):
    """Test the document name is searchable."""
    service.new_index("books")
    for name, content in sample_docs:
        service.save_doc("books", name, content)
    assert _names(service.search_doc("books", "austen")) == ["austen"]


def test_search_multiple_hits(service, sample_docs):
    """Test a term present in several documents."""
    service.new_index("books")
    for name, content in sample_docs:
        service.save_doc("books", name, content)
    assert sorted(_names(service.search_doc("books", "novel"))) == ["melville", "verne"]


def test_search_no_hits(service, sample_docs):
    """Test a term without matches returns an empty list."""
    service.new_index("books")
    for name, content in sample_docs:
        service.save_doc("books", name, content)
    assert service.search_doc("books", "spaceship") == []


def test_search_ranked_descending(service):
    """Test the most relevant document comes first."""
    service.new_index("idx")
    service.add_doc("idx", "weak", "whale and plenty of unrelated words describing a long voyage at sea")
    service.add_doc("idx", "strong", "whale whale whale")
    assert _names(service.search_doc("idx", "whale")) == ["strong", "weak"]


def test_search_default_limit(service):
    """Test search never returns more than the default limit."""
    service.new_index("idx")
    for i in range(25):
        service.add_doc("idx", f"doc{i}", "shared keyword")
    assert DEFAULT_LIMIT == 10
    assert len(service.search_doc("idx", "keyword")) == 10


def test_search_explicit_limit(service):
    """Test per-call limits."""
    service.new_index("idx")
    for i in range(5):
        service.add_doc("idx", f"doc{i}", "shared keyword")
    assert len(service.search_doc("idx", "keyword", limit=2)) == 2
    assert len(service.search_doc("idx", "keyword", limit=50)) == 5


@pytest.mark.parametrize("limit", [0, -1, 1.5, True, "3"])
def test_search_invalid_limit(service, limit):
    """Test non-positive or non-integer limits raise ValueError."""
    service.new_index("idx")
    with pytest.raises(ValueError, match="positive integer"):
        service.search_doc("idx", "x", limit=limit)


def test_facade_invalid_default_limit(service):
    """Test the facade validates its default limit."""
    with pytest.raises(ValueError):
        QueryFacade(service.registry, limit=0)


@pytest.mark.parametrize("keywords", ["", "   ", '"unterminated'])
def test_search_malformed_query(service, keywords):
    """Test blank and malformed queries raise QuerySyntaxError."""
    service.new_index("idx")
    service.add_doc("idx", "d1", "alpha")
    with pytest.raises(QuerySyntaxError):
        service.search_doc("idx", keywords)
    # QuerySyntaxError is also a ValueError
    with pytest.raises(ValueError):
        service.search_doc("idx", keywords)


def test_search_does_not_mutate(service):
    """Test searching leaves the index unchanged."""
    service.new_index("idx")
    service.add_doc("idx", "d1", "alpha")
    before = service.all_docs("idx")
    service.search_doc("idx", "alpha")
    service.search_doc("idx", "beta")
    assert service.all_docs("idx") == before


def test_search_unknown_index(service):
    """Test searching an unregistered index raises IndexNotFound."""
    with pytest.raises(IndexNotFound):
        service.search_doc("missing", "alpha")


def test_all_docs_empty(service):
    """Test a new index has no documents."""
    service.new_index("idx")
    assert service.all_docs("idx") == []


def test_all_docs_complete(service, sample_docs):
    """Test all_docs returns every document regardless of order."""
    service.new_index("books")
    for name, content in sample_docs:
        service.add_doc("books", name, content)

    docs = service.all_docs("books")

    assert sorted(_names(docs)) == sorted(name for name, _ in sample_docs)
    assert {doc.content for doc in docs} == {content for _, content in sample_docs}


def test_all_docs_unknown_index(service):
    """Test dumping an unregistered index raises IndexNotFound."""
    with pytest.raises(IndexNotFound):
        service.all_docs("missing")


def test_count_docs(service):
    """Test count_docs counts live records."""
    service.new_index("idx")
    service.add_doc("idx", "a", "x")
    service.add_doc("idx", "a", "y")
    assert service.query.count_docs("idx") == 2


def test_indexes_are_isolated(service):
    """Test documents never leak across indexes."""
    service.new_index("one")
    service.new_index("two")
    service.add_doc("one", "d1", "alpha")
    service.add_doc("two", "d2", "beta")

    assert _names(service.search_doc("one", "alpha")) == ["d1"]
    assert service.search_doc("two", "alpha") == []
    assert _names(service.all_docs("two")) == ["d2"]


@pytest.mark.parametrize(
    "keywords",
    ["don't", "alpha-beta", "hello, world", "c++", "Hello World!", "alpha + beta"],
)
def test_search_accepts_everyday_text(service, keywords):
    """Test keyword text with punctuation finds the document on every engine."""
    service.new_index("idx")
    service.add_doc("idx", "d1", "don't alpha beta hello world c")
    service.add_doc("idx", "d2", "unrelated")
    assert _names(service.search_doc("idx", keywords)) == ["d1"]


def test_search_punctuation_only_query(service):
    """Test a query without any word characters is a syntax error on every engine."""
    service.new_index("idx")
    service.add_doc("idx", "d1", "alpha")
    with pytest.raises(QuerySyntaxError):
        service.search_doc("idx", "+ , -")


def test_search_racing_close_reports_not_found(fts_service):
    """Test a close that invalidates an open snapshot surfaces as IndexNotFound."""
    fts_service.new_index("idx")
    fts_service.add_doc("idx", "d1", "alpha")
    engine_handle = fts_service.registry.get("idx").engine_handle
    original = engine_handle.reader

    def reader():
        snapshot = original()
        fts_service.close("idx")
        return snapshot

    engine_handle.reader = reader
    with pytest.raises(IndexNotFound):
        fts_service.search_doc("idx", "alpha")
