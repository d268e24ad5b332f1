"""Tests for index building and queries."""

import datetime
from pathlib import Path

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from folio.core.index import build_index, sort_key
from folio.core.models import Document

LABELS = st.sampled_from(["cryptography", "web", "Web", "nostr", "security"])

documents_strategy = st.lists(
    st.builds(
        lambda ident, day, cats, tags, draft: Document(
            identifier=ident,
            path=Path(ident) / "index.md",
            title=ident,
            categories=frozenset(cats),
            tags=frozenset(tags),
            publish_date=day,
            is_draft=draft,
        ),
        ident=st.text(alphabet="abcdef/-", min_size=1, max_size=8),
        day=st.dates(min_value=datetime.date(2020, 1, 1), max_value=datetime.date(2020, 3, 1)),
        cats=st.frozensets(LABELS, max_size=2),
        tags=st.frozensets(LABELS, max_size=3),
        draft=st.booleans(),
    ),
    max_size=20,
    unique_by=lambda d: d.identifier,
)


# ============================================================
# Properties
# ============================================================


class TestIndexProperties:
    @given(documents_strategy)
    def test_chronological_sorted_and_complete(self, documents):
        index = build_index(documents)
        chrono = index.chronological
        assert [sort_key(d) for d in chrono] == sorted(sort_key(d) for d in chrono)
        published = {d.identifier for d in documents if not d.is_draft}
        assert {d.identifier for d in chrono} == published
        assert len(chrono) == len(published)

    @given(documents_strategy)
    def test_idempotent(self, documents):
        assert build_index(documents) == build_index(documents)

    @given(documents_strategy)
    def test_input_order_irrelevant(self, documents):
        assert build_index(documents) == build_index(list(reversed(documents)))

    @given(documents_strategy)
    def test_buckets_exclude_drafts(self, documents):
        index = build_index(documents)
        for bucket in (*index.by_category.values(), *index.by_tag.values()):
            assert all(not d.is_draft for d in bucket)
            assert [sort_key(d) for d in bucket] == sorted(sort_key(d) for d in bucket)

    @given(documents_strategy)
    def test_every_document_reachable_by_identifier(self, documents):
        index = build_index(documents)
        for doc in documents:
            assert index.get_by_identifier(doc.identifier) == doc


# ============================================================
# Examples
# ============================================================


class TestOrdering:
    def test_newest_first(self, make_document):
        index = build_index(
            [
                make_document("old", "2023-01-01"),
                make_document("new", "2024-06-01"),
                make_document("mid", "2023-09-15"),
            ]
        )
        assert [d.identifier for d in index.chronological] == ["new", "mid", "old"]

    def test_ties_broken_by_identifier(self, make_document):
        index = build_index(
            [
                make_document("b", "2024-01-01"),
                make_document("a", "2024-01-01"),
                make_document("c", "2024-01-01"),
            ]
        )
        assert [d.identifier for d in index.chronological] == ["a", "b", "c"]

    def test_duplicate_identifier_rejected(self, make_document):
        with pytest.raises(ValueError, match="duplicate"):
            build_index([make_document("a"), make_document("a", "2024-02-02")])

    def test_empty_collection(self):
        index = build_index([])
        assert index.chronological == ()
        assert index.by_tag == {}
        assert index.list_chronological().items == ()


class TestDrafts:
    def test_draft_only_by_identifier(self, make_document):
        draft = make_document("wip", tags=["web"], categories=["notes"], draft=True)
        index = build_index([draft, make_document("done", tags=["web"])])
        assert index.get_by_identifier("wip") == draft
        assert draft not in index.list_by_tag("web")
        assert index.list_by_category("notes") == ()
        assert draft not in index.list_chronological(page=1, page_size=100).items

    def test_unknown_identifier(self, make_document):
        index = build_index([make_document("a")])
        assert index.get_by_identifier("missing") is None


class TestLabels:
    def test_shared_tag_newest_first(self, make_document):
        older = make_document("argon2", "2023-05-01", tags=["cryptography"])
        newer = make_document("webcrypto", "2024-02-10", tags=["cryptography", "web"])
        index = build_index([older, newer, make_document("other", tags=["web"])])
        assert index.list_by_tag("cryptography") == (newer, older)

    def test_labels_case_sensitive(self, make_document):
        index = build_index(
            [make_document("a", tags=["Web"]), make_document("b", tags=["web"])]
        )
        assert [d.identifier for d in index.list_by_tag("Web")] == ["a"]
        assert [d.identifier for d in index.list_by_tag("web")] == ["b"]
        assert index.list_by_tag("WEB") == ()

    def test_category_buckets(self, make_document):
        index = build_index(
            [
                make_document("a", "2024-01-01", categories=["security"]),
                make_document("b", "2024-01-02", categories=["security", "protocols"]),
            ]
        )
        assert [d.identifier for d in index.list_by_category("security")] == ["b", "a"]
        assert list(index.by_category) == ["protocols", "security"]

    def test_counts(self, make_document):
        index = build_index(
            [
                make_document("a", tags=["x", "y"], categories=["c"]),
                make_document("b", tags=["x"]),
                make_document("c", tags=["z"], draft=True),
            ]
        )
        assert index.tag_counts() == [("x", 2), ("y", 1)]
        assert index.category_counts() == [("c", 1)]


class TestReadOnly:
    @pytest.fixture
    def index(self, make_document):
        return build_index([make_document("a", tags=["web"], categories=["notes"])])

    def test_label_buckets_cannot_be_replaced(self, index):
        with pytest.raises(TypeError):
            index.by_tag["web"] = ()
        with pytest.raises(TypeError):
            index.by_category["notes"] = ()
        assert [d.identifier for d in index.list_by_tag("web")] == ["a"]

    def test_documents_cannot_be_cleared(self, index):
        with pytest.raises(AttributeError):
            index.documents.clear()
        with pytest.raises(TypeError):
            del index.documents["a"]
        assert index.get_by_identifier("a") is not None

    def test_fields_cannot_be_reassigned(self, index):
        with pytest.raises(ValidationError):
            index.chronological = ()

    def test_document_extra_read_only(self):
        doc = Document(
            identifier="a",
            path=Path("a.md"),
            title="A",
            publish_date=datetime.date(2024, 1, 1),
            extra={"author": "alice"},
        )
        with pytest.raises(TypeError):
            doc.extra["author"] = "mallory"
        assert doc.extra == {"author": "alice"}


class TestPagination:
    @pytest.fixture
    def index(self, make_document):
        return build_index(
            [make_document(f"post-{i:02d}", f"2024-01-{i:02d}") for i in range(1, 26)]
        )

    def test_first_page(self, index):
        page = index.list_chronological(page=1, page_size=10)
        assert [d.identifier for d in page.items][:2] == ["post-25", "post-24"]
        assert len(page.items) == 10
        assert page.total == 25
        assert page.pages == 3
        assert page.has_next
        assert not page.has_previous

    def test_last_page(self, index):
        page = index.list_chronological(page=3, page_size=10)
        assert [d.identifier for d in page.items] == [f"post-{i:02d}" for i in range(5, 0, -1)]
        assert not page.has_next
        assert page.has_previous

    def test_pages_concatenate_to_chronological(self, index):
        items = []
        for number in range(1, 4):
            items.extend(index.list_chronological(page=number, page_size=10).items)
        assert tuple(items) == index.chronological

    def test_out_of_range_page_empty(self, index):
        assert index.list_chronological(page=9, page_size=10).items == ()

    @pytest.mark.parametrize("page,page_size", [(0, 10), (1, 0), (-1, 5)])
    def test_invalid_arguments(self, index, page, page_size):
        with pytest.raises(ValueError):
            index.list_chronological(page=page, page_size=page_size)
