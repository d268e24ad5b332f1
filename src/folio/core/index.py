"""Index building and queries over a Document collection."""

import math
from collections.abc import Iterable, Mapping
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from folio.core.models import Document, ReadOnly

DocumentsByLabel = Annotated[Mapping[str, tuple[Document, ...]], ReadOnly]


def sort_key(document: Document) -> tuple[int, str]:
    """Newest first, identifier ascending on ties."""
    return (-document.publish_date.toordinal(), document.identifier)


class Pagination(BaseModel):
    """One page of a chronological listing."""

    model_config = ConfigDict(frozen=True)

    items: tuple[Document, ...]
    page: int
    page_size: int
    total: int

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.page_size))

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


class SiteIndex(BaseModel):
    """Read-only aggregation of a Document collection.

    Every mapping is a read-only view and every listing a tuple, so one
    index can be shared by all readers.

    ``by_category``, ``by_tag`` and ``chronological`` only hold published
    documents. Drafts stay reachable through ``get_by_identifier``.
    """

    model_config = ConfigDict(frozen=True)

    documents: Annotated[Mapping[str, Document], ReadOnly] = Field(
        default_factory=dict, validate_default=True
    )
    by_category: DocumentsByLabel = Field(default_factory=dict, validate_default=True)
    by_tag: DocumentsByLabel = Field(default_factory=dict, validate_default=True)
    chronological: tuple[Document, ...] = ()

    def get_by_identifier(self, identifier: str) -> Document | None:
        """Look up any document, drafts included."""
        return self.documents.get(identifier)

    def list_by_category(self, label: str) -> tuple[Document, ...]:
        return self.by_category.get(label, ())

    def list_by_tag(self, label: str) -> tuple[Document, ...]:
        return self.by_tag.get(label, ())

    def list_chronological(self, page: int = 1, page_size: int = 10) -> Pagination:
        """Return one page of published documents, newest first.

        Raises:
            ValueError: If ``page`` or ``page_size`` is less than 1.
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        start = (page - 1) * page_size
        return Pagination(
            items=self.chronological[start : start + page_size],
            page=page,
            page_size=page_size,
            total=len(self.chronological),
        )

    def category_counts(self) -> list[tuple[str, int]]:
        return [(label, len(docs)) for label, docs in self.by_category.items()]

    def tag_counts(self) -> list[tuple[str, int]]:
        return [(label, len(docs)) for label, docs in self.by_tag.items()]


def _group(documents: list[Document], attr: str) -> dict[str, tuple[Document, ...]]:
    buckets: dict[str, list[Document]] = {}
    for doc in documents:
        for label in getattr(doc, attr):
            buckets.setdefault(label, []).append(doc)
    # documents arrive sorted, so each bucket is already in order
    return {label: tuple(buckets[label]) for label in sorted(buckets)}


def build_index(documents: Iterable[Document]) -> SiteIndex:
    """Build a SiteIndex from a Document collection.

    Equal collections always produce equal indexes, whatever their input
    order.

    Raises:
        ValueError: If two documents share an identifier.
    """
    everything = sorted(documents, key=sort_key)
    by_id: dict[str, Document] = {}
    for doc in everything:
        if doc.identifier in by_id:
            raise ValueError(f"duplicate document identifier: {doc.identifier}")
        by_id[doc.identifier] = doc

    published = [doc for doc in everything if not doc.is_draft]
    return SiteIndex(
        documents={key: by_id[key] for key in sorted(by_id)},
        by_category=_group(published, "categories"),
        by_tag=_group(published, "tags"),
        chronological=tuple(published),
    )
