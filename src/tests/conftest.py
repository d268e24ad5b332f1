"""Shared fixtures for Folio tests."""

import datetime
from pathlib import Path

import pytest

from folio.core.models import Document


def _make_document(
    identifier: str,
    day: str = "2024-01-01",
    *,
    title: str | None = None,
    categories=(),
    tags=(),
    draft: bool = False,
    body: str = "",
) -> Document:
    return Document(
        identifier=identifier,
        path=Path(identifier) / "index.md",
        title=title or identifier.replace("-", " ").title(),
        categories=frozenset(categories),
        tags=frozenset(tags),
        publish_date=datetime.date.fromisoformat(day),
        is_draft=draft,
        body=body,
    )


def _write_post(root: Path, rel: str, header: str | None, body: str = "Body text.") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    text = body if header is None else f"---\n{header}---\n\n{body}"
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def make_document():
    """Factory for in-memory Documents."""
    return _make_document


@pytest.fixture
def write_post():
    """Write a content file under a root: write_post(root, "a/index.md", header)."""
    return _write_post


@pytest.fixture
def content_dir(tmp_path):
    root = tmp_path / "content"
    root.mkdir()
    return root
