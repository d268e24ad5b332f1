"""Front-matter parsing and serialization.

A content unit starts with a YAML header between two ``---`` lines,
followed by the Markdown body.
"""

import logging
import re
from collections.abc import Iterable

import yaml
from pydantic import ValidationError

from folio.core.errors import MalformedDocumentError
from folio.core.models import Document, FrontMatter, LoadReport, RawUnit

logger = logging.getLogger(__name__)

FRONTMATTER_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """Split raw text into (header, body).

    Returns ``(None, text)`` when the text has no front-matter block.
    """
    text = text.lstrip("\ufeff")
    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return None, text
    return match.group(1), text[match.end() :]


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        field = ".".join(str(loc) for loc in err["loc"]) or "header"
        if err["type"] == "missing":
            parts.append(f"missing required field {field!r}")
        else:
            parts.append(f"{field}: {err['msg']}")
    return "; ".join(parts)


def parse_front_matter(header: str, path) -> FrontMatter:
    """Validate a YAML header into a FrontMatter.

    Raises:
        MalformedDocumentError: If the YAML is invalid or required fields are missing.
    """
    try:
        data = yaml.safe_load(header) or {}
    except yaml.YAMLError as e:
        raise MalformedDocumentError(path, f"invalid YAML header: {e}") from e
    if not isinstance(data, dict):
        raise MalformedDocumentError(path, "front matter must be a key-value mapping")

    data = {str(key): value for key, value in data.items()}
    try:
        return FrontMatter.model_validate(data)
    except ValidationError as e:
        raise MalformedDocumentError(path, _describe(e)) from e


def parse_document(unit: RawUnit) -> Document:
    """Parse one raw unit into a Document.

    Raises:
        MalformedDocumentError: Naming the unit's path when the header is
            absent, unparsable, or lacks ``title`` or a valid ``date``.
    """
    header, body = split_frontmatter(unit.text)
    if header is None:
        raise MalformedDocumentError(unit.path, "missing front matter block")

    front = parse_front_matter(header, unit.path)
    return Document(
        identifier=unit.identifier,
        path=unit.path,
        title=front.title,
        summary=front.summary,
        categories=frozenset(front.categories),
        tags=frozenset(front.tags),
        publish_date=front.date,
        is_draft=front.draft,
        body=body,
        extra=front.overflow,
    )


def parse_or_report(unit: RawUnit, report: LoadReport | None = None) -> Document | None:
    """Parse a unit, logging and recording it instead of raising when malformed."""
    try:
        return parse_document(unit)
    except MalformedDocumentError as e:
        logger.warning("Excluding malformed document %s: %s", e.path, e.reason)
        if report is not None:
            report.malformed.append(e)
        return None


def parse_units(units: Iterable[RawUnit], report: LoadReport) -> list[Document]:
    """Parse a batch of units; malformed ones go to ``report``."""
    documents = []
    for raw in units:
        document = parse_or_report(raw, report)
        if document is not None:
            documents.append(document)
    return documents


def front_matter_for(document: Document) -> FrontMatter:
    """Rebuild the header structure of a parsed Document."""
    return FrontMatter.model_validate(
        {
            **document.extra,
            "title": document.title,
            "date": document.publish_date,
            "summary": document.summary,
            "categories": sorted(document.categories),
            "tags": sorted(document.tags),
            "draft": document.is_draft,
        }
    )


def serialize_frontmatter(front: FrontMatter) -> str:
    """Emit a ``---`` delimited YAML header for ``front``."""
    data = front.model_dump()
    dumped = yaml.safe_dump(
        data, default_flow_style=False, sort_keys=False, allow_unicode=True
    )
    return f"---\n{dumped}---\n"
