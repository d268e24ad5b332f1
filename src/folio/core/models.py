"""Data models for Folio."""

import datetime
import math
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Annotated, Any, Literal, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from folio.core.errors import MalformedDocumentError, ReadError, UnresolvedDirectiveWarning

WORDS_PER_MINUTE = 200

# Validated mappings are stored behind a read-only proxy
ReadOnly = AfterValidator(MappingProxyType)


def _clean_labels(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ValueError("must be a list of labels")
    labels = []
    for item in value:
        if isinstance(item, (dict, list)):
            raise ValueError("labels must be plain text")
        label = str(item).strip()
        if label and label not in labels:
            labels.append(label)
    return labels


class FrontMatter(BaseModel):
    """Recognized front-matter keys; anything else lands in ``overflow``."""

    model_config = ConfigDict(extra="allow", frozen=True)

    title: str
    date: datetime.date
    summary: str = ""
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    draft: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def _title_not_blank(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("title is required")
        if isinstance(value, (dict, list)):
            raise ValueError("title must be text")
        value = str(value).strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @field_validator("summary", mode="before")
    @classmethod
    def _summary_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            raise ValueError("summary must be text")
        return str(value).strip()

    @field_validator("categories", "tags", mode="before")
    @classmethod
    def _labels(cls, value: Any) -> list[str]:
        return _clean_labels(value)

    @field_validator("draft", mode="before")
    @classmethod
    def _draft_default(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("date", mode="before")
    @classmethod
    def _date_only(cls, value: Any) -> Any:
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, str):
            text = value.strip()
            try:
                return datetime.date.fromisoformat(text)
            except ValueError:
                pass
            try:
                return datetime.datetime.fromisoformat(text.replace("Z", "+00:00")).date()
            except ValueError:
                raise ValueError(f"unparsable date {value!r}") from None
        return value

    @property
    def overflow(self) -> dict[str, Any]:
        """Header keys not recognized by Folio."""
        return dict(self.model_extra or {})


class RawUnit(BaseModel):
    """One content file as read from storage."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    path: Path
    text: str


class Document(BaseModel):
    """A parsed article."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    path: Path
    title: str
    summary: str = ""
    categories: frozenset[str] = frozenset()
    tags: frozenset[str] = frozenset()
    publish_date: datetime.date
    is_draft: bool = False
    body: str = ""
    extra: Annotated[Mapping[str, Any], ReadOnly] = Field(
        default_factory=dict, validate_default=True
    )

    @property
    def word_count(self) -> int:
        """Approximate word count of the body."""
        return len(self.body.split())

    @property
    def reading_time(self) -> int:
        """Estimated reading time in whole minutes."""
        return max(1, math.ceil(self.word_count / WORDS_PER_MINUTE))

    @property
    def sorted_categories(self) -> list[str]:
        return sorted(self.categories)

    @property
    def sorted_tags(self) -> list[str]:
        return sorted(self.tags)


class ShortcodeDirective(BaseModel):
    """An embedded widget reference found in a body."""

    model_config = ConfigDict(frozen=True)

    kind: str
    params: Annotated[Mapping[str, str], ReadOnly] = Field(
        default_factory=dict, validate_default=True
    )
    offset: int
    end: int
    raw: str
    inner: str | None = None


class MarkupSegment(BaseModel):
    """Plain markup, passed through unchanged."""

    model_config = ConfigDict(frozen=True)

    type: Literal["markup"] = "markup"
    text: str
    offset: int


class DirectiveSegment(BaseModel):
    """A directive rendered by its resolver."""

    model_config = ConfigDict(frozen=True)

    type: Literal["directive"] = "directive"
    directive: ShortcodeDirective
    html: str


class PlaceholderSegment(BaseModel):
    """Stand-in for a directive that could not be resolved."""

    model_config = ConfigDict(frozen=True)

    type: Literal["placeholder"] = "placeholder"
    directive: ShortcodeDirective
    html: str


Segment = Union[MarkupSegment, DirectiveSegment, PlaceholderSegment]


class RenderResult(BaseModel):
    """Segments of a rendered body plus any non-fatal warnings."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    segments: tuple[Segment, ...] = ()
    warnings: tuple[UnresolvedDirectiveWarning, ...] = ()


class LoadReport(BaseModel):
    """Per-unit problems collected during a build."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    read_errors: list[ReadError] = Field(default_factory=list)
    malformed: list[MalformedDocumentError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.read_errors and not self.malformed

    def as_dict(self) -> dict[str, list[dict[str, str]]]:
        """JSON-friendly summary of the report."""
        return {
            "read_errors": [
                {"path": str(e.path), "reason": e.reason} for e in self.read_errors
            ],
            "malformed": [
                {"path": str(e.path), "reason": e.reason} for e in self.malformed
            ],
        }
