"""Error taxonomy for the content pipeline."""

from pathlib import Path


class FolioError(Exception):
    """Base class for pipeline errors."""


class ReadError(FolioError):
    """Storage root or a single content unit could not be read."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class MalformedDocumentError(FolioError):
    """A content unit has missing or invalid front matter."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class BuildCancelled(FolioError):
    """A pipeline run was aborted before the index was published."""


class UnresolvedDirectiveWarning(UserWarning):
    """A shortcode directive could not be resolved and was replaced by a placeholder."""

    def __init__(self, kind: str, offset: int, reason: str = "no resolver registered"):
        self.kind = kind
        self.offset = offset
        self.reason = reason
        super().__init__(f"{kind!r} at offset {offset}: {reason}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnresolvedDirectiveWarning):
            return NotImplemented
        return (self.kind, self.offset, self.reason) == (
            other.kind,
            other.offset,
            other.reason,
        )

    def __hash__(self) -> int:
        return hash((self.kind, self.offset, self.reason))
