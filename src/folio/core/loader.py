"""Content loading from a directory tree.

Articles are stored either as page bundles (``posts/hello/index.md``) or as
leaf files (``posts/hello.md``). Both map to the identifier ``posts/hello``.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from folio.core.errors import ReadError
from folio.core.models import LoadReport, RawUnit

logger = logging.getLogger(__name__)

RETRYABLE_READ_ERRORS = (OSError, asyncio.TimeoutError)

# Hugo section list pages carry no article of their own
LIST_PAGE_FILENAME = "_index.md"


class FileLoader:
    """Reads content units from a storage root."""

    def __init__(
        self,
        root: Path,
        bundle_filename: str = "index.md",
        suffix: str = ".md",
        read_timeout: float = 5.0,
        read_attempts: int = 3,
        read_backoff: float = 0.1,
    ):
        self.root = Path(root)
        self.bundle_filename = bundle_filename
        self.suffix = suffix
        self.read_timeout = read_timeout
        self.read_attempts = read_attempts
        self.read_backoff = read_backoff

    def identifier_for(self, path: Path) -> str:
        """Derive the document identifier from a content file path."""
        rel = path.relative_to(self.root)
        if rel.name == self.bundle_filename and rel.parent != Path("."):
            return rel.parent.as_posix()
        return rel.with_suffix("").as_posix()

    def _is_content_file(self, path: Path) -> bool:
        rel = path.relative_to(self.root)
        if any(part.startswith(".") for part in rel.parts):
            return False
        if rel.name == LIST_PAGE_FILENAME:
            return False
        return path.is_file()

    def list_paths(self) -> list[Path]:
        """List content files under the root in sorted order.

        Raises:
            ReadError: If the root is missing or cannot be listed.
        """
        if not self.root.is_dir():
            raise ReadError(self.root, "content root is not a readable directory")
        try:
            # Touch the root first so permission problems surface here
            next(self.root.iterdir(), None)
            paths = [
                p for p in self.root.rglob(f"*{self.suffix}") if self._is_content_file(p)
            ]
        except OSError as e:
            raise ReadError(self.root, f"cannot list content root: {e}") from e
        return sorted(paths)

    def fingerprint(self) -> tuple[tuple[str, int, int], ...]:
        """Snapshot of (path, mtime, size) for change detection."""
        entries = []
        for path in self.list_paths():
            try:
                stat = path.stat()
            except OSError:
                continue
            entries.append((path.as_posix(), stat.st_mtime_ns, stat.st_size))
        return tuple(entries)

    async def read_unit(self, path: Path) -> RawUnit:
        """Read one content file with a bounded timeout and retries.

        Raises:
            ReadError: If every attempt failed or the file is not valid UTF-8.
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.read_attempts),
                wait=wait_incrementing(start=self.read_backoff, increment=self.read_backoff),
                retry=retry_if_exception_type(RETRYABLE_READ_ERRORS),
                before_sleep=before_sleep_log(logger, logging.DEBUG),
                reraise=True,
            ):
                with attempt:
                    text = await asyncio.wait_for(
                        asyncio.to_thread(path.read_text, encoding="utf-8"),
                        timeout=self.read_timeout,
                    )
        except asyncio.TimeoutError as e:
            raise ReadError(path, f"read timed out after {self.read_timeout}s") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ReadError(path, str(e)) from e

        return RawUnit(identifier=self.identifier_for(path), path=path, text=text)

    async def scan(self, report: LoadReport | None = None) -> AsyncIterator[RawUnit]:
        """Yield every readable content unit under the root.

        Each call starts a fresh pass. Unreadable units are skipped and
        recorded in ``report``; an inaccessible root raises ``ReadError``.
        """
        paths = await asyncio.to_thread(self.list_paths)
        for path in paths:
            try:
                unit = await self.read_unit(path)
            except ReadError as e:
                logger.warning("Skipping unreadable unit %s: %s", path, e.reason)
                if report is not None:
                    report.read_errors.append(e)
                continue
            yield unit
