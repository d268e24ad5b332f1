"""Process-wide holder for the published site index.

Rebuilds happen off to the side; readers only ever see a complete
``BuildResult`` because publishing is a single reference swap.
"""

import asyncio
import logging

from folio.core.errors import BuildCancelled
from folio.core.index import SiteIndex
from folio.core.loader import FileLoader
from folio.core.pipeline import BuildResult, build_site

logger = logging.getLogger(__name__)


class SiteHolder:
    """Owns the lifecycle of the current BuildResult."""

    def __init__(self, loader: FileLoader, workers: int = 8) -> None:
        self.loader = loader
        self.workers = workers
        self._result: BuildResult | None = None
        self._lock = asyncio.Lock()
        self._cancel: asyncio.Event | None = None

    @property
    def is_ready(self) -> bool:
        return self._result is not None

    def current(self) -> BuildResult:
        """Return the published result.

        Raises:
            RuntimeError: If nothing has been published yet.
        """
        if self._result is None:
            raise RuntimeError("site not initialized - call init() first")
        return self._result

    @property
    def index(self) -> SiteIndex:
        return self.current().index

    def replace(self, result: BuildResult) -> BuildResult | None:
        """Publish ``result`` and return the one it replaced."""
        previous, self._result = self._result, result
        return previous

    async def init(self) -> BuildResult:
        """Build and publish the first index.

        Raises:
            ReadError: If the content root is inaccessible.
        """
        result = await self.reload()
        logger.info("Site initialized from %s", self.loader.root)
        return result

    async def reload(self) -> BuildResult:
        """Rebuild from storage and swap the new result in.

        On failure or cancellation the previously published result stays.
        """
        async with self._lock:
            cancel = asyncio.Event()
            self._cancel = cancel
            try:
                result = await build_site(self.loader, cancel=cancel, workers=self.workers)
            finally:
                self._cancel = None
            if cancel.is_set():
                raise BuildCancelled("build cancelled")
            self.replace(result)
            logger.info(
                "Published index with %d documents", len(result.index.documents)
            )
            return result

    def cancel(self) -> None:
        """Abort an in-flight rebuild, if any."""
        if self._cancel is not None:
            self._cancel.set()

    def teardown(self) -> None:
        """Cancel any rebuild and drop the published result."""
        self.cancel()
        self._result = None
        logger.info("Site torn down")
