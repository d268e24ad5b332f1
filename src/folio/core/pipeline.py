"""Load → parse → index pipeline.

Parsing fans out across worker tasks as units stream in from the loader.
Index building waits for every parser result, so a run either publishes a
complete index or nothing at all.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from contextlib import aclosing
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from folio.core.errors import BuildCancelled, MalformedDocumentError
from folio.core.frontmatter import parse_or_report
from folio.core.index import SiteIndex, build_index
from folio.core.loader import FileLoader
from folio.core.models import Document, LoadReport, RawUnit, RenderResult
from folio.core.renderer import Resolver, render

logger = logging.getLogger(__name__)


class BuildResult(BaseModel):
    """A finished index together with the problems met while building it."""

    model_config = ConfigDict(frozen=True)

    index: SiteIndex
    report: LoadReport
    built_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def _check_cancelled(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise BuildCancelled("build cancelled")


def _drop_duplicates(
    documents: Iterable[Document], report: LoadReport
) -> list[Document]:
    kept: dict[str, Document] = {}
    for doc in documents:
        first = kept.get(doc.identifier)
        if first is not None:
            error = MalformedDocumentError(
                doc.path,
                f"duplicate identifier {doc.identifier!r}, already defined by {first.path}",
            )
            logger.warning("Excluding duplicate document %s", doc.path)
            report.malformed.append(error)
            continue
        kept[doc.identifier] = doc
    return list(kept.values())


async def build_site(
    loader: FileLoader,
    *,
    cancel: asyncio.Event | None = None,
    workers: int = 8,
) -> BuildResult:
    """Run one full load of ``loader`` and build its index.

    Raises:
        ReadError: If the content root is inaccessible.
        BuildCancelled: If ``cancel`` was set before the index was built.
    """
    report = LoadReport()
    semaphore = asyncio.Semaphore(max(1, workers))
    tasks: list[asyncio.Task[Document | None]] = []

    async def parse(unit: RawUnit) -> Document | None:
        async with semaphore:
            _check_cancelled(cancel)
            return await asyncio.to_thread(parse_or_report, unit, report)

    try:
        async with aclosing(loader.scan(report)) as units:
            async for unit in units:
                _check_cancelled(cancel)
                tasks.append(asyncio.create_task(parse(unit)))
        parsed = await asyncio.gather(*tasks)
        _check_cancelled(cancel)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    documents = _drop_duplicates((doc for doc in parsed if doc is not None), report)
    index = build_index(documents)

    report.read_errors.sort(key=lambda e: e.path)
    report.malformed.sort(key=lambda e: e.path)
    logger.info(
        "Built index: %d documents (%d published), %d unreadable, %d malformed",
        len(index.documents),
        len(index.chronological),
        len(report.read_errors),
        len(report.malformed),
    )
    return BuildResult(index=index, report=report)


async def render_documents(
    documents: Iterable[Document],
    resolvers: Mapping[str, Resolver],
    *,
    workers: int = 8,
) -> dict[str, RenderResult]:
    """Render many documents concurrently, keyed by identifier."""
    semaphore = asyncio.Semaphore(max(1, workers))
    documents = sorted(documents, key=lambda d: d.identifier)

    async def one(doc: Document) -> RenderResult:
        async with semaphore:
            return await asyncio.to_thread(render, doc, resolvers)

    results = await asyncio.gather(*(one(doc) for doc in documents))
    for doc, result in zip(documents, results):
        for warning in result.warnings:
            logger.warning("Unresolved directive in %s: %s", doc.identifier, warning)
    return {doc.identifier: result for doc, result in zip(documents, results)}
