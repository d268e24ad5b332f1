"""Folio FastAPI application."""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Query, Request, WebSocket
from fastapi.responses import HTMLResponse, Response
from fastapi.templating import Jinja2Templates

from folio.config import settings
from folio.core.errors import BuildCancelled, ReadError
from folio.core.feed import build_atom_feed
from folio.core.index import SiteIndex
from folio.core.live import ConnectionManager, ContentWatcher
from folio.core.loader import FileLoader
from folio.core.models import Document
from folio.core.renderer import HtmlRender, render_html
from folio.core.site import SiteHolder
from folio.resolvers import default_resolvers

logger = logging.getLogger(__name__)

loader = FileLoader(
    settings.content_dir,
    bundle_filename=settings.bundle_filename,
    read_timeout=settings.read_timeout,
    read_attempts=settings.read_attempts,
    read_backoff=settings.read_backoff,
)
holder = SiteHolder(loader, workers=settings.workers)
manager = ConnectionManager()
watcher = ContentWatcher(holder, manager, interval=settings.watch_interval)
resolvers = default_resolvers()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: build the site and optionally watch for changes."""
    logging.getLogger("folio").setLevel(settings.log_level.upper())
    await holder.init()
    if settings.watch:
        watcher.start()
    yield
    watcher.stop()
    holder.teardown()


app = FastAPI(
    title=settings.site_title,
    debug=settings.debug,
    lifespan=lifespan,
)

templates_path = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(templates_path))


def get_context(**kwargs) -> dict:
    """Create base context for templates."""
    return {
        "site_title": settings.site_title,
        "live_reload": settings.watch,
        **kwargs,
    }


async def current_index() -> SiteIndex:
    """Return the published index, building it on first use."""
    if not holder.is_ready:
        try:
            await holder.init()
        except ReadError as e:
            logger.error("Content unavailable: %s", e)
            raise HTTPException(status_code=503, detail="Content unavailable") from e
    return holder.index


def render_document(doc: Document) -> HtmlRender:
    rendered = render_html(doc, resolvers)
    for warning in rendered.warnings:
        logger.warning("Unresolved directive in %s: %s", doc.identifier, warning)
    return rendered


def document_summary(doc: Document) -> dict:
    """JSON-friendly listing entry."""
    return {
        "identifier": doc.identifier,
        "title": doc.title,
        "summary": doc.summary,
        "categories": doc.sorted_categories,
        "tags": doc.sorted_tags,
        "date": doc.publish_date.isoformat(),
        "draft": doc.is_draft,
        "reading_time": doc.reading_time,
    }


@app.get("/", response_class=HTMLResponse)
async def home(request: Request, page: int = Query(1, ge=1)):
    """Newest published documents, one page at a time."""
    index = await current_index()
    pagination = index.list_chronological(page=page, page_size=settings.page_size)
    return templates.TemplateResponse(
        request,
        "list.html",
        get_context(heading="Latest posts", documents=pagination.items, pagination=pagination),
    )


@app.get("/posts/{identifier:path}", response_class=HTMLResponse)
async def view_post(request: Request, identifier: str):
    """One document; drafts are reachable here for preview."""
    index = await current_index()
    doc = index.get_by_identifier(identifier)
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not found")
    rendered = render_document(doc)
    return templates.TemplateResponse(
        request,
        "post.html",
        get_context(doc=doc, html_content=rendered.html, toc_html=rendered.toc),
    )


@app.get("/categories/{label:path}", response_class=HTMLResponse)
async def category_page(request: Request, label: str):
    """Published documents in one category."""
    index = await current_index()
    documents = index.list_by_category(label)
    if not documents:
        raise HTTPException(status_code=404, detail="Category not found")
    return templates.TemplateResponse(
        request,
        "list.html",
        get_context(heading=f"Category: {label}", documents=documents, pagination=None),
    )


@app.get("/tags", response_class=HTMLResponse)
async def tags_page(request: Request):
    """Tag and category index with counts."""
    index = await current_index()
    return templates.TemplateResponse(
        request,
        "tags.html",
        get_context(tags=index.tag_counts(), categories=index.category_counts()),
    )


@app.get("/tags/{label:path}", response_class=HTMLResponse)
async def tag_page(request: Request, label: str):
    """Published documents with one tag."""
    index = await current_index()
    documents = index.list_by_tag(label)
    if not documents:
        raise HTTPException(status_code=404, detail="Tag not found")
    return templates.TemplateResponse(
        request,
        "list.html",
        get_context(heading=f"Tag: {label}", documents=documents, pagination=None),
    )


@app.get("/feed.xml")
async def feed():
    """Atom feed of the newest published documents."""
    index = await current_index()
    xml = build_atom_feed(
        index,
        site_title=settings.site_title,
        base_url=settings.base_url,
        limit=settings.feed_limit,
    )
    return Response(content=xml, media_type="application/atom+xml")


# ========== JSON API ==========


@app.get("/api/documents")
async def api_documents(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.page_size, ge=1, le=100),
):
    """Chronological listing as JSON."""
    index = await current_index()
    pagination = index.list_chronological(page=page, page_size=page_size)
    return {
        "page": pagination.page,
        "page_size": pagination.page_size,
        "total": pagination.total,
        "pages": pagination.pages,
        "items": [document_summary(doc) for doc in pagination.items],
    }


@app.get("/api/documents/{identifier:path}")
async def api_document(identifier: str):
    """One document with its rendered body."""
    index = await current_index()
    doc = index.get_by_identifier(identifier)
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not found")
    rendered = render_document(doc)
    return {
        **document_summary(doc),
        "html": rendered.html,
        "toc": rendered.toc,
        "warnings": [str(w) for w in rendered.warnings],
    }


@app.get("/api/categories/{label:path}")
async def api_category(label: str):
    index = await current_index()
    return [document_summary(doc) for doc in index.list_by_category(label)]


@app.get("/api/tags/{label:path}")
async def api_tag(label: str):
    index = await current_index()
    return [document_summary(doc) for doc in index.list_by_tag(label)]


@app.get("/api/report")
async def api_report():
    """Units skipped or excluded by the last build."""
    await current_index()
    result = holder.current()
    return {"built_at": result.built_at.isoformat(), **result.report.as_dict()}


@app.post("/api/reload")
async def api_reload():
    """Rebuild from storage and swap the new index in."""
    try:
        result = await holder.reload()
    except (ReadError, BuildCancelled) as e:
        logger.error("Reload failed: %s", e)
        raise HTTPException(status_code=503, detail=str(e)) from e
    await manager.broadcast(
        {"type": "reload", "documents": len(result.index.chronological)}
    )
    return {"documents": len(result.index.documents), **result.report.as_dict()}


@app.websocket("/ws/reload")
async def ws_reload(websocket: WebSocket):
    """WebSocket endpoint for live-reload events.

    Incoming frames are read and discarded so a closed socket is noticed
    right away instead of on the next event.
    """
    await websocket.accept()
    client_id, queue = manager.connect()

    async def forward_events():
        while True:
            msg = await queue.get()
            await websocket.send_json(msg)

    sender = asyncio.create_task(forward_events())
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        manager.disconnect(client_id)
