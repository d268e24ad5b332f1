"""Tests for the site holder and live reload."""

import asyncio

import pytest

from folio.core.errors import BuildCancelled, ReadError
from folio.core.live import ConnectionManager, ContentWatcher
from folio.core.loader import FileLoader
from folio.core.site import SiteHolder

HEADER = "title: {title}\ndate: {day}\n"


def post(write_post, root, name, title, day="2024-01-01"):
    return write_post(root, f"{name}/index.md", HEADER.format(title=title, day=day))


# ============================================================
# SiteHolder
# ============================================================


class TestSiteHolder:
    def test_current_before_init(self, content_dir):
        holder = SiteHolder(FileLoader(content_dir))
        assert not holder.is_ready
        with pytest.raises(RuntimeError):
            holder.current()

    @pytest.mark.asyncio
    async def test_init_publishes(self, content_dir, write_post):
        post(write_post, content_dir, "a", "A")
        holder = SiteHolder(FileLoader(content_dir))
        result = await holder.init()
        assert holder.is_ready
        assert holder.current() is result
        assert holder.index.get_by_identifier("a").title == "A"

    @pytest.mark.asyncio
    async def test_init_fails_on_missing_root(self, tmp_path):
        holder = SiteHolder(FileLoader(tmp_path / "missing"))
        with pytest.raises(ReadError):
            await holder.init()
        assert not holder.is_ready

    @pytest.mark.asyncio
    async def test_reload_swaps_whole_result(self, content_dir, write_post):
        post(write_post, content_dir, "a", "A")
        holder = SiteHolder(FileLoader(content_dir))
        first = await holder.init()
        post(write_post, content_dir, "b", "B", "2024-02-01")
        second = await holder.reload()
        assert holder.current() is second
        assert first.index.get_by_identifier("b") is None
        assert [d.identifier for d in second.index.chronological] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_previous(self, content_dir, write_post):
        post(write_post, content_dir, "a", "A")
        loader = FileLoader(content_dir)
        holder = SiteHolder(loader)
        first = await holder.init()
        loader.root = content_dir / "gone"
        with pytest.raises(ReadError):
            await holder.reload()
        assert holder.current() is first

    @pytest.mark.asyncio
    async def test_cancelled_reload_keeps_previous(self, content_dir, write_post):
        post(write_post, content_dir, "a", "A")
        post(write_post, content_dir, "b", "B")
        loader = FileLoader(content_dir)
        holder = SiteHolder(loader)
        first = await holder.init()

        original = loader.read_unit

        async def read_then_cancel(path):
            holder.cancel()
            return await original(path)

        loader.read_unit = read_then_cancel
        with pytest.raises(BuildCancelled):
            await holder.reload()
        assert holder.current() is first

    @pytest.mark.asyncio
    async def test_replace_returns_previous(self, content_dir, write_post):
        post(write_post, content_dir, "a", "A")
        holder = SiteHolder(FileLoader(content_dir))
        first = await holder.init()
        second = await holder.reload()
        assert holder.replace(first) is second
        assert holder.current() is first

    @pytest.mark.asyncio
    async def test_teardown(self, content_dir):
        holder = SiteHolder(FileLoader(content_dir))
        await holder.init()
        holder.teardown()
        assert not holder.is_ready


# ============================================================
# Live reload
# ============================================================


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_broadcast_to_clients(self):
        manager = ConnectionManager()
        _, q1 = manager.connect()
        _, q2 = manager.connect()
        await manager.broadcast({"type": "reload"})
        assert q1.get_nowait() == {"type": "reload"}
        assert q2.get_nowait() == {"type": "reload"}

    @pytest.mark.asyncio
    async def test_disconnect(self):
        manager = ConnectionManager()
        client_id, _ = manager.connect()
        assert manager.client_count == 1
        manager.disconnect(client_id)
        assert manager.client_count == 0

    @pytest.mark.asyncio
    async def test_full_queue_drops_event(self):
        manager = ConnectionManager()
        _, queue = manager.connect()
        for i in range(queue.maxsize):
            queue.put_nowait({"n": i})
        await manager.broadcast({"type": "reload"})
        assert queue.qsize() == queue.maxsize


class TestContentWatcher:
    @pytest.mark.asyncio
    async def test_check_reloads_on_change(self, content_dir, write_post):
        post(write_post, content_dir, "a", "A")
        holder = SiteHolder(FileLoader(content_dir))
        await holder.init()
        manager = ConnectionManager()
        _, queue = manager.connect()
        watcher = ContentWatcher(holder, manager)
        watcher._fingerprint = holder.loader.fingerprint()

        assert await watcher.check() is False
        post(write_post, content_dir, "b", "B")
        assert await watcher.check() is True
        assert holder.index.get_by_identifier("b") is not None
        assert queue.get_nowait() == {"type": "reload", "documents": 2}

    @pytest.mark.asyncio
    async def test_start_stop(self, content_dir):
        holder = SiteHolder(FileLoader(content_dir))
        await holder.init()
        watcher = ContentWatcher(holder, ConnectionManager(), interval=0.01)
        watcher.start()
        assert watcher.is_watching
        await asyncio.sleep(0.05)
        watcher.stop()
        assert not watcher.is_watching

    @pytest.mark.asyncio
    async def test_poll_loop_picks_up_change(self, content_dir, write_post):
        holder = SiteHolder(FileLoader(content_dir))
        await holder.init()
        watcher = ContentWatcher(holder, ConnectionManager(), interval=0.01)
        watcher.start()
        try:
            post(write_post, content_dir, "new", "New")
            for _ in range(200):
                if holder.index.get_by_identifier("new") is not None:
                    break
                await asyncio.sleep(0.01)
        finally:
            watcher.stop()
        assert holder.index.get_by_identifier("new") is not None
