# tests/unit/cache/test_unit_local_store.py — v2
"""Tests for cache/local_store.py — tarball snapshots with exact/prefix restore."""

from __future__ import annotations

import io
import tarfile
from datetime import datetime, timezone

import pytest

from docspublisher.cache.local_store import LocalCacheStore
from docspublisher.cache.models import CacheEntry


@pytest.fixture
def store(tmp_cache_dir):
    return LocalCacheStore(tmp_cache_dir)


@pytest.fixture
def workdir(tmp_path, tree_writer):
    return tree_writer(tmp_path / "work", {
        "_freeze/tutorials/regression/execute-results/html.json": '{"v": 1}',
        "_freeze/site_libs/x.js": "js",
    })


class TestLocalCacheStore:
    @pytest.mark.asyncio
    async def test_save_and_get(self, store, workdir):
        entry = await store.save("Linux-aaa-bbb", ["_freeze"], workdir)
        assert entry is not None
        assert entry.paths == ["_freeze"]
        assert entry.size_bytes > 0
        got = await store.get("Linux-aaa-bbb")
        assert got is not None and got.key == "Linux-aaa-bbb"

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        assert await store.get("nope") is None

    @pytest.mark.asyncio
    async def test_keys_are_immutable(self, store, workdir):
        await store.save("k", ["_freeze"], workdir)
        assert await store.save("k", ["_freeze"], workdir) is None
        assert len(await store.list_entries()) == 1

    @pytest.mark.asyncio
    async def test_save_nothing_present(self, store, tmp_path):
        assert await store.save("k", ["_freeze"], tmp_path) is None
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_exact_restore_replaces_tree(self, store, workdir, tmp_path, tree_writer):
        await store.save("Linux-aaa-bbb", ["_freeze"], workdir)
        target = tree_writer(tmp_path / "target", {"_freeze/stale.json": "old"})
        result = await store.restore("Linux-aaa-bbb", ["Linux-aaa"], target)
        assert result.hit_level == "exact"
        assert result.is_exact_hit
        assert result.matched_key == "Linux-aaa-bbb"
        assert not (target / "_freeze" / "stale.json").exists()
        restored = target / "_freeze/tutorials/regression/execute-results/html.json"
        assert restored.read_text() == '{"v": 1}'

    @pytest.mark.asyncio
    async def test_weaker_key_fallback(self, store, workdir, tmp_path):
        await store.save("Linux-aaa-old", ["_freeze"], workdir)
        target = tmp_path / "target"
        result = await store.restore("Linux-aaa-new", ["Linux-aaa"], target)
        assert result.hit_level == "partial"
        assert result.is_hit and not result.is_exact_hit
        assert result.matched_key == "Linux-aaa-old"
        assert (target / "_freeze" / "site_libs" / "x.js").exists()

    @pytest.mark.asyncio
    async def test_fallback_prefers_newest(self, store, workdir, tmp_path, tree_writer):
        await store.save("Linux-aaa-1", ["_freeze"], workdir)
        tree_writer(workdir, {"_freeze/site_libs/x.js": "newer"})
        await store.save("Linux-aaa-2", ["_freeze"], workdir)
        result = await store.restore("Linux-aaa-3", ["Linux-aaa"], tmp_path / "t")
        assert result.matched_key == "Linux-aaa-2"
        assert (tmp_path / "t" / "_freeze" / "site_libs" / "x.js").read_text() == "newer"

    @pytest.mark.asyncio
    async def test_miss_is_not_an_error(self, store, tmp_path):
        result = await store.restore("Linux-x-y", ["Linux-x"], tmp_path)
        assert result.hit_level is None
        assert result.matched_key is None
        assert not result.is_hit

    @pytest.mark.asyncio
    async def test_other_lock_hash_does_not_match(self, store, workdir, tmp_path):
        await store.save("Linux-bbb-1", ["_freeze"], workdir)
        result = await store.restore("Linux-aaa-1", ["Linux-aaa"], tmp_path / "t")
        assert result.hit_level is None

    @pytest.mark.asyncio
    async def test_delete(self, store, workdir):
        entry = await store.save("k", ["_freeze"], workdir)
        await store.delete("k")
        assert await store.get("k") is None
        assert not (store.root / entry.archive).exists()

    @pytest.mark.asyncio
    async def test_corrupt_sidecar_ignored(self, store, workdir):
        await store.save("k", ["_freeze"], workdir)
        (store.root / "garbage.json").write_text("{not json", encoding="utf-8")
        entries = await store.list_entries()
        assert [e.key for e in entries] == ["k"]

    @pytest.mark.asyncio
    async def test_prune_keeps_newest(self, store, workdir):
        for i in range(4):
            await store.save(f"Linux-aaa-{i}", ["_freeze"], workdir)
        removed = await store.prune(2)
        assert sorted(removed) == ["Linux-aaa-0", "Linux-aaa-1"]
        assert sorted(e.key for e in await store.list_entries()) == ["Linux-aaa-2", "Linux-aaa-3"]
        assert len(list(store.root.glob("*.tar.gz"))) == 2

    @pytest.mark.asyncio
    async def test_prune_never_removes_protected(self, store, workdir):
        for i in range(3):
            await store.save(f"Linux-aaa-{i}", ["_freeze"], workdir)
        removed = await store.prune(1, protect=("Linux-aaa-0",))
        assert sorted(removed) == ["Linux-aaa-1", "Linux-aaa-2"]
        assert [e.key for e in await store.list_entries()] == ["Linux-aaa-0"]

    @pytest.mark.asyncio
    async def test_load_refuses_members_outside_target(self, store, tmp_path):
        payload = b"escaped"
        with tarfile.open(store.root / "evil.tar.gz", "w:gz") as tar:
            info = tarfile.TarInfo("../escaped.txt")
            info.size = len(payload)
            tar.addfile(info, io.BytesIO(payload))
        entry = CacheEntry(
            key="evil", paths=["_freeze"], archive="evil.tar.gz",
            size_bytes=1, created_at=datetime.now(timezone.utc),
        )
        target = tmp_path / "work"
        with pytest.raises(tarfile.FilterError):
            await store.load(entry, target)
        assert not (tmp_path / "escaped.txt").exists()
