#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Storage tests
=============
Coverage:
  - AttachmentStore: writers, rollback on failure, delete keeps bytes
  - DerivedArtifactCache: hit/miss, re-derivation, failure isolation
  - Pillow derivations: thumbnail and inline geometry
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import io
import os

import pytest
from PIL import Image


# -----------------------------------------------------------------------------

from tests.conftest import create_page, make_image
from wikiattach.core.exceptions import AttachmentWriteError, DerivationError, NotFoundError
from wikiattach.services.derived import (
    DerivedArtifactCache,
    DerivedKind,
    make_inline,
    make_thumbnail,
)
from wikiattach.services.store import copy_from, link_or_copy


# -----------------------------------------------------------------------------

async def store_bytes(db, store, data: bytes, name: str = "file.bin", path: str = "/Sandbox"):
    page = await create_page(db, path)
    return await store.create_from_stream(db, page, name, copy_from(io.BytesIO(data)))


def image_size(data: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(data)) as img:
        return img.size


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. Attachment store
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@pytest.mark.asyncio
class TestStore:
    async def test_copy_from_stores_identical_bytes(self, db, store):
        att = await store_bytes(db, store, b"hello", name="notes.txt")
        assert store.path_for(att.id).read_bytes() == b"hello"
        assert att.content_type == "text/plain"
        assert att.size_bytes == 5
        assert att.name == "notes.txt"

    async def test_content_type_ignores_name(self, db, store):
        att = await store_bytes(db, store, make_image(), name="archive.zip")
        assert att.content_type == "image/png"
        assert att.is_image

    async def test_link_or_copy_links(self, db, store, tmp_path):
        src = tmp_path / "spool"
        src.write_bytes(b"linked bytes")
        page = await create_page(db)
        att = await store.create_from_stream(db, page, "a.txt", link_or_copy(src))
        assert store.path_for(att.id).read_bytes() == b"linked bytes"

    async def test_link_or_copy_falls_back_to_copy(self, db, store, tmp_path, monkeypatch):
        def _no_links(src, dst):
            raise OSError("Invalid cross-device link")

        monkeypatch.setattr(os, "link", _no_links)
        src = tmp_path / "spool"
        src.write_bytes(b"copied bytes")
        page = await create_page(db)
        att = await store.create_from_stream(db, page, "a.txt", link_or_copy(src))
        assert store.path_for(att.id).read_bytes() == b"copied bytes"
        assert src.exists()

    async def test_writer_returning_false_leaves_nothing(self, db, store):
        page = await create_page(db)
        with pytest.raises(AttachmentWriteError) as info:
            await store.create_from_stream(db, page, "nope.txt", lambda dest: False)
        assert info.value.message == "Can't open nope.txt for writing."
        assert await store.list_for_page(db, page) == []
        assert list(store.root.iterdir()) == []

    async def test_writer_raising_removes_partial_file(self, db, store):
        def _half_written(dest):
            dest.write_bytes(b"partial")
            raise OSError("disk full")

        page = await create_page(db)
        with pytest.raises(AttachmentWriteError):
            await store.create_from_stream(db, page, "big.bin", _half_written)
        assert await store.list_for_page(db, page) == []
        assert list(store.root.iterdir()) == []

    async def test_list_is_ordered_by_id(self, db, store):
        page = await create_page(db)
        for name in ("c", "a", "b"):
            await store.create_from_stream(db, page, name, copy_from(io.BytesIO(b"x")))
        names = [a.name for a in await store.list_for_page(db, page)]
        assert names == ["c", "a", "b"]

    async def test_open_stream(self, db, store):
        att = await store_bytes(db, store, b"stream me")
        with await store.open_stream(db, att.id) as fh:
            assert fh.read() == b"stream me"

    async def test_delete_keeps_bytes_on_disk(self, db, store):
        att = await store_bytes(db, store, b"keep me")
        path = store.path_for(att.id)
        await store.delete(db, att.id)
        assert path.read_bytes() == b"keep me"
        with pytest.raises(NotFoundError):
            await store.get(db, att.id)

    async def test_deleted_ids_are_not_reused(self, db, store):
        first = await store_bytes(db, store, b"first")
        first_id = first.id
        await store.delete(db, first_id)
        page = await create_page(db, "/Other")
        second = await store.create_from_stream(db, page, "b", copy_from(io.BytesIO(b"second")))
        assert second.id > first_id
        assert store.path_for(first_id).read_bytes() == b"first"

    async def test_delete_unknown(self, db, store):
        with pytest.raises(NotFoundError):
            await store.delete(db, 9999)

    async def test_get_with_missing_file(self, db, store):
        att = await store_bytes(db, store, b"gone soon")
        store.path_for(att.id).unlink()
        with pytest.raises(NotFoundError) as info:
            await store.get(db, att.id)
        assert "missing" in info.value.message


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. Derived artifact cache
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class CountingDerive:
    def __init__(self, fn=make_thumbnail):
        self.fn = fn
        self.calls = 0

    def __call__(self, data: bytes) -> bytes:
        self.calls += 1
        return self.fn(data)


@pytest.mark.asyncio
class TestDerivedCache:
    async def test_miss_then_hit(self, db, store):
        att = await store_bytes(db, store, make_image(), name="photo.png")
        cache = DerivedArtifactCache(store)
        derive = CountingDerive()

        first = await cache.get_or_create(db, att.id, DerivedKind.THUMB, derive)
        second = await cache.get_or_create(db, att.id, "thumb", derive)
        assert first == second == store.path_for(att.id, "thumb")
        assert derive.calls == 1
        assert image_size(first.read_bytes()) == (100, 100)

    async def test_kinds_are_cached_separately(self, db, store):
        att = await store_bytes(db, store, make_image(), name="photo.png")
        cache = DerivedArtifactCache(store)
        thumb = await cache.get_or_create(db, att.id, DerivedKind.THUMB, make_thumbnail)
        inline = await cache.get_or_create(db, att.id, DerivedKind.INLINE, make_inline)
        assert thumb != inline
        assert image_size(inline.read_bytes()) == (400, 300)

    async def test_rederives_after_external_removal(self, db, store):
        att = await store_bytes(db, store, make_image(), name="photo.png")
        cache = DerivedArtifactCache(store)
        derive = CountingDerive()

        path = await cache.get_or_create(db, att.id, DerivedKind.THUMB, derive)
        path.unlink()
        await cache.get_or_create(db, att.id, DerivedKind.THUMB, derive)
        assert derive.calls == 2
        assert path.is_file()

    async def test_concurrent_requests_derive_once(self, db, store):
        att = await store_bytes(db, store, make_image(), name="photo.png")
        cache = DerivedArtifactCache(store)
        derive = CountingDerive()

        paths = await asyncio.gather(*[
            cache.get_or_create(db, att.id, DerivedKind.THUMB, derive) for _ in range(4)
        ])
        assert len(set(paths)) == 1
        assert derive.calls == 1

    async def test_failure_leaves_source_intact(self, db, store):
        att = await store_bytes(db, store, b"just text", name="readme.txt")
        cache = DerivedArtifactCache(store)

        with pytest.raises(DerivationError):
            await cache.get_or_create(db, att.id, DerivedKind.THUMB, make_thumbnail)
        assert (await store.get(db, att.id)).name == "readme.txt"
        assert sorted(p.name for p in store.root.iterdir()) == [str(att.id)]

    async def test_unexpected_derive_error_is_wrapped(self, db, store):
        def _boom(data):
            raise ValueError("boom")

        att = await store_bytes(db, store, make_image(), name="photo.png")
        cache = DerivedArtifactCache(store)
        with pytest.raises(DerivationError) as info:
            await cache.get_or_create(db, att.id, DerivedKind.INLINE, _boom)
        assert "boom" in info.value.message

    async def test_unknown_attachment(self, db, store):
        cache = DerivedArtifactCache(store)
        with pytest.raises(NotFoundError):
            await cache.get_or_create(db, 424242, DerivedKind.THUMB, make_thumbnail)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. Derivations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestDerivations:
    def test_thumbnail_is_exact_size(self):
        assert image_size(make_thumbnail(make_image(size=(400, 300)))) == (100, 100)

    def test_thumbnail_custom_size(self):
        assert image_size(make_thumbnail(make_image(), size=(64, 64))) == (64, 64)

    def test_thumbnail_keeps_format(self):
        out = make_thumbnail(make_image(fmt="JPEG"))
        with Image.open(io.BytesIO(out)) as img:
            assert img.format == "JPEG"

    def test_inline_shrinks_to_bounds(self):
        assert image_size(make_inline(make_image(size=(1600, 1200)))) == (800, 600)

    def test_inline_keeps_aspect_ratio(self):
        w, h = image_size(make_inline(make_image(size=(2000, 500))))
        assert w == 800
        assert h == 200

    def test_inline_never_enlarges(self):
        assert image_size(make_inline(make_image(size=(200, 100)))) == (200, 100)

    def test_non_image(self):
        with pytest.raises(DerivationError):
            make_thumbnail(b"%PDF-1.4 not an image")


# -----------------------------------------------------------------------------
