#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Derived artifact cache
======================
Lazily produces image variants of an attachment and keeps them on disk
beside the original ({id}.thumb, {id}.inline).  The presence of the file
is the cache-hit signal; nothing is invalidated here.

Derivations are deterministic, so two processes racing on a cold key
write identical bytes and the last os.replace wins.  Within one process a
per-key lock stops the second request from redoing the work.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import io
import logging
import os
import tempfile
import weakref
from enum import Enum
from pathlib import Path
from typing import Callable

from PIL import Image, ImageOps, UnidentifiedImageError
from sqlalchemy.ext.asyncio import AsyncSession


# -----------------------------------------------------------------------------

from wikiattach.core.exceptions import DerivationError
from .store import AttachmentStore


logger = logging.getLogger(__name__)

Derive = Callable[[bytes], bytes]


# -----------------------------------------------------------------------------

class DerivedKind(str, Enum):
    THUMB = "thumb"
    INLINE = "inline"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Image derivations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def make_thumbnail(data: bytes, size: tuple[int, int] = (100, 100)) -> bytes:
    """Centre-crop and scale to exactly *size*."""
    with _open_image(data) as img:
        fmt = img.format or "PNG"
        thumb = ImageOps.fit(ImageOps.exif_transpose(img), size, Image.Resampling.LANCZOS)
        return _encode(thumb, fmt)


# -----------------------------------------------------------------------------

def make_inline(data: bytes, bounds: tuple[int, int] = (800, 600)) -> bytes:
    """Shrink proportionally to fit *bounds*; smaller images are left as they are."""
    with _open_image(data) as img:
        fmt = img.format or "PNG"
        inline = ImageOps.exif_transpose(img)
        inline.thumbnail(bounds, Image.Resampling.LANCZOS)
        return _encode(inline, fmt)


# -----------------------------------------------------------------------------

def _open_image(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise DerivationError(f"Not a readable image: {exc}") from exc
    return img


def _encode(img: Image.Image, fmt: str) -> bytes:
    if fmt == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    out = io.BytesIO()
    try:
        img.save(out, format=fmt)
    except (OSError, KeyError, ValueError) as exc:
        raise DerivationError(f"Could not encode {fmt} image: {exc}") from exc
    return out.getvalue()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Cache
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_key_locks: "weakref.WeakValueDictionary[tuple[str, int, str], asyncio.Lock]" = (
    weakref.WeakValueDictionary()
)


def _lock_for(key: tuple[str, int, str]) -> asyncio.Lock:
    lock = _key_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _key_locks[key] = lock
    return lock


# -----------------------------------------------------------------------------

class DerivedArtifactCache:

    def __init__(self, store: AttachmentStore) -> None:
        self.store = store

    async def get_or_create(
        self,
        db: AsyncSession,
        attachment_id: int,
        kind: DerivedKind | str,
        derive: Derive,
    ) -> Path:
        """Return the path of the cached (attachment_id, kind) variant, deriving it if absent.

        Raises NotFoundError for an unknown attachment and DerivationError if
        *derive* fails.
        """
        kind = DerivedKind(kind)
        await self.store.get(db, attachment_id)
        target = self.store.path_for(attachment_id, kind.value)

        if target.is_file():
            logger.debug("Cache hit for %s", target.name)
            return target

        lock = _lock_for((str(self.store.root), attachment_id, kind.value))
        async with lock:
            if target.is_file():
                return target
            source = self.store.path_for(attachment_id)
            data = await asyncio.to_thread(source.read_bytes)
            try:
                derived = await asyncio.to_thread(derive, data)
            except DerivationError:
                raise
            except Exception as exc:
                raise DerivationError(f"Could not derive {kind.value}: {exc}") from exc
            await asyncio.to_thread(_replace_atomically, target, derived)
            logger.info("Derived %s for attachment %d (%d bytes)", kind.value, attachment_id, len(derived))
        return target


# -----------------------------------------------------------------------------

def _replace_atomically(target: Path, data: bytes) -> None:
    fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp, target)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


# -----------------------------------------------------------------------------
