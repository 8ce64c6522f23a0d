#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Attachment store
================
Persists attachment bytes on disk and their metadata in the database.

Storage layout (all paths relative to settings.attachment_root):
  {id}            primary bytes
  {id}.{kind}     derived variants (thumb, inline)

The store decides *where* bytes go; callers decide *how* they get there by
passing a writer: a callable that receives the destination path and
deposits the bytes (hard link, copy, or archive extraction).  A writer
signals failure by returning False or raising.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


# -----------------------------------------------------------------------------

from wikiattach.core.exceptions import AttachmentError, AttachmentWriteError, NotFoundError
from wikiattach.models import Attachment, Page
from .archive import ArchiveEntry
from .sniffer import sniff


logger = logging.getLogger(__name__)

Writer = Callable[[Path], Optional[bool]]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Transfer strategies
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def link_or_copy(src: Union[str, Path]) -> Writer:
    """Hard-link *src* into place, copying when linking is impossible."""
    def _write(dest: Path) -> bool:
        try:
            os.link(src, dest)
        except OSError:
            # cross-device spool area, or a filesystem without hard links
            shutil.copyfile(src, dest)
        return True
    return _write


# -----------------------------------------------------------------------------

def copy_from(fileobj: BinaryIO) -> Writer:
    def _write(dest: Path) -> bool:
        with open(dest, "wb") as out:
            shutil.copyfileobj(fileobj, out)
        return True
    return _write


# -----------------------------------------------------------------------------

def extract_member(entry: ArchiveEntry) -> Writer:
    def _write(dest: Path) -> bool:
        entry.extract_to(dest)
        return True
    return _write


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Store
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class AttachmentStore:

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    # -------------------------------------------------------------------------

    def path_for(self, attachment_id: int, kind: Optional[str] = None) -> Path:
        name = str(attachment_id) if kind is None else f"{attachment_id}.{kind}"
        return self.root / name

    # -------------------------------------------------------------------------

    async def create_from_stream(
        self,
        db: AsyncSession,
        page: Page,
        name: str,
        writer: Writer,
    ) -> Attachment:
        """Reserve an id, let *writer* fill {root}/{id}, then record the metadata.

        On writer failure the reserved row and any partial file are removed
        and AttachmentWriteError is raised.
        """
        attachment = Attachment(page_id=page.id, name=name)
        db.add(attachment)
        await db.flush()   # assigns the id

        dest = self.path_for(attachment.id)
        if dest.exists():
            logger.warning("Replacing stray file %s for new attachment %d", dest, attachment.id)
            dest.unlink()
        try:
            ok = await asyncio.to_thread(writer, dest)
            if ok is False:
                raise AttachmentWriteError(f"Can't open {name} for writing.")
            if not dest.is_file():
                raise AttachmentWriteError(f"Writer left nothing at {dest.name}")
        except Exception as exc:
            dest.unlink(missing_ok=True)
            await db.delete(attachment)
            await db.flush()
            if isinstance(exc, AttachmentWriteError):
                raise
            if isinstance(exc, AttachmentError):
                logger.warning("Writing attachment %r failed: %s", name, exc.message)
            else:
                logger.exception("Unexpected failure writing attachment %r", name)
            raise AttachmentWriteError(f"Can't open {name} for writing.") from exc

        attachment.content_type = sniff(dest)
        attachment.size_bytes = dest.stat().st_size
        await db.flush()

        logger.info(
            "Stored attachment %d %r (%s, %d bytes) on %s",
            attachment.id, name, attachment.content_type, attachment.size_bytes, page.path,
        )
        return attachment

    # -------------------------------------------------------------------------

    async def get(self, db: AsyncSession, attachment_id: int) -> Attachment:
        attachment = await db.get(Attachment, attachment_id)
        if attachment is None:
            raise NotFoundError("Attachment not found.")
        if not self.path_for(attachment_id).is_file():
            logger.error("Attachment %d has no backing file", attachment_id)
            raise NotFoundError("Attachment file missing from storage.")
        return attachment

    # -------------------------------------------------------------------------

    async def open_stream(self, db: AsyncSession, attachment_id: int) -> BinaryIO:
        await self.get(db, attachment_id)
        return open(self.path_for(attachment_id), "rb")

    # -------------------------------------------------------------------------

    async def list_for_page(self, db: AsyncSession, page: Page) -> list[Attachment]:
        result = await db.execute(
            select(Attachment)
            .where(Attachment.page_id == page.id)
            .order_by(Attachment.id)
        )
        return list(result.scalars().all())

    # -------------------------------------------------------------------------

    async def delete(self, db: AsyncSession, attachment_id: int) -> None:
        """Drop the metadata row.  The bytes stay on disk."""
        attachment = await db.get(Attachment, attachment_id)
        if attachment is None:
            raise NotFoundError("Attachment not found.")
        await db.delete(attachment)
        await db.flush()
        logger.info("Deleted attachment %d %r (file kept)", attachment_id, attachment.name)


# -----------------------------------------------------------------------------
