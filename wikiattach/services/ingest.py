#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Ingestion orchestrator
======================
Turns one upload into one or many attachments:

  1. sniff the spooled payload
  2. zip container  -> expand and store every file member; a member that
                       fails is reported and the rest carry on
     anything else  -> store the payload as a single attachment (hard link
                       from the spool area, copy as a fallback)
  3. summarise the outcome as a status code plus user-facing message

No AttachmentError escapes ingest_upload().
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Optional

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession


# -----------------------------------------------------------------------------

from wikiattach.core.exceptions import ArchiveOpenError, AttachmentError
from wikiattach.models import Attachment, Page
from .archive import expand
from .sniffer import ZIP_MIME, sniff
from .store import AttachmentStore, extract_member, link_or_copy


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

@dataclass
class IngestOutcome:
    status_code: int
    message: str
    created: list[Attachment] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    archive: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors


# -----------------------------------------------------------------------------

def display_name(filename: Optional[str]) -> str:
    """Client filename without any directory components."""
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    return name or "upload"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Entry point
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def ingest_upload(
    db: AsyncSession,
    store: AttachmentStore,
    page: Page,
    filename: Optional[str],
    spool_path: Path,
    *,
    max_member_bytes: Optional[int] = None,
) -> IngestOutcome:
    name = display_name(filename)
    mime = sniff(spool_path)
    logger.debug("Upload %r for %s sniffed as %s", name, page.path, mime)

    if mime == ZIP_MIME:
        return await _ingest_archive(db, store, page, spool_path, max_member_bytes)
    return await _ingest_single(db, store, page, name, spool_path)


# -----------------------------------------------------------------------------

async def _ingest_single(
    db: AsyncSession,
    store: AttachmentStore,
    page: Page,
    name: str,
    spool_path: Path,
) -> IngestOutcome:
    try:
        attachment = await store.create_from_stream(db, page, name, link_or_copy(spool_path))
    except AttachmentError as exc:
        logger.error("Single upload %r on %s failed: %s", name, page.path, exc.message)
        message = f"Can't open {name} for writing."
        return IngestOutcome(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message=message,
            errors=[message],
        )
    return IngestOutcome(
        status_code=status.HTTP_201_CREATED,
        message=f"Attached {name}.",
        created=[attachment],
    )


# -----------------------------------------------------------------------------

async def _ingest_archive(
    db: AsyncSession,
    store: AttachmentStore,
    page: Page,
    spool_path: Path,
    max_member_bytes: Optional[int],
) -> IngestOutcome:
    try:
        entries = expand(spool_path, max_member_bytes=max_member_bytes)
    except ArchiveOpenError as exc:
        logger.warning("Rejecting archive for %s: %s", page.path, exc.message)
        message = "Can't open zipfile for reading."
        return IngestOutcome(
            status_code=422,
            message=message,
            errors=[message],
            archive=True,
        )

    outcome = IngestOutcome(status_code=status.HTTP_201_CREATED, message="", archive=True)
    for entry in entries:
        try:
            attachment = await store.create_from_stream(db, page, entry.name, extract_member(entry))
        except AttachmentError as exc:
            # the store reports every writer failure as a write error
            cause = exc.__cause__ or exc
            logger.warning("Archive member %r on %s failed: %s", entry.name, page.path, cause)
            outcome.errors.append(f"Can't extract {entry.name} from zip.")
            continue
        outcome.created.append(attachment)

    logger.info(
        "Archive for %s: %d stored, %d failed",
        page.path, len(outcome.created), len(outcome.errors),
    )

    if not outcome.errors:
        outcome.message = f"Attached {len(outcome.created)} file(s) from archive."
    elif outcome.created:
        outcome.status_code = status.HTTP_207_MULTI_STATUS
        outcome.message = (
            f"Attached {len(outcome.created)} file(s); "
            f"{len(outcome.errors)} could not be extracted."
        )
    else:
        outcome.status_code = 422
        outcome.message = "No files could be extracted from the archive."
    return outcome


# -----------------------------------------------------------------------------
