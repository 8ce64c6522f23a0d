#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pages router
============
POST   /api/v1/pages                            create a page          [auth]
GET    /api/v1/pages/{path}/attachments         list attachments
POST   /api/v1/pages/{path}/attachments         upload file or zip     [edit]
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from wikiattach.core.config import Settings, get_settings
from wikiattach.core.database import get_db
from wikiattach.core.security import credentials_error, get_optional_user_id
from wikiattach.schemas import AttachmentResponse, IngestResponse, PageCreate, PageResponse
from wikiattach.services import pages as page_svc
from wikiattach.services.ingest import ingest_upload
from wikiattach.services.permissions import require_editor, resolve_user
from wikiattach.services.store import AttachmentStore
from wikiattach.services.uploads import spool_upload

from .attachments import att_response
from .deps import get_attachment_store


# -----------------------------------------------------------------------------

router = APIRouter(prefix="/pages", tags=["pages"])


# -----------------------------------------------------------------------------

@router.post("", response_model=PageResponse, status_code=status.HTTP_201_CREATED)
async def create_page(
    data: PageCreate,
    user_id: str | None = Depends(get_optional_user_id),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    if await resolve_user(db, user_id, settings.preferences) is None:
        raise credentials_error()
    return await page_svc.create_page(db, data.path)


# -----------------------------------------------------------------------------

@router.get("/{page_path:path}/attachments", response_model=list[AttachmentResponse])
async def list_attachments(
    page_path: str,
    settings: Settings = Depends(get_settings),
    store: AttachmentStore = Depends(get_attachment_store),
    db: AsyncSession = Depends(get_db),
):
    page = await page_svc.get_page(db, page_path)
    attachments = await store.list_for_page(db, page)
    return [att_response(a, settings.base_url) for a in attachments]


# -----------------------------------------------------------------------------

@router.post(
    "/{page_path:path}/attachments",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachments(
    page_path: str,
    response: Response,
    file: UploadFile = File(...),
    user_id: str | None = Depends(get_optional_user_id),
    settings: Settings = Depends(get_settings),
    store: AttachmentStore = Depends(get_attachment_store),
    db: AsyncSession = Depends(get_db),
):
    page = await page_svc.get_page(db, page_path)
    await require_editor(db, user_id, page.path, settings.preferences)

    spool = await spool_upload(file, settings.spool_dir, settings.max_attachment_bytes)
    try:
        outcome = await ingest_upload(
            db, store, page, file.filename, spool,
            max_member_bytes=settings.max_attachment_bytes,
        )
    finally:
        spool.unlink(missing_ok=True)

    if not outcome.created and not outcome.ok:
        detail = outcome.message
        if outcome.errors != [outcome.message]:
            detail = " ".join([outcome.message, *outcome.errors])
        raise HTTPException(status_code=outcome.status_code, detail=detail)

    response.status_code = outcome.status_code
    return IngestResponse(
        ok=outcome.ok,
        message=outcome.message,
        attachments=[att_response(a, settings.base_url) for a in outcome.created],
        errors=outcome.errors,
    )


# -----------------------------------------------------------------------------
