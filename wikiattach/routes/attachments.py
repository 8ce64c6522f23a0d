#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Attachments router
==================
GET    /api/v1/attachments/{id}              view inline
GET    /api/v1/attachments/{id}/download     force download
GET    /api/v1/attachments/{id}/thumb        100x100 thumbnail
GET    /api/v1/attachments/{id}/inline       image resized for inline display
GET    /api/v1/attachments/{id}/insert       markup linking the attachment  [edit]
DELETE /api/v1/attachments/{id}              forget the attachment          [edit]
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from functools import partial
from pathlib import Path, PurePosixPath

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from wikiattach.core.config import Settings, get_settings
from wikiattach.core.database import get_db
from wikiattach.core.exceptions import AttachmentError
from wikiattach.core.security import get_optional_user_id
from wikiattach.models import Attachment, Page
from wikiattach.schemas import AttachmentResponse, InsertResponse, OKResponse
from wikiattach.services.derived import (
    DerivedArtifactCache,
    DerivedKind,
    make_inline,
    make_thumbnail,
)
from wikiattach.services.permissions import require_editor
from wikiattach.services.store import AttachmentStore

from .deps import get_attachment_store, get_derived_cache


# -----------------------------------------------------------------------------

router = APIRouter(prefix="/attachments", tags=["attachments"])


# -----------------------------------------------------------------------------

@router.get("/{attachment_id}")
async def view_attachment(
    attachment_id: int,
    store: AttachmentStore = Depends(get_attachment_store),
    db: AsyncSession = Depends(get_db),
):
    att = await _load(db, store, attachment_id)
    return _file_response(store.path_for(att.id), att, "inline")


# -----------------------------------------------------------------------------

@router.get("/{attachment_id}/download")
async def download_attachment(
    attachment_id: int,
    store: AttachmentStore = Depends(get_attachment_store),
    db: AsyncSession = Depends(get_db),
):
    att = await _load(db, store, attachment_id)
    return _file_response(store.path_for(att.id), att, "attachment")


# -----------------------------------------------------------------------------

@router.get("/{attachment_id}/thumb")
async def thumb_attachment(
    attachment_id: int,
    settings: Settings = Depends(get_settings),
    cache: DerivedArtifactCache = Depends(get_derived_cache),
    db: AsyncSession = Depends(get_db),
):
    size = settings.thumb_box
    return await _derived_response(
        db, cache, attachment_id, DerivedKind.THUMB, partial(make_thumbnail, size=size)
    )


# -----------------------------------------------------------------------------

@router.get("/{attachment_id}/inline")
async def inline_attachment(
    attachment_id: int,
    settings: Settings = Depends(get_settings),
    cache: DerivedArtifactCache = Depends(get_derived_cache),
    db: AsyncSession = Depends(get_db),
):
    bounds = settings.inline_bounds
    return await _derived_response(
        db, cache, attachment_id, DerivedKind.INLINE, partial(make_inline, bounds=bounds)
    )


# -----------------------------------------------------------------------------

@router.get("/{attachment_id}/insert", response_model=InsertResponse)
async def insert_attachment(
    attachment_id: int,
    user_id: str | None = Depends(get_optional_user_id),
    settings: Settings = Depends(get_settings),
    store: AttachmentStore = Depends(get_attachment_store),
    db: AsyncSession = Depends(get_db),
):
    att = await _load(db, store, attachment_id)
    page = await db.get(Page, att.page_id)
    await require_editor(db, user_id, page.path, settings.preferences)

    url = f"{settings.base_url}/api/v1/attachments/{att.id}"
    if att.is_image:
        append = f'\n\n<div class="photo">"!{url}/thumb!":{url}</div>'
    else:
        append = f'\n\n"{att.name}":{url}'
    return InsertResponse(append=append)


# -----------------------------------------------------------------------------

@router.delete("/{attachment_id}", response_model=OKResponse)
async def delete_attachment(
    attachment_id: int,
    user_id: str | None = Depends(get_optional_user_id),
    settings: Settings = Depends(get_settings),
    store: AttachmentStore = Depends(get_attachment_store),
    db: AsyncSession = Depends(get_db),
):
    att = await db.get(Attachment, attachment_id)
    if att is None:
        raise HTTPException(status_code=404, detail="Attachment not found.")
    page = await db.get(Page, att.page_id)
    await require_editor(db, user_id, page.path, settings.preferences)

    name = att.name
    try:
        await store.delete(db, attachment_id)
    except AttachmentError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return OKResponse(message=f"Attachment '{name}' deleted")


# -----------------------------------------------------------------------------

def att_response(a: Attachment, base_url: str) -> dict:
    url = f"{base_url}/api/v1/attachments/{a.id}"
    return {
        "id":           a.id,
        "name":         a.name,
        "content_type": a.content_type,
        "size_bytes":   a.size_bytes,
        "created_at":   a.created_at,
        "url":          url,
        "thumb_url":    f"{url}/thumb" if a.is_image else None,
    }


# -----------------------------------------------------------------------------

async def _load(db: AsyncSession, store: AttachmentStore, attachment_id: int) -> Attachment:
    try:
        return await store.get(db, attachment_id)
    except AttachmentError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)


# -----------------------------------------------------------------------------

async def _derived_response(db, cache, attachment_id, kind, derive):
    try:
        path = await cache.get_or_create(db, attachment_id, kind, derive)
    except AttachmentError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    att = await db.get(Attachment, attachment_id)
    return _file_response(path, att, "inline")


# -----------------------------------------------------------------------------

def _file_response(path: Path, att: Attachment, disposition: str) -> FileResponse:
    # zip members keep their directory prefix in the display name
    filename = PurePosixPath(att.name).name or str(att.id)
    return FileResponse(
        path=str(path),
        media_type=att.content_type,
        filename=filename,
        content_disposition_type=disposition,
    )


# -----------------------------------------------------------------------------
