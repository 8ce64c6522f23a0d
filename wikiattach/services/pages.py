#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Page service: the minimal page registry attachments hang off.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


# -----------------------------------------------------------------------------

from wikiattach.models import Page


_SLASHES = re.compile(r"/{2,}")


# -----------------------------------------------------------------------------

def normalise_path(path: str) -> str:
    """Collapse slashes: 'docs//setup/' -> '/docs/setup', '' -> '/'."""
    path = _SLASHES.sub("/", "/" + (path or "").strip().strip("/"))
    return path


# -----------------------------------------------------------------------------

async def create_page(db: AsyncSession, path: str) -> Page:
    path = normalise_path(path)
    existing = await db.execute(select(Page).where(Page.path == path))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Page '{path}' already exists",
        )
    page = Page(path=path)
    db.add(page)
    await db.flush()
    return page


# -----------------------------------------------------------------------------

async def get_page(db: AsyncSession, path: str) -> Page:
    path = normalise_path(path)
    result = await db.execute(select(Page).where(Page.path == path))
    page = result.scalar_one_or_none()
    if not page:
        raise HTTPException(status_code=404, detail=f"Page '{path}' not found")
    return page


# -----------------------------------------------------------------------------
