#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Edit permissions
================
Who may add, insert or delete attachments on a page.

Site preferences are passed in explicitly:
  - restricted_user off  -> every active user may edit everywhere
  - restricted_user on   -> admins everywhere, others only below /{login}
  - anonymous_user       -> login that token-less requests act as
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


# -----------------------------------------------------------------------------

from wikiattach.core.config import Preferences
from wikiattach.core.security import credentials_error
from wikiattach.models import User


# -----------------------------------------------------------------------------

def is_admin(user: User, prefs: Preferences) -> bool:
    return user.is_admin or user.login in prefs.admins


# -----------------------------------------------------------------------------

def can_edit(user: Optional[User], page_path: str, prefs: Preferences) -> bool:
    if user is None or not user.is_active:
        return False
    if not prefs.restricted_user:
        return True
    if is_admin(user, prefs):
        return True
    home = user.home_path.lower()
    path = page_path.lower()
    return path == home or path.startswith(home + "/")


# -----------------------------------------------------------------------------

async def resolve_user(
    db: AsyncSession,
    user_id: Optional[str],
    prefs: Preferences,
) -> Optional[User]:
    """Map a token subject (or its absence) to a User."""
    if user_id is None:
        if not prefs.anonymous_user:
            return None
        result = await db.execute(select(User).where(User.login == prefs.anonymous_user))
        return result.scalar_one_or_none()
    try:
        uid = uuid.UUID(user_id)
    except ValueError:
        raise credentials_error()
    user = await db.get(User, uid)
    if user is None:
        raise credentials_error()
    return user


# -----------------------------------------------------------------------------

async def require_editor(
    db: AsyncSession,
    user_id: Optional[str],
    page_path: str,
    prefs: Preferences,
) -> User:
    """Return the acting user or raise 401 (nobody) / 403 (not allowed)."""
    user = await resolve_user(db, user_id, prefs)
    if user is None:
        raise credentials_error()
    if not can_edit(user, page_path, prefs):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You may not edit attachments on {page_path}",
        )
    return user


# -----------------------------------------------------------------------------
