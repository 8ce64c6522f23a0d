#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Authentication helpers
======================
bcrypt password hashes and short-lived HS256 bearer tokens whose subject
is the user id.  Requests without a token are allowed through as
anonymous; what an anonymous caller may do is decided by the permission
service.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt


# -----------------------------------------------------------------------------

from .config import get_settings


TOKEN_TYPE = "access"

bearer_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


# -----------------------------------------------------------------------------

def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        # malformed stored hash
        return False


# -----------------------------------------------------------------------------

def credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


# -----------------------------------------------------------------------------

def create_access_token(user_id: uuid.UUID | str, lifetime: Optional[timedelta] = None) -> str:
    settings = get_settings()
    lifetime = lifetime or timedelta(minutes=settings.access_token_expire_minutes)
    issued = datetime.now(tz=timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": issued,
        "exp": issued + lifetime,
        "type": TOKEN_TYPE,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


# -----------------------------------------------------------------------------

def token_subject(token: str) -> str:
    """Validate *token* and return its subject; 401 for anything unacceptable."""
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise credentials_error()
    subject = claims.get("sub")
    if not subject or claims.get("type") != TOKEN_TYPE:
        raise credentials_error()
    return subject


# -----------------------------------------------------------------------------

async def get_optional_user_id(token: Optional[str] = Depends(bearer_scheme)) -> Optional[str]:
    """FastAPI dependency: token subject, or None when no token was sent."""
    return token_subject(token) if token else None


# -----------------------------------------------------------------------------
