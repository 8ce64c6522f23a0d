#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Spool an incoming multipart upload to disk, enforcing the size limit."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import tempfile
from pathlib import Path

import aiofiles
from fastapi import HTTPException, UploadFile, status


# -----------------------------------------------------------------------------

async def spool_upload(upload: UploadFile, spool_dir: Path, max_bytes: int) -> Path:
    """Copy *upload* into a fresh file under *spool_dir* and return its path.

    The caller owns the returned file and must remove it.
    """
    fd, name = tempfile.mkstemp(dir=spool_dir, prefix="upload-")
    spool = Path(name)
    written = 0
    try:
        async with aiofiles.open(fd, "wb") as fh:
            while chunk := await upload.read(65_536):
                written += len(chunk)
                if written > max_bytes:
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=f"Attachment exceeds maximum size ({max_bytes // 1024 // 1024} MB)",
                    )
                await fh.write(chunk)
    except BaseException:
        spool.unlink(missing_ok=True)   # clean up partial file
        raise
    return spool


# -----------------------------------------------------------------------------
