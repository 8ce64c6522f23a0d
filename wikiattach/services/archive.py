#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Archive expander
================
Opens a zip container and yields its file members one at a time.
Directory entries are skipped.  Members are decompressed straight into a
destination file in chunks, so large archives never sit in memory.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import lzma
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union


# -----------------------------------------------------------------------------

from wikiattach.core.exceptions import ArchiveMemberExtractError, ArchiveOpenError


logger = logging.getLogger(__name__)

CHUNK_SIZE = 65_536

# Raised by zipfile while reading a damaged, encrypted or exotic member
_MEMBER_ERRORS = (
    zipfile.BadZipFile, zlib.error, lzma.LZMAError, EOFError,
    NotImplementedError, RuntimeError, ValueError, OSError,
)


# -----------------------------------------------------------------------------

@dataclass
class ArchiveEntry:
    """One file member of an open archive."""

    name: str
    size: int
    _zip: zipfile.ZipFile
    _info: zipfile.ZipInfo
    _max_bytes: Optional[int] = None

    def extract_to(self, dest: Union[str, Path]) -> None:
        """Stream the decompressed member into *dest*."""
        if self._max_bytes is not None and self.size > self._max_bytes:
            raise ArchiveMemberExtractError(self.name, f"exceeds {self._max_bytes} bytes")
        written = 0
        try:
            with self._zip.open(self._info) as src, open(dest, "wb") as out:
                while chunk := src.read(CHUNK_SIZE):
                    written += len(chunk)
                    # declared sizes can lie
                    if self._max_bytes is not None and written > self._max_bytes:
                        raise ArchiveMemberExtractError(
                            self.name, f"exceeds {self._max_bytes} bytes"
                        )
                    out.write(chunk)
        except _MEMBER_ERRORS as exc:
            raise ArchiveMemberExtractError(self.name, str(exc)) from exc


# -----------------------------------------------------------------------------

def expand(
    source: Union[str, Path, BinaryIO],
    *,
    max_member_bytes: Optional[int] = None,
) -> Iterator[ArchiveEntry]:
    """Open *source* as a zip archive and return an iterator of its file members.

    The container is opened immediately, so a corrupt header raises
    ArchiveOpenError here rather than on first iteration.  The iterator is
    single-pass and closes the archive once exhausted.
    """
    try:
        zf = zipfile.ZipFile(source)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, NotImplementedError, ValueError) as exc:
        # NotImplementedError: the central directory asks for a newer zip version
        raise ArchiveOpenError(f"Can't open zipfile for reading: {exc}") from exc
    return _iter_entries(zf, max_member_bytes)


# -----------------------------------------------------------------------------

def _iter_entries(zf: zipfile.ZipFile, max_member_bytes: Optional[int]) -> Iterator[ArchiveEntry]:
    with zf:
        for info in zf.infolist():
            if info.is_dir():
                logger.debug("Skipping directory entry %s", info.filename)
                continue
            yield ArchiveEntry(
                name=info.filename,
                size=info.file_size,
                _zip=zf,
                _info=info,
                _max_bytes=max_member_bytes,
            )


# -----------------------------------------------------------------------------
