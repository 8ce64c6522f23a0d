#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Content sniffer
===============
Determines a MIME type from the leading bytes of a payload.  Filenames and
client-declared content types are never consulted: an upload called
"photo.zip" that holds plain text is text.

Zip containers that are really office documents (OOXML, OpenDocument) are
not reported as application/zip so they are stored as single files instead
of being expanded.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union


# -----------------------------------------------------------------------------

from wikiattach.core.exceptions import SniffIndeterminate
from wikiattach.models.attachment import DEFAULT_CONTENT_TYPE


logger = logging.getLogger(__name__)

ZIP_MIME = "application/zip"
SAMPLE_BYTES = 4096

Source = Union[str, Path, bytes, bytearray, BinaryIO]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Signatures
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_PREFIXES: list[tuple[bytes, str]] = [
    (b"%PDF-",              "application/pdf"),
    (b"\x89PNG\r\n\x1a\n",  "image/png"),
    (b"\xff\xd8\xff",       "image/jpeg"),
    (b"GIF87a",             "image/gif"),
    (b"GIF89a",             "image/gif"),
    (b"II*\x00",            "image/tiff"),
    (b"MM\x00*",            "image/tiff"),
    (b"\x00\x00\x01\x00",   "image/vnd.microsoft.icon"),
    (b"\x1f\x8b",           "application/gzip"),
    (b"BZh",                "application/x-bzip2"),
    (b"7z\xbc\xaf\x27\x1c", "application/x-7z-compressed"),
    (b"Rar!\x1a\x07",       "application/vnd.rar"),
    (b"OggS",               "audio/ogg"),
    (b"fLaC",               "audio/flac"),
    (b"ID3",                "audio/mpeg"),
]

_ZIP_PREFIXES = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")

_OOXML_PARTS = [
    (b"word/", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
    (b"xl/",   "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
    (b"ppt/",  "application/vnd.openxmlformats-officedocument.presentationml.presentation"),
]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Public API
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def sniff(source: Source, *, strict: bool = False) -> str:
    """Return the MIME type of *source* judged by its magic numbers.

    *source* may be a path, raw bytes, or a readable binary file object
    (read from its current position, which is restored afterwards).
    When nothing matches, ``application/octet-stream`` is returned, or
    SniffIndeterminate raised if *strict* is set.
    """
    sample = _read_sample(source)
    mime = detect(sample)
    if mime is None:
        if strict:
            raise SniffIndeterminate("Could not determine content type")
        logger.debug("No signature matched %d-byte sample; using %s", len(sample), DEFAULT_CONTENT_TYPE)
        return DEFAULT_CONTENT_TYPE
    return mime


# -----------------------------------------------------------------------------

def detect(sample: bytes) -> Optional[str]:
    if not sample:
        return None

    if sample.startswith(_ZIP_PREFIXES):
        return _zip_flavour(sample)

    for prefix, mime in _PREFIXES:
        if sample.startswith(prefix):
            return mime

    if sample[:4] == b"RIFF" and len(sample) >= 12:
        kind = sample[8:12]
        if kind == b"WEBP":
            return "image/webp"
        if kind == b"WAVE":
            return "audio/wav"
        if kind == b"AVI ":
            return "video/x-msvideo"

    if sample[4:8] == b"ftyp":
        return "video/mp4"

    # BMP: "BM" followed by file size and four reserved zero bytes
    if sample[:2] == b"BM" and sample[6:10] == b"\x00\x00\x00\x00":
        return "image/bmp"

    if _looks_textual(sample):
        return _text_flavour(sample)
    return None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _read_sample(source: Source) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source[:SAMPLE_BYTES])
    if isinstance(source, (str, Path)):
        with open(source, "rb") as fh:
            return fh.read(SAMPLE_BYTES)
    pos = source.tell()
    try:
        return source.read(SAMPLE_BYTES)
    finally:
        source.seek(pos)


# -----------------------------------------------------------------------------

def _zip_flavour(sample: bytes) -> str:
    # Local file header: name length at offset 26, name starts at 30
    if not sample.startswith(b"PK\x03\x04") or len(sample) < 30:
        return ZIP_MIME
    name_len = int.from_bytes(sample[26:28], "little")
    first_name = sample[30:30 + name_len]

    if first_name == b"mimetype":
        # OpenDocument stores its type uncompressed right after the name
        extra_len = int.from_bytes(sample[28:30], "little")
        start = 30 + name_len + extra_len
        declared = sample[start:start + 80].split(b"PK", 1)[0]
        try:
            text = declared.decode("ascii").strip()
        except UnicodeDecodeError:
            text = ""
        return text or DEFAULT_CONTENT_TYPE

    if first_name == b"[Content_Types].xml" or first_name.startswith(b"_rels/"):
        for marker, mime in _OOXML_PARTS:
            if marker in sample:
                return mime
        return DEFAULT_CONTENT_TYPE

    if first_name == b"META-INF/MANIFEST.MF":
        return "application/java-archive"

    return ZIP_MIME


# -----------------------------------------------------------------------------

def _looks_textual(sample: bytes) -> bool:
    if b"\x00" in sample:
        return False
    try:
        sample.decode("utf-8")
    except UnicodeDecodeError as exc:
        # A multi-byte character cut off by the sample boundary is fine
        if exc.start < len(sample) - 3:
            return False
    return True


# -----------------------------------------------------------------------------

def _text_flavour(sample: bytes) -> str:
    head = sample.lstrip(b"\xef\xbb\xbf").lstrip()
    lowered = head[:256].lower()
    if lowered.startswith(b"<?xml"):
        return "image/svg+xml" if b"<svg" in sample.lower() else "application/xml"
    if lowered.startswith(b"<svg"):
        return "image/svg+xml"
    if lowered.startswith((b"<!doctype html", b"<html")):
        return "text/html"
    if head.startswith((b"{", b"[")) and head.rstrip().endswith((b"}", b"]")):
        return "application/json"
    return "text/plain"


# -----------------------------------------------------------------------------
