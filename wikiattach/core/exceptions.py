#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Attachment errors
=================
Raised by the attachment services; each carries the HTTP status the
routes report it with.  The ingestion orchestrator recovers all of them
and turns them into a single user-facing message.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fastapi import status


# -----------------------------------------------------------------------------

class AttachmentError(Exception):
    """Base exception for attachment errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# -----------------------------------------------------------------------------

class SniffIndeterminate(AttachmentError):
    """Leading bytes matched no known signature."""

    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE


class ArchiveOpenError(AttachmentError):
    """The upload is not a readable zip container."""

    status_code = 422


class ArchiveMemberExtractError(AttachmentError):
    """A single archive member could not be decompressed."""

    status_code = 422

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Can't extract {name} from zip: {reason}")
        self.name = name
        self.reason = reason


class AttachmentWriteError(AttachmentError):
    """The transfer into attachment storage failed."""


class DerivationError(AttachmentError):
    """A thumbnail or inline variant could not be produced."""

    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE


class NotFoundError(AttachmentError):

    status_code = status.HTTP_404_NOT_FOUND


# -----------------------------------------------------------------------------
