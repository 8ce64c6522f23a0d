#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Shared FastAPI dependencies for the attachment routes."""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fastapi import Depends

from wikiattach.core.config import Settings, get_settings
from wikiattach.services.derived import DerivedArtifactCache
from wikiattach.services.store import AttachmentStore


# -----------------------------------------------------------------------------

def get_attachment_store(settings: Settings = Depends(get_settings)) -> AttachmentStore:
    return AttachmentStore(settings.storage_root)


# -----------------------------------------------------------------------------

def get_derived_cache(store: AttachmentStore = Depends(get_attachment_store)) -> DerivedArtifactCache:
    return DerivedArtifactCache(store)


# -----------------------------------------------------------------------------
