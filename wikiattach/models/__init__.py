#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------

"""ORM models package; importing it registers every table to register with Base.metadata."""

from .user import User
from .page import Page
from .attachment import Attachment

__all__ = ["User", "Page", "Attachment"]
