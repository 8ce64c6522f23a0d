#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------

"""
Attachment model
================
Metadata for a file attached to a page.  The bytes live on disk at
{attachment_root}/{id}; derived variants sit beside them as {id}.thumb
and {id}.inline.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wikiattach.core.database import Base


DEFAULT_CONTENT_TYPE = "application/octet-stream"


class Attachment(Base):
    __tablename__ = "attachments"
    # never hand out an id whose file may still be on disk
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    page_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("pages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)   # may carry zip entry paths
    content_type: Mapped[str] = mapped_column(
        String(128), nullable=False, default=DEFAULT_CONTENT_TYPE
    )
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    # ── Relationships ───────────────────────────────────────────────────────
    page: Mapped["Page"] = relationship(back_populates="attachments", lazy="raise")  # noqa: F821

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")

    def __repr__(self) -> str:
        return f"<Attachment {self.id} {self.name!r} on page={self.page_id}>"
