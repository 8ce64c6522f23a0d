#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------

"""
Page model
==========
A wiki page, identified by its normalised path ("/", "/docs/setup").
Pages own attachments.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wikiattach.core.database import Base


class Page(Base):
    __tablename__ = "pages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    path: Mapped[str] = mapped_column(String(512), unique=True, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    # ── Relationships ───────────────────────────────────────────────────────
    attachments: Mapped[list["Attachment"]] = relationship(  # noqa: F821
        back_populates="page", lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<Page {self.path!r}>"
