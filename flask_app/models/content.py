"""
Booking catalog content records.

Accommodation types, rates, units, seasons, services and attribute containers
all share one table keyed by ``record_type``; per-record settings live in
``RecordMeta`` as single-valued key/value rows.
"""

from __future__ import annotations

import enum
from typing import Any

from sqlalchemy import ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, db


class RecordType(str, enum.Enum):
    ROOM_TYPE = "room_type"
    RATE = "rate"
    ROOM = "room"
    SEASON = "season"
    SERVICE = "service"
    ROOM_ATTRIBUTE = "room_attribute"


class RecordStatus(str, enum.Enum):
    PUBLISHED = "publish"
    DRAFT = "draft"


def meta_lookup_value(value: Any) -> str | None:
    """Return the indexed string form of a scalar meta value, or None for containers."""
    if value is None or isinstance(value, (dict, list, tuple)):
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    text = str(value)
    return text[:255]


class ContentRecord(BaseModel):
    """A single catalog entry such as an accommodation type or a rate."""

    __tablename__ = "content_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    record_type: Mapped[str] = mapped_column(db.String(40), nullable=False, index=True)
    title: Mapped[str] = mapped_column(db.String(255), nullable=False, default="")
    slug: Mapped[str | None] = mapped_column(db.String(255), nullable=True, index=True)
    body: Mapped[str] = mapped_column(db.Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(db.String(20), nullable=False, default=RecordStatus.PUBLISHED.value)
    thumbnail_id: Mapped[int | None] = mapped_column(ForeignKey("media_attachments.id"), nullable=True)

    meta_entries = relationship(
        "RecordMeta",
        back_populates="record",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    thumbnail = relationship("MediaAttachment", foreign_keys=[thumbnail_id])

    def __repr__(self) -> str:
        return f"<ContentRecord {self.record_type}:{self.id} {self.title!r}>"

    def get_meta(self, key: str, default: Any = None) -> Any:
        for entry in self.meta_entries:
            if entry.meta_key == key:
                return entry.meta_value
        return default


class RecordMeta(BaseModel):
    """Key/value setting attached to a content record."""

    __tablename__ = "content_record_meta"

    id: Mapped[int] = mapped_column(primary_key=True)
    record_id: Mapped[int] = mapped_column(ForeignKey("content_records.id", ondelete="CASCADE"), nullable=False)
    meta_key: Mapped[str] = mapped_column(db.String(100), nullable=False)
    meta_value: Mapped[Any | None] = mapped_column(db.JSON, nullable=True)
    lookup_value: Mapped[str | None] = mapped_column(db.String(255), nullable=True)

    record = relationship("ContentRecord", back_populates="meta_entries")

    __table_args__ = (
        UniqueConstraint("record_id", "meta_key", name="uq_content_record_meta_key"),
        Index("idx_content_record_meta_lookup", "meta_key", "lookup_value"),
    )

    def __repr__(self) -> str:
        return f"<RecordMeta {self.record_id}:{self.meta_key}>"
