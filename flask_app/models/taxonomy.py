"""
Taxonomies, terms and their assignment to content records.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, db

ATTRIBUTE_TAXONOMY_PREFIX = "mphb_ra_"


class Taxonomy(BaseModel):
    """A named vocabulary, e.g. amenities or the Bedrooms attribute."""

    __tablename__ = "taxonomies"

    id: Mapped[int] = mapped_column(primary_key=True)
    slug: Mapped[str] = mapped_column(db.String(64), unique=True, nullable=False, index=True)
    label: Mapped[str] = mapped_column(db.String(120), nullable=False)
    object_type: Mapped[str] = mapped_column(db.String(40), nullable=False, default="room_type")
    is_attribute: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)

    terms = relationship("Term", back_populates="taxonomy", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Taxonomy {self.slug}>"


class Term(BaseModel):
    __tablename__ = "terms"

    id: Mapped[int] = mapped_column(primary_key=True)
    taxonomy_id: Mapped[int] = mapped_column(ForeignKey("taxonomies.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(db.String(200), nullable=False)
    slug: Mapped[str] = mapped_column(db.String(200), nullable=False)

    taxonomy = relationship("Taxonomy", back_populates="terms")
    meta_entries = relationship("TermMeta", back_populates="term", cascade="all, delete-orphan")
    assignments = relationship("TermAssignment", back_populates="term", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("taxonomy_id", "slug", name="uq_term_taxonomy_slug"),
        Index("idx_term_taxonomy_name", "taxonomy_id", "name"),
    )

    def __repr__(self) -> str:
        return f"<Term {self.taxonomy_id}:{self.name!r}>"


class TermMeta(BaseModel):
    __tablename__ = "term_meta"

    id: Mapped[int] = mapped_column(primary_key=True)
    term_id: Mapped[int] = mapped_column(ForeignKey("terms.id", ondelete="CASCADE"), nullable=False)
    meta_key: Mapped[str] = mapped_column(db.String(100), nullable=False)
    meta_value: Mapped[str] = mapped_column(db.String(255), nullable=False, default="")

    term = relationship("Term", back_populates="meta_entries")

    __table_args__ = (
        UniqueConstraint("term_id", "meta_key", name="uq_term_meta_key"),
        Index("idx_term_meta_lookup", "meta_key", "meta_value"),
    )


class TermAssignment(BaseModel):
    """Links a content record to a term within one taxonomy."""

    __tablename__ = "term_assignments"

    id: Mapped[int] = mapped_column(primary_key=True)
    record_id: Mapped[int] = mapped_column(ForeignKey("content_records.id", ondelete="CASCADE"), nullable=False)
    term_id: Mapped[int] = mapped_column(ForeignKey("terms.id", ondelete="CASCADE"), nullable=False)
    taxonomy_id: Mapped[int] = mapped_column(ForeignKey("taxonomies.id", ondelete="CASCADE"), nullable=False)

    term = relationship("Term", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("record_id", "term_id", name="uq_term_assignment"),
        Index("idx_term_assignment_record_taxonomy", "record_id", "taxonomy_id"),
    )
