"""
Content store used by the importer pipeline.

Thin data-access layer over the catalog models: content records and their
meta, taxonomies and terms, term assignments and media attachments. Every
write commits immediately; on ``SQLAlchemyError`` the session is rolled back
and the error propagates to the calling pipeline step.
"""

from __future__ import annotations

import copy
import re
import unicodedata
from typing import Any, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flask_app.models import (
    ATTRIBUTE_TAXONOMY_PREFIX,
    ContentRecord,
    MediaAttachment,
    RecordMeta,
    RecordStatus,
    Taxonomy,
    Term,
    TermAssignment,
    TermMeta,
    db,
)
from flask_app.models.content import meta_lookup_value


def slugify(value: str) -> str:
    text = unicodedata.normalize("NFKD", str(value)).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text.lower()).strip("-")
    return text or "item"


class ContentStore:
    """Read/write helpers over the catalog tables."""

    def __init__(self, session: Session | None = None):
        self.session = session or db.session

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    # Records -------------------------------------------------------------------

    def get_record(self, record_id: int | None) -> Optional[ContentRecord]:
        if not record_id:
            return None
        return self.session.get(ContentRecord, int(record_id))

    def find_by_meta(self, record_type: str, meta_key: str, value: Any) -> Optional[ContentRecord]:
        """Return the lowest-id record of ``record_type`` whose meta ``meta_key`` equals ``value``."""
        lookup = meta_lookup_value(value)
        if lookup is None:
            return None
        stmt = (
            select(ContentRecord)
            .join(RecordMeta, RecordMeta.record_id == ContentRecord.id)
            .where(
                ContentRecord.record_type == record_type,
                RecordMeta.meta_key == meta_key,
                RecordMeta.lookup_value == lookup,
            )
            .order_by(ContentRecord.id)
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

    def find_by_slug(self, record_type: str, slug: str) -> Optional[ContentRecord]:
        stmt = (
            select(ContentRecord)
            .where(ContentRecord.record_type == record_type, ContentRecord.slug == slug)
            .order_by(ContentRecord.id)
        )
        return self.session.execute(stmt).scalars().first()

    def records_of_type(self, record_type: str) -> List[ContentRecord]:
        stmt = select(ContentRecord).where(ContentRecord.record_type == record_type).order_by(ContentRecord.title)
        return list(self.session.execute(stmt).scalars())

    def meta_values(self, record_type: str, meta_key: str) -> List[str]:
        """Return the distinct non-empty values of ``meta_key`` across records of one type."""
        stmt = (
            select(RecordMeta.lookup_value)
            .join(ContentRecord, RecordMeta.record_id == ContentRecord.id)
            .where(ContentRecord.record_type == record_type, RecordMeta.meta_key == meta_key)
            .distinct()
        )
        return [value for value in self.session.execute(stmt).scalars() if value]

    def save_record(
        self,
        record_type: str,
        *,
        record_id: int | None = None,
        title: str,
        body: str | None = None,
        slug: str | None = None,
    ) -> ContentRecord:
        """Create a record, or update title/body of ``record_id`` when it exists."""
        record = self.get_record(record_id)
        if record is None or record.record_type != record_type:
            record = ContentRecord(
                record_type=record_type,
                title=title,
                slug=slug or slugify(title),
                body=body or "",
                status=RecordStatus.PUBLISHED.value,
            )
            self.session.add(record)
        else:
            record.title = title
            if body is not None:
                record.body = body
            if slug:
                record.slug = slug
        self._commit()
        return record

    def update_body(self, record_id: int, body: str) -> None:
        record = self.get_record(record_id)
        if record is None:
            return
        record.body = body
        self._commit()

    def _meta_row(self, record_id: int, meta_key: str) -> Optional[RecordMeta]:
        stmt = select(RecordMeta).where(RecordMeta.record_id == record_id, RecordMeta.meta_key == meta_key)
        return self.session.execute(stmt).scalars().first()

    def get_meta(self, record_id: int, meta_key: str, default: Any = None) -> Any:
        row = self._meta_row(record_id, meta_key)
        if row is None or row.meta_value is None:
            return default
        return copy.deepcopy(row.meta_value)

    def set_meta(self, record_id: int, meta_key: str, value: Any) -> None:
        row = self._meta_row(record_id, meta_key)
        if row is None:
            row = RecordMeta(record_id=record_id, meta_key=meta_key)
            self.session.add(row)
        row.meta_value = copy.deepcopy(value)
        row.lookup_value = meta_lookup_value(value)
        self._commit()

    def set_thumbnail(self, record_id: int, attachment_id: int | None) -> None:
        record = self.get_record(record_id)
        if record is None:
            return
        record.thumbnail_id = attachment_id
        self._commit()

    def thumbnail_id(self, record_id: int) -> Optional[int]:
        record = self.get_record(record_id)
        return record.thumbnail_id if record is not None else None

    # Taxonomies ----------------------------------------------------------------

    def get_taxonomy(self, slug: str) -> Optional[Taxonomy]:
        return self.session.execute(select(Taxonomy).where(Taxonomy.slug == slug)).scalars().first()

    def ensure_taxonomy(self, slug: str, label: str, *, is_attribute: bool = False) -> Taxonomy:
        taxonomy = self.get_taxonomy(slug)
        if taxonomy is None:
            taxonomy = Taxonomy(slug=slug, label=label, is_attribute=is_attribute)
            self.session.add(taxonomy)
            self._commit()
        return taxonomy

    def attribute_taxonomies(self) -> List[Taxonomy]:
        stmt = (
            select(Taxonomy)
            .where(
                Taxonomy.is_attribute.is_(True)
                | Taxonomy.slug.startswith(ATTRIBUTE_TAXONOMY_PREFIX, autoescape=True)
            )
            .order_by(Taxonomy.slug)
        )
        return list(self.session.execute(stmt).scalars())

    # Terms ---------------------------------------------------------------------

    def get_term(self, term_id: int | None, taxonomy: Taxonomy | None = None) -> Optional[Term]:
        if not term_id:
            return None
        term = self.session.get(Term, int(term_id))
        if term is not None and taxonomy is not None and term.taxonomy_id != taxonomy.id:
            return None
        return term

    def find_term_by_name(self, taxonomy: Taxonomy, name: str) -> Optional[Term]:
        stmt = select(Term).where(Term.taxonomy_id == taxonomy.id, Term.name == name).order_by(Term.id)
        return self.session.execute(stmt).scalars().first()

    def find_term_by_slug(self, taxonomy: Taxonomy, slug: str) -> Optional[Term]:
        stmt = select(Term).where(Term.taxonomy_id == taxonomy.id, Term.slug == slug)
        return self.session.execute(stmt).scalars().first()

    def find_term_by_meta(self, taxonomy: Taxonomy, meta_key: str, value: str) -> Optional[Term]:
        stmt = (
            select(Term)
            .join(TermMeta, TermMeta.term_id == Term.id)
            .where(Term.taxonomy_id == taxonomy.id, TermMeta.meta_key == meta_key, TermMeta.meta_value == value)
            .order_by(Term.id)
        )
        return self.session.execute(stmt).scalars().first()

    def create_term(self, taxonomy: Taxonomy, name: str) -> Term:
        base = slugify(name)
        slug = base
        suffix = 2
        while self.find_term_by_slug(taxonomy, slug) is not None:
            slug = f"{base}-{suffix}"
            suffix += 1
        term = Term(taxonomy_id=taxonomy.id, name=name, slug=slug)
        self.session.add(term)
        self._commit()
        return term

    def set_term_meta(self, term_id: int, meta_key: str, value: str) -> None:
        stmt = select(TermMeta).where(TermMeta.term_id == term_id, TermMeta.meta_key == meta_key)
        row = self.session.execute(stmt).scalars().first()
        if row is None:
            row = TermMeta(term_id=term_id, meta_key=meta_key)
            self.session.add(row)
        row.meta_value = str(value)
        self._commit()

    def delete_term(self, term_id: int) -> None:
        term = self.session.get(Term, term_id)
        if term is None:
            return
        self.session.delete(term)
        self._commit()

    # Assignments ---------------------------------------------------------------

    def record_term_ids(self, record_id: int, taxonomy: Taxonomy) -> List[int]:
        stmt = (
            select(TermAssignment.term_id)
            .where(TermAssignment.record_id == record_id, TermAssignment.taxonomy_id == taxonomy.id)
            .order_by(TermAssignment.id)
        )
        return list(self.session.execute(stmt).scalars())

    def set_record_terms(self, record_id: int, taxonomy: Taxonomy, term_ids: Iterable[int]) -> List[int]:
        """Replace the record's terms in ``taxonomy`` with ``term_ids`` (order kept, duplicates dropped)."""
        wanted: List[int] = []
        for term_id in term_ids:
            if term_id and int(term_id) not in wanted:
                wanted.append(int(term_id))

        existing = {
            assignment.term_id: assignment
            for assignment in self.session.execute(
                select(TermAssignment).where(
                    TermAssignment.record_id == record_id, TermAssignment.taxonomy_id == taxonomy.id
                )
            ).scalars()
        }
        for term_id, assignment in existing.items():
            if term_id not in wanted:
                self.session.delete(assignment)
        for term_id in wanted:
            if term_id not in existing:
                self.session.add(TermAssignment(record_id=record_id, term_id=term_id, taxonomy_id=taxonomy.id))
        self._commit()
        return wanted

    def unassign_term(self, term_id: int) -> int:
        """Remove every assignment of ``term_id``; returns how many records lost it."""
        removed = self.session.query(TermAssignment).filter_by(term_id=term_id).delete()
        self._commit()
        return int(removed or 0)

    # Media ---------------------------------------------------------------------

    def get_attachment(self, attachment_id: int | None) -> Optional[MediaAttachment]:
        if not attachment_id:
            return None
        return self.session.get(MediaAttachment, int(attachment_id))

    def create_attachment(
        self,
        *,
        parent_record_id: int | None,
        filename: str,
        file_path: str,
        source_url: str | None,
        mime_type: str | None,
        size_bytes: int,
    ) -> MediaAttachment:
        attachment = MediaAttachment(
            parent_record_id=parent_record_id,
            filename=filename,
            file_path=file_path,
            source_url=source_url,
            mime_type=mime_type,
            size_bytes=size_bytes,
        )
        self.session.add(attachment)
        self._commit()
        return attachment

    def existing_attachment_ids(self, attachment_ids: Sequence[int]) -> List[int]:
        ids = [int(value) for value in attachment_ids if value]
        if not ids:
            return []
        stmt = select(MediaAttachment.id).where(MediaAttachment.id.in_(ids))
        found = set(self.session.execute(stmt).scalars())
        return [value for value in ids if value in found]
