# flask_app/models/__init__.py
"""
Database models package
"""

from .admin import AdminLog
from .base import BaseModel, db
from .content import ContentRecord, RecordMeta, RecordStatus, RecordType
from .importer import ImporterOption
from .media import MediaAttachment
from .taxonomy import ATTRIBUTE_TAXONOMY_PREFIX, Taxonomy, Term, TermAssignment, TermMeta
from .user import User

__all__ = [
    "db",
    "BaseModel",
    "User",
    "AdminLog",
    # Catalog content
    "ContentRecord",
    "RecordMeta",
    "RecordStatus",
    "RecordType",
    "MediaAttachment",
    # Taxonomies
    "ATTRIBUTE_TAXONOMY_PREFIX",
    "Taxonomy",
    "Term",
    "TermMeta",
    "TermAssignment",
    # Importer state
    "ImporterOption",
]
