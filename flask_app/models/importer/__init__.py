"""
Importer-specific SQLAlchemy models.
"""

from .schema import ImporterOption

__all__ = ["ImporterOption"]
