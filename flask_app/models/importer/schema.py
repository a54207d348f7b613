"""
SQLAlchemy models for importer state.

The importer keeps its process-wide state (settings, queue, progress,
dictionaries, last error, caches) as named JSON options so the web process
and the CLI share one source of truth.
"""

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, mapped_column

from ..base import BaseModel, db


class ImporterOption(BaseModel):
    """Named JSON value owned by the importer."""

    __tablename__ = "importer_options"

    id: Mapped[int] = mapped_column(primary_key=True)
    option_name: Mapped[str] = mapped_column(db.String(191), unique=True, nullable=False, index=True)
    option_value: Mapped[Any | None] = mapped_column(db.JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<ImporterOption {self.option_name}>"

    @staticmethod
    def get_option(option_name: str, default: Any = None) -> Any:
        """Return the stored value, or ``default`` when missing or on database errors."""
        try:
            option = ImporterOption.query.filter_by(option_name=option_name).first()
            if option is None or option.option_value is None:
                return default
            return option.option_value
        except SQLAlchemyError as e:
            current_app.logger.error(f"Database error reading importer option {option_name}: {str(e)}")
            return default

    @staticmethod
    def set_option(option_name: str, value: Any) -> bool:
        try:
            option = ImporterOption.query.filter_by(option_name=option_name).first()
            if option is None:
                option = ImporterOption(option_name=option_name)
                db.session.add(option)
            option.option_value = value
            db.session.commit()
            return True
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Database error writing importer option {option_name}: {str(e)}")
            return False

    @staticmethod
    def delete_option(option_name: str) -> bool:
        try:
            ImporterOption.query.filter_by(option_name=option_name).delete()
            db.session.commit()
            return True
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Database error deleting importer option {option_name}: {str(e)}")
            return False
