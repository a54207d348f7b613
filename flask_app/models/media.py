# flask_app/models/media.py

from .base import BaseModel, db


class MediaAttachment(BaseModel):
    """Image downloaded into local media storage"""

    __tablename__ = "media_attachments"

    id = db.Column(db.Integer, primary_key=True)
    # Plain column: content_records already references this table for thumbnails
    parent_record_id = db.Column(db.Integer, nullable=True, index=True)
    filename = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(1024), nullable=False)
    source_url = db.Column(db.String(2048), nullable=True)
    mime_type = db.Column(db.String(100), nullable=True)
    size_bytes = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<MediaAttachment {self.id} {self.filename}>"
