from __future__ import annotations

from ..extensions import db
from pawnledger.time_utils import to_utc_z


# Entity types an image or document can be attached to
ENTITY_TYPES = ("item", "incident", "person", "user")


class ImageType(db.Model):
    __tablename__ = "image_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}


class DocumentType(db.Model):
    __tablename__ = "document_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Image(db.Model):
    """
    Image attached to an entity by (entity_type, entity_id).

    The entity reference is polymorphic and therefore not a foreign key;
    ownership is checked in access_service before any read or write.

    INVARIANT: at most one non-deleted image per entity has is_primary=True.
    Rows are soft-deleted and stay loadable by id.
    """
    __tablename__ = "images"
    __table_args__ = (
        db.Index("ix_images_entity", "entity_type", "entity_id", "is_deleted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(16), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    image_type_id = db.Column(db.Integer, db.ForeignKey("image_types.id"), nullable=True)
    uploaded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    title = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)
    alt_text = db.Column(db.String(255), nullable=True)
    tags = db.Column(db.JSON, nullable=True)

    # Storage metadata
    original_filename = db.Column(db.String(255), nullable=True)
    file_path = db.Column(db.String(512), nullable=False)
    storage_key = db.Column(db.String(255), nullable=True)
    file_size = db.Column(db.Integer, nullable=True)
    mime_type = db.Column(db.String(128), nullable=True)
    width = db.Column(db.Integer, nullable=True)
    height = db.Column(db.Integer, nullable=True)

    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    image_type = db.relationship("ImageType")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "image_type": self.image_type.name if self.image_type else None,
            "title": self.title,
            "description": self.description,
            "alt_text": self.alt_text,
            "tags": self.tags or [],
            "original_filename": self.original_filename,
            "file_path": self.file_path,
            "storage_key": self.storage_key,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "width": self.width,
            "height": self.height,
            "is_primary": self.is_primary,
            "position": self.position,
            "is_deleted": self.is_deleted,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class Document(db.Model):
    """Document attached to an entity. Same polymorphic and soft-delete rules as Image."""
    __tablename__ = "documents"
    __table_args__ = (
        db.Index("ix_documents_entity", "entity_type", "entity_id", "is_deleted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(16), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    document_type_id = db.Column(db.Integer, db.ForeignKey("document_types.id"), nullable=True)
    uploaded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    title = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=True)

    original_filename = db.Column(db.String(255), nullable=True)
    file_path = db.Column(db.String(512), nullable=False)
    storage_key = db.Column(db.String(255), nullable=True)
    file_size = db.Column(db.Integer, nullable=True)
    mime_type = db.Column(db.String(128), nullable=True)

    issued_by = db.Column(db.String(255), nullable=True)
    issued_date = db.Column(db.DateTime(timezone=True), nullable=True)
    document_number = db.Column(db.String(128), nullable=True)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    document_type = db.relationship("DocumentType")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "document_type": self.document_type.name if self.document_type else None,
            "title": self.title,
            "description": self.description,
            "tags": self.tags or [],
            "original_filename": self.original_filename,
            "file_path": self.file_path,
            "storage_key": self.storage_key,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "issued_by": self.issued_by,
            "issued_date": to_utc_z(self.issued_date) if self.issued_date else None,
            "document_number": self.document_number,
            "expiry_date": to_utc_z(self.expiry_date) if self.expiry_date else None,
            "is_deleted": self.is_deleted,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
        }
