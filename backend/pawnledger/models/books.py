from __future__ import annotations

from ..extensions import db
from pawnledger.time_utils import to_utc_z


class BookType(db.Model):
    """
    Kind of register a book keeps (e.g. jewelry, electronics).

    The book type carries the custom field definitions that every item of
    a book of this type may fill in.
    """
    __tablename__ = "book_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    display_name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
        }


class FieldDefinition(db.Model):
    __tablename__ = "field_definitions"
    __table_args__ = (
        db.UniqueConstraint("book_type_id", "name", name="uq_field_definitions_type_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    book_type_id = db.Column(db.Integer, db.ForeignKey("book_types.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    label = db.Column(db.String(128), nullable=False)
    field_type = db.Column(db.String(16), nullable=False, default="text")  # text, number, date, select
    is_required = db.Column(db.Boolean, nullable=False, default=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    book_type = db.relationship(
        "BookType",
        backref=db.backref("field_definitions", lazy=True, order_by="FieldDefinition.display_order"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_type_id": self.book_type_id,
            "name": self.name,
            "label": self.label,
            "field_type": self.field_type,
            "is_required": self.is_required,
            "display_order": self.display_order,
        }


class Book(db.Model):
    """
    A user-scoped ledger grouping items. Every item, invoice and cost
    belongs to exactly one book; ownership of a book is ownership of its contents.
    """
    __tablename__ = "books"
    __table_args__ = (
        db.Index("ix_books_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    book_type_id = db.Column(db.Integer, db.ForeignKey("book_types.id"), nullable=True, index=True)

    description = db.Column(db.String(255), nullable=True)
    reference = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("books", lazy=True))
    book_type = db.relationship("BookType")

    def __repr__(self) -> str:
        return f"<Book id={self.id} user_id={self.user_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_type_id": self.book_type_id,
            "book_type": self.book_type.to_dict() if self.book_type else None,
            "description": self.description,
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
