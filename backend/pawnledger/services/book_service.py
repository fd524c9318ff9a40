from __future__ import annotations

from ..extensions import db
from ..models import Book, BookType, FieldDefinition
from ..validation import ValidationError, ConflictError, coerce_int
from .access_service import NotFoundError, get_owned_book


def list_books(user_id: int) -> list[Book]:
    return (
        db.session.query(Book)
        .filter(Book.user_id == user_id)
        .order_by(Book.created_at.desc(), Book.id.desc())
        .all()
    )


def list_book_types() -> list[BookType]:
    return db.session.query(BookType).order_by(BookType.display_name.asc()).all()


def create_book(*, user_id: int, book_type_id, description: str | None = None, reference: str | None = None) -> Book:
    if book_type_id in (None, ""):
        raise ValidationError("book_type_id is required")
    book_type = db.session.get(BookType, coerce_int(book_type_id, "book_type_id"))
    if not book_type:
        raise ValidationError("Book type not found")

    book = Book(
        user_id=user_id,
        book_type_id=book_type.id,
        description=(description or "").strip() or None,
        reference=(reference or "").strip() or None,
    )
    db.session.add(book)
    db.session.commit()
    return book


def get_field_definitions(book_id: int, user_id: int) -> list[FieldDefinition]:
    """Custom fields of the book's type, by display order. Empty when the book has no type."""
    book = get_owned_book(book_id, user_id)
    if not book.book_type:
        return []
    return (
        db.session.query(FieldDefinition)
        .filter(FieldDefinition.book_type_id == book.book_type_id)
        .order_by(FieldDefinition.display_order.asc(), FieldDefinition.id.asc())
        .all()
    )


def resolve_book_id(user_id: int, explicit=None, cookie_value=None) -> int | None:
    """
    Pick the book a request works on.

    Order: explicit argument, then the selected-book cookie, then the
    user's newest book. Explicit or cookie ids that are not the user's
    own book are ignored and fall through to the next source.
    """
    for candidate in (explicit, cookie_value):
        if candidate in (None, ""):
            continue
        try:
            book_id = int(candidate)
        except (TypeError, ValueError):
            continue
        try:
            return get_owned_book(book_id, user_id).id
        except NotFoundError:
            continue

    newest = (
        db.session.query(Book.id)
        .filter(Book.user_id == user_id)
        .order_by(Book.created_at.desc(), Book.id.desc())
        .first()
    )
    return newest[0] if newest else None


def create_book_type(*, name: str, display_name: str, description: str | None = None) -> BookType:
    name = (name or "").strip()
    display_name = (display_name or "").strip()
    if not name or not display_name:
        raise ValidationError("name and display_name are required")
    if db.session.query(BookType).filter_by(name=name).first():
        raise ConflictError(f"Book type '{name}' already exists")
    book_type = BookType(name=name, display_name=display_name, description=description)
    db.session.add(book_type)
    db.session.commit()
    return book_type


def add_field_definition(
    *,
    book_type_name: str,
    name: str,
    label: str,
    field_type: str = "text",
    is_required: bool = False,
    display_order: int | None = None,
) -> FieldDefinition:
    book_type = db.session.query(BookType).filter_by(name=book_type_name).first()
    if not book_type:
        raise ValidationError(f"Book type '{book_type_name}' not found")
    if field_type not in ("text", "number", "date", "select"):
        raise ValidationError("field_type must be one of text, number, date, select")
    if db.session.query(FieldDefinition).filter_by(book_type_id=book_type.id, name=name).first():
        raise ConflictError(f"Field '{name}' already exists on '{book_type_name}'")

    if display_order is None:
        current_max = (
            db.session.query(db.func.max(FieldDefinition.display_order))
            .filter(FieldDefinition.book_type_id == book_type.id)
            .scalar()
        )
        display_order = (current_max or 0) + 1

    field = FieldDefinition(
        book_type_id=book_type.id,
        name=name,
        label=label,
        field_type=field_type,
        is_required=is_required,
        display_order=display_order,
    )
    db.session.add(field)
    db.session.commit()
    return field
