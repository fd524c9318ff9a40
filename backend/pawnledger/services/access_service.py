"""
Ownership checks for user-scoped data.

TENANCY: The user is the tenant. Ownership chains:
- book     -> user
- item     -> book -> user
- incident -> item -> book -> user
- person   -> user
- user     -> self

Missing and foreign rows are indistinguishable to the caller (both are
NotFoundError) so ids of other tenants cannot be probed. The only 403 is
for mutating an existing attachment whose entity belongs to someone else.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Book, Item, ItemIncident, Person, User, Category, Invoice, ItemSale
from ..models.attachments import ENTITY_TYPES
from ..validation import ValidationError


class NotFoundError(Exception):
    """404: row missing or owned by another user."""
    pass


class AccessDeniedError(Exception):
    """403: row exists but the caller may not change it."""
    pass


def get_owned_book(book_id: int | None, user_id: int) -> Book:
    if book_id is None:
        raise NotFoundError("Book not found")
    book = db.session.query(Book).filter_by(id=book_id, user_id=user_id).first()
    if not book:
        raise NotFoundError("Book not found")
    return book


def get_owned_item(item_id: int | None, user_id: int) -> Item:
    if item_id is None:
        raise NotFoundError("Item not found")
    item = (
        db.session.query(Item)
        .join(Book, Item.book_id == Book.id)
        .filter(Item.id == item_id, Book.user_id == user_id)
        .first()
    )
    if not item:
        raise NotFoundError("Item not found")
    return item


def get_owned_incident(incident_id: int | None, user_id: int) -> ItemIncident:
    if incident_id is None:
        raise NotFoundError("Incident not found")
    incident = (
        db.session.query(ItemIncident)
        .join(Item, ItemIncident.item_id == Item.id)
        .join(Book, Item.book_id == Book.id)
        .filter(ItemIncident.id == incident_id, Book.user_id == user_id)
        .first()
    )
    if not incident:
        raise NotFoundError("Incident not found")
    return incident


def get_owned_person(person_id: int | None, user_id: int) -> Person:
    if person_id is None:
        raise NotFoundError("Person not found")
    person = db.session.query(Person).filter_by(id=person_id, user_id=user_id).first()
    if not person:
        raise NotFoundError("Person not found")
    return person


def get_owned_category(category_id: int | None, user_id: int) -> Category:
    if category_id is None:
        raise NotFoundError("Category not found")
    category = db.session.query(Category).filter_by(id=category_id, user_id=user_id).first()
    if not category:
        raise NotFoundError("Category not found")
    return category


def get_owned_invoice(invoice_id: int | None, user_id: int) -> Invoice:
    if invoice_id is None:
        raise NotFoundError("Invoice not found")
    invoice = (
        db.session.query(Invoice)
        .join(Book, Invoice.book_id == Book.id)
        .filter(Invoice.id == invoice_id, Book.user_id == user_id)
        .first()
    )
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def get_owned_sale(sale_id: int | None, user_id: int) -> ItemSale:
    if sale_id is None:
        raise NotFoundError("Sale not found")
    sale = (
        db.session.query(ItemSale)
        .join(Item, ItemSale.item_id == Item.id)
        .join(Book, Item.book_id == Book.id)
        .filter(ItemSale.id == sale_id, Book.user_id == user_id)
        .first()
    )
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def normalize_entity_type(entity_type: str | None) -> str:
    value = (entity_type or "").strip().lower()
    if value not in ENTITY_TYPES:
        raise ValidationError(f"Invalid entity type: {entity_type}")
    return value


def owns_entity(user: User, entity_type: str, entity_id: int) -> bool:
    """
    Resolve the ownership chain for a polymorphic attachment target.

    Returns False when the entity does not exist or belongs to another user.
    Raises ValidationError for an unknown entity_type.
    """
    entity_type = normalize_entity_type(entity_type)

    if entity_type == "user":
        return entity_id == user.id

    try:
        if entity_type == "item":
            get_owned_item(entity_id, user.id)
        elif entity_type == "incident":
            get_owned_incident(entity_id, user.id)
        elif entity_type == "person":
            get_owned_person(entity_id, user.id)
    except NotFoundError:
        return False
    return True


def ensure_entity_access(user: User, entity_type: str, entity_id: int) -> str:
    """
    Guard for creating or listing attachments of an entity.

    Returns the normalized entity_type.
    Raises ValidationError (400) or NotFoundError (404).
    """
    entity_type = normalize_entity_type(entity_type)
    if not owns_entity(user, entity_type, entity_id):
        current_app.logger.warning(
            "Entity access denied: user=%s entity=%s:%s", user.id, entity_type, entity_id
        )
        raise NotFoundError("Entity not found or access denied")
    return entity_type


def ensure_attachment_access(user: User, attachment) -> None:
    """
    Guard for mutating an existing image or document.

    Raises AccessDeniedError (403) when the attachment's entity is not the caller's.
    """
    if not owns_entity(user, attachment.entity_type, attachment.entity_id):
        current_app.logger.warning(
            "Attachment access denied: user=%s %s=%s entity=%s:%s",
            user.id,
            type(attachment).__name__.lower(),
            attachment.id,
            attachment.entity_type,
            attachment.entity_id,
        )
        raise AccessDeniedError("Access denied")
