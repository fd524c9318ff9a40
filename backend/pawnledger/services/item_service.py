"""
Item registry service.

Items are created inside one of the caller's books, optionally together with
the purchase record (price, date, seller) and custom attribute values
keyed by the book type's field definitions. Creation is a single commit.
"""

from __future__ import annotations

from sqlalchemy import or_, exists

from ..extensions import db
from ..models import Item, ItemPurchase, ItemAttribute, ItemSale, ItemIncident, FieldDefinition
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_amount,
    coerce_int,
    ValidationError,
    ConflictError,
)
from pawnledger.time_utils import utcnow
from .access_service import get_owned_book, get_owned_item, get_owned_category, get_owned_person


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"item_number", "description", "category_id", "color", "grade"},
    required_on_create={"item_number"},
)

PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={"purchase_price_cents", "purchase_date", "person_id"},
)

ITEM_STATUS_FILTERS = ("available", "sold", "incident")


def _ensure_unique_number(book_id: int, item_number: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Item.id).filter(Item.book_id == book_id, Item.item_number == item_number)
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    if query.first():
        raise ConflictError("An item with this number already exists in this book")


def _validate_purchase(payload: dict, user_id: int) -> dict:
    patch = validate_payload(model=ItemPurchase, payload=payload, policy=PURCHASE_POLICY, partial=True)
    enforce_amount(patch, "purchase_price_cents")
    if patch.get("purchase_date") and patch["purchase_date"] > utcnow():
        raise ValidationError("Purchase date cannot be in the future")
    if patch.get("person_id") is not None:
        get_owned_person(patch["person_id"], user_id)
    return patch


def _resolve_attributes(book, attributes: dict | None, *, creating: bool) -> dict[int, str]:
    """
    Validate attribute values keyed by field definition id (str or int).
    Ids not belonging to the book's type are rejected.
    """
    definitions = {}
    if book.book_type_id:
        definitions = {
            fd.id: fd
            for fd in db.session.query(FieldDefinition).filter_by(book_type_id=book.book_type_id).all()
        }

    values = {}
    for raw_key, raw_value in (attributes or {}).items():
        field_id = coerce_int(raw_key, "attribute field id")
        if field_id not in definitions:
            raise ValidationError(f"Unknown field definition: {field_id}")
        values[field_id] = "" if raw_value is None else str(raw_value).strip()

    if creating:
        missing = [fd.label for fd in definitions.values() if fd.is_required and not values.get(fd.id)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(sorted(missing))}")

    return values


def _apply_attributes(item: Item, values: dict[int, str]) -> None:
    existing = {attr.field_definition_id: attr for attr in item.attributes}
    for field_id, value in values.items():
        attr = existing.get(field_id)
        if attr is not None:
            attr.value = value or None
        elif value:
            db.session.add(ItemAttribute(item=item, field_definition_id=field_id, value=value))


def create_item(
    *,
    user_id: int,
    book_id: int,
    payload: dict,
    purchase: dict | None = None,
    attributes: dict | None = None,
) -> Item:
    book = get_owned_book(book_id, user_id)

    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
    _ensure_unique_number(book.id, patch["item_number"])
    if patch.get("category_id") is not None:
        get_owned_category(patch["category_id"], user_id)

    purchase_patch = _validate_purchase(purchase or {}, user_id)
    attribute_values = _resolve_attributes(book, attributes, creating=True)

    item = Item(book_id=book.id, **patch)
    db.session.add(item)

    if any(v is not None for v in purchase_patch.values()):
        db.session.add(ItemPurchase(item=item, **purchase_patch))

    _apply_attributes(item, attribute_values)

    db.session.commit()
    return item


def get_item(item_id: int, user_id: int) -> Item:
    return get_owned_item(item_id, user_id)


def list_items(
    *,
    user_id: int,
    book_id: int,
    status: str | None = None,
    category_id: int | None = None,
    search: str | None = None,
) -> list[Item]:
    """
    Items of a book, newest first.

    status filters by derived status: available (no sale, no incident),
    sold (has a sale), incident (not sold, has an incident).
    """
    book = get_owned_book(book_id, user_id)
    query = db.session.query(Item).filter(Item.book_id == book.id)

    has_sale = exists().where(ItemSale.item_id == Item.id)
    has_incident = exists().where(ItemIncident.item_id == Item.id)

    if status:
        status = status.strip().lower()
        if status not in ITEM_STATUS_FILTERS:
            raise ValidationError(f"status must be one of {', '.join(ITEM_STATUS_FILTERS)}")
        if status == "sold":
            query = query.filter(has_sale)
        elif status == "incident":
            query = query.filter(~has_sale, has_incident)
        else:
            query = query.filter(~has_sale, ~has_incident)

    if category_id is not None:
        query = query.filter(Item.category_id == category_id)

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Item.item_number.ilike(pattern), Item.description.ilike(pattern)))

    return query.order_by(Item.created_at.desc(), Item.id.desc()).all()


def update_item(item_id: int, user_id: int, payload: dict, attributes: dict | None = None) -> Item:
    item = get_owned_item(item_id, user_id)
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=True)

    if "item_number" in patch:
        if not patch["item_number"]:
            raise ValidationError("Item number is required")
        _ensure_unique_number(item.book_id, patch["item_number"], exclude_id=item.id)
    if patch.get("category_id") is not None:
        get_owned_category(patch["category_id"], user_id)

    attribute_values = _resolve_attributes(item.book, attributes, creating=False)

    for key, value in patch.items():
        setattr(item, key, value)

    _apply_attributes(item, attribute_values)

    db.session.commit()
    return item


def update_item_category(item_id: int, user_id: int, category_id) -> Item:
    """Set or clear (None) the item's category."""
    item = get_owned_item(item_id, user_id)
    if category_id in (None, ""):
        item.category_id = None
    else:
        category = get_owned_category(coerce_int(category_id, "category_id"), user_id)
        item.category_id = category.id
    db.session.commit()
    return item


def set_purchase(item_id: int, user_id: int, payload: dict) -> ItemPurchase:
    """Create or replace the purchase record of an item."""
    item = get_owned_item(item_id, user_id)
    patch = _validate_purchase(payload, user_id)

    purchase = item.purchase
    if purchase is None:
        purchase = ItemPurchase(item=item)
        db.session.add(purchase)
    for key, value in patch.items():
        setattr(purchase, key, value)

    db.session.commit()
    return purchase
