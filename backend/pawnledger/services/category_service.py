from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Category, Item
from ..validation import ValidationError, ConflictError, DeletionBlockedError, plural
from .access_service import get_owned_category


def _clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required")
    if len(name) > 128:
        raise ValidationError("Category name must be no more than 128 characters")
    return name


def _ensure_unique(user_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category.id).filter(
        Category.user_id == user_id,
        func.lower(Category.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError("A category with this name already exists")


def list_categories(user_id: int) -> list[Category]:
    return (
        db.session.query(Category)
        .filter(Category.user_id == user_id)
        .order_by(Category.name.asc())
        .all()
    )


def category_item_counts(user_id: int) -> dict[int, int]:
    rows = (
        db.session.query(Item.category_id, func.count(Item.id))
        .join(Category, Item.category_id == Category.id)
        .filter(Category.user_id == user_id)
        .group_by(Item.category_id)
        .all()
    )
    return {category_id: count for category_id, count in rows}


def get_category(category_id: int, user_id: int) -> Category:
    return get_owned_category(category_id, user_id)


def create_category(user_id: int, name: str | None) -> Category:
    name = _clean_name(name)
    _ensure_unique(user_id, name)
    category = Category(user_id=user_id, name=name)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(category_id: int, user_id: int, name: str | None) -> Category:
    category = get_owned_category(category_id, user_id)
    name = _clean_name(name)
    _ensure_unique(user_id, name, exclude_id=category.id)
    category.name = name
    db.session.commit()
    return category


def delete_category(category_id: int, user_id: int) -> None:
    """Categories referenced by any item cannot be deleted."""
    category = get_owned_category(category_id, user_id)

    items_count = db.session.query(Item).filter(Item.category_id == category.id).count()
    if items_count:
        raise DeletionBlockedError(
            f"Cannot delete category that is being used by {plural(items_count, 'item')}"
        )

    db.session.delete(category)
    db.session.commit()
