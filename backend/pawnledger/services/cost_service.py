"""
Operating costs per book and the user's cost event types.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Cost, CostEventType
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_amount,
    ValidationError,
    ConflictError,
    DeletionBlockedError,
    coerce_int,
)
from .access_service import NotFoundError, get_owned_book


COST_POLICY = ModelValidationPolicy(
    writable_fields={"book_id", "cost_event_type_id", "amount_cents", "cost_date", "details_message"},
    required_on_create={"book_id", "amount_cents", "cost_date"},
)


def _clean_type_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Event type name is required")
    if len(name) > 128:
        raise ValidationError("Event type name must be no more than 128 characters")
    return name


def _ensure_unique_type(user_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(CostEventType.id).filter(
        CostEventType.user_id == user_id,
        func.lower(CostEventType.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(CostEventType.id != exclude_id)
    if query.first():
        raise ConflictError("An event type with this name already exists")


def get_owned_event_type(event_type_id: int | None, user_id: int) -> CostEventType:
    event_type = None
    if event_type_id is not None:
        event_type = db.session.query(CostEventType).filter_by(id=event_type_id, user_id=user_id).first()
    if not event_type:
        raise NotFoundError("Cost event type not found")
    return event_type


def list_event_types(user_id: int) -> list[CostEventType]:
    return (
        db.session.query(CostEventType)
        .filter(CostEventType.user_id == user_id)
        .order_by(CostEventType.name.asc())
        .all()
    )


def create_event_type(user_id: int, name: str | None) -> CostEventType:
    name = _clean_type_name(name)
    _ensure_unique_type(user_id, name)
    event_type = CostEventType(user_id=user_id, name=name)
    db.session.add(event_type)
    db.session.commit()
    return event_type


def rename_event_type(event_type_id: int, user_id: int, name: str | None) -> CostEventType:
    event_type = get_owned_event_type(event_type_id, user_id)
    name = _clean_type_name(name)
    _ensure_unique_type(user_id, name, exclude_id=event_type.id)
    event_type.name = name
    db.session.commit()
    return event_type


def delete_event_type(event_type_id: int, user_id: int) -> None:
    """Event types still used by a cost cannot be deleted."""
    event_type = get_owned_event_type(event_type_id, user_id)
    in_use = db.session.query(Cost.id).filter(Cost.cost_event_type_id == event_type.id).first()
    if in_use:
        raise DeletionBlockedError("Cannot delete event type with associated costs")
    db.session.delete(event_type)
    db.session.commit()


def _check_refs(patch: dict, user_id: int) -> None:
    if patch.get("book_id") is not None:
        get_owned_book(patch["book_id"], user_id)
    if patch.get("cost_event_type_id") is not None:
        try:
            get_owned_event_type(patch["cost_event_type_id"], user_id)
        except NotFoundError:
            raise ValidationError("Cost event type not found")


def list_costs(user_id: int, book_id: int | None = None) -> list[Cost]:
    """The user's costs, newest cost date first. book_id narrows to one book."""
    query = db.session.query(Cost).filter(Cost.user_id == user_id)
    if book_id is not None:
        query = query.filter(Cost.book_id == coerce_int(book_id, "book_id"))
    return query.order_by(Cost.cost_date.desc(), Cost.id.desc()).all()


def get_cost(cost_id: int, user_id: int) -> Cost:
    cost = db.session.query(Cost).filter_by(id=cost_id, user_id=user_id).first()
    if not cost:
        raise NotFoundError("Cost not found")
    return cost


def create_cost(user_id: int, payload: dict) -> Cost:
    patch = validate_payload(model=Cost, payload=payload, policy=COST_POLICY, partial=False)
    enforce_amount(patch, "amount_cents", required=True)
    _check_refs(patch, user_id)

    cost = Cost(user_id=user_id, **patch)
    db.session.add(cost)
    db.session.commit()
    return cost


def update_cost(cost_id: int, user_id: int, payload: dict) -> Cost:
    cost = get_cost(cost_id, user_id)
    patch = validate_payload(model=Cost, payload=payload, policy=COST_POLICY, partial=True)
    enforce_amount(patch, "amount_cents")
    _check_refs(patch, user_id)

    for key, value in patch.items():
        setattr(cost, key, value)
    db.session.commit()
    return cost


def delete_cost(cost_id: int, user_id: int) -> None:
    cost = get_cost(cost_id, user_id)
    db.session.delete(cost)
    db.session.commit()
