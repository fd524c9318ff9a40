from __future__ import annotations

from ..extensions import db
from ..models import Item, ItemIncident
from ..validation import ModelValidationPolicy, validate_payload, ValidationError
from pawnledger.time_utils import utcnow
from .access_service import get_owned_book, get_owned_item, get_owned_incident


RESOLUTION_STATUSES = ("open", "in_progress", "resolved")

INCIDENT_POLICY = ModelValidationPolicy(
    writable_fields={"incident_type", "description", "incident_date", "reported_by"},
    required_on_create={"incident_type"},
)


def report_incident(item_id: int, user_id: int, payload: dict) -> ItemIncident:
    """New incidents always start as 'open'; the date defaults to now."""
    item = get_owned_item(item_id, user_id)
    patch = validate_payload(model=ItemIncident, payload=payload, policy=INCIDENT_POLICY, partial=False)

    incident = ItemIncident(item_id=item.id, resolution_status="open", **patch)
    if incident.incident_date is None:
        incident.incident_date = utcnow()

    db.session.add(incident)
    db.session.commit()
    return incident


def list_incidents(book_id: int, user_id: int, status: str | None = None) -> list[ItemIncident]:
    """Incidents of a book's items, newest incident date first."""
    book = get_owned_book(book_id, user_id)
    query = (
        db.session.query(ItemIncident)
        .join(Item, ItemIncident.item_id == Item.id)
        .filter(Item.book_id == book.id)
    )
    if status:
        query = query.filter(ItemIncident.resolution_status == _clean_status(status))
    return query.order_by(ItemIncident.incident_date.desc(), ItemIncident.id.desc()).all()


def _clean_status(status: str | None) -> str:
    value = (status or "").strip().lower()
    if value not in RESOLUTION_STATUSES:
        raise ValidationError(f"resolution_status must be one of {', '.join(RESOLUTION_STATUSES)}")
    return value


def update_resolution_status(incident_id: int, user_id: int, status: str | None) -> ItemIncident:
    incident = get_owned_incident(incident_id, user_id)
    incident.resolution_status = _clean_status(status)
    db.session.commit()
    return incident


def get_incident(incident_id: int, user_id: int) -> ItemIncident:
    return get_owned_incident(incident_id, user_id)
