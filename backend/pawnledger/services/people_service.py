"""
People (counterparties): clients, sellers and experts of one user.

A person referenced by any purchase, sale or invoice is part of the
registry's history and cannot be deleted.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Person, PersonType, ItemPurchase, ItemSale, Invoice
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    DeletionBlockedError,
)
from pawnledger.time_utils import to_utc_z
from .access_service import get_owned_person


PERSON_TYPE_ORDER = ("client", "seller", "expert")

PERSON_POLICY = ModelValidationPolicy(
    writable_fields={
        "person_type_id", "name", "lastname", "phone",
        "address_line_1", "address_line_2", "zipcode", "country",
        "website", "specialization",
    },
    required_on_create={"name"},
)


def list_person_types() -> list[PersonType]:
    """Person types in the fixed order client, seller, expert; unknown names last."""
    types = db.session.query(PersonType).all()

    def _rank(pt: PersonType) -> tuple[int, str]:
        name = pt.name.lower()
        return (PERSON_TYPE_ORDER.index(name) if name in PERSON_TYPE_ORDER else len(PERSON_TYPE_ORDER), name)

    return sorted(types, key=_rank)


def _check_person_type(patch: dict) -> None:
    if patch.get("person_type_id") is not None:
        if not db.session.get(PersonType, patch["person_type_id"]):
            raise ValidationError("Person type not found")


def _counts(person_ids: list[int], model, column) -> dict[int, int]:
    if not person_ids:
        return {}
    rows = (
        db.session.query(column, func.count(model.id))
        .filter(column.in_(person_ids))
        .group_by(column)
        .all()
    )
    return {pid: count for pid, count in rows}


def usage_counts(person_ids: list[int]) -> dict[int, dict]:
    purchases = _counts(person_ids, ItemPurchase, ItemPurchase.person_id)
    sales = _counts(person_ids, ItemSale, ItemSale.client_id)
    invoices = _counts(person_ids, Invoice, Invoice.client_id)
    return {
        pid: {
            "purchases": purchases.get(pid, 0),
            "sales": sales.get(pid, 0),
            "invoices": invoices.get(pid, 0),
        }
        for pid in person_ids
    }


def list_people(user_id: int, person_type: str | None = None) -> list[Person]:
    """The user's people, newest first. person_type filters by type name."""
    query = db.session.query(Person).filter(Person.user_id == user_id)
    if person_type:
        query = query.join(PersonType, Person.person_type_id == PersonType.id).filter(
            func.lower(PersonType.name) == person_type.strip().lower()
        )
    return query.order_by(Person.created_at.desc(), Person.id.desc()).all()


def list_clients(user_id: int) -> list[Person]:
    """Clients by name, used by the sale form."""
    return (
        db.session.query(Person)
        .join(PersonType, Person.person_type_id == PersonType.id)
        .filter(Person.user_id == user_id, PersonType.name == "client")
        .order_by(Person.name.asc(), Person.id.asc())
        .all()
    )


def create_person(user_id: int, payload: dict) -> Person:
    patch = validate_payload(model=Person, payload=payload, policy=PERSON_POLICY, partial=False)
    _check_person_type(patch)
    person = Person(user_id=user_id, **patch)
    db.session.add(person)
    db.session.commit()
    return person


def update_person(person_id: int, user_id: int, payload: dict) -> Person:
    person = get_owned_person(person_id, user_id)
    patch = validate_payload(model=Person, payload=payload, policy=PERSON_POLICY, partial=True)
    _check_person_type(patch)
    for key, value in patch.items():
        setattr(person, key, value)
    db.session.commit()
    return person


def get_person_detail(person_id: int, user_id: int) -> dict:
    """Person with invoices (newest invoice date first) and usage counts."""
    person = get_owned_person(person_id, user_id)
    invoices = (
        db.session.query(Invoice)
        .filter(Invoice.client_id == person.id)
        .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .all()
    )
    data = person.to_dict()
    data["invoices"] = [
        {
            "id": inv.id,
            "invoice_number": inv.invoice_number,
            "invoice_date": to_utc_z(inv.invoice_date),
            "total_amount_cents": inv.total_amount_cents,
            "status": inv.status,
        }
        for inv in invoices
    ]
    data["counts"] = usage_counts([person.id])[person.id]
    return data


def delete_person(person_id: int, user_id: int) -> None:
    person = get_owned_person(person_id, user_id)
    counts = usage_counts([person.id])[person.id]
    if counts["purchases"] or counts["sales"] or counts["invoices"]:
        raise DeletionBlockedError("Cannot delete person with existing transactions")
    db.session.delete(person)
    db.session.commit()
