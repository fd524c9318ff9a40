"""
Shared reference rows: person, document and image types.

Seeding is idempotent; existing names are left untouched.
"""

from __future__ import annotations

from ..extensions import db
from ..models import PersonType, DocumentType, ImageType


PERSON_TYPES = ("client", "seller", "expert")

DOCUMENT_TYPES = (
    "export_permit",
    "appraisal_report",
    "authenticity_certificate",
    "sale_certificate",
    "item",
    "incident",
    "user",
    "person",
)

IMAGE_TYPES = (
    "item",
    "incident",
    "profile",
    "document_preview",
    "user",
    "person",
)


def _ensure(model, names) -> int:
    existing = {name for (name,) in db.session.query(model.name).all()}
    created = 0
    for name in names:
        if name not in existing:
            db.session.add(model(name=name))
            created += 1
    return created


def seed_reference_types() -> dict[str, int]:
    """Insert missing reference types. Returns the number created per table."""
    created = {
        "person_types": _ensure(PersonType, PERSON_TYPES),
        "document_types": _ensure(DocumentType, DOCUMENT_TYPES),
        "image_types": _ensure(ImageType, IMAGE_TYPES),
    }
    db.session.commit()
    return created
