from __future__ import annotations

from ..extensions import db
from pawnledger.time_utils import to_utc_z


class PersonType(db.Model):
    __tablename__ = "person_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False, unique=True)  # client, seller, expert

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Person(db.Model):
    """
    Counterparty record (client, seller or expert).

    Distinct from a platform User: people never log in, they are
    referenced by purchases, sales, invoices and documents.
    """
    __tablename__ = "people"
    __table_args__ = (
        db.Index("ix_people_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    person_type_id = db.Column(db.Integer, db.ForeignKey("person_types.id"), nullable=True, index=True)

    name = db.Column(db.String(128), nullable=False)
    lastname = db.Column(db.String(128), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address_line_1 = db.Column(db.String(255), nullable=True)
    address_line_2 = db.Column(db.String(255), nullable=True)
    zipcode = db.Column(db.String(16), nullable=True)
    country = db.Column(db.String(64), nullable=True)
    website = db.Column(db.String(255), nullable=True)
    specialization = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    person_type = db.relationship("PersonType")

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.lastname or ''}".strip()

    def __repr__(self) -> str:
        return f"<Person id={self.id} name={self.full_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "person_type_id": self.person_type_id,
            "person_type": self.person_type.name if self.person_type else None,
            "name": self.name,
            "lastname": self.lastname,
            "phone": self.phone,
            "address_line_1": self.address_line_1,
            "address_line_2": self.address_line_2,
            "zipcode": self.zipcode,
            "country": self.country,
            "website": self.website,
            "specialization": self.specialization,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
