from __future__ import annotations

from ..extensions import db
from pawnledger.time_utils import to_utc_z


ITEM_STATUS_AVAILABLE = "Available"
ITEM_STATUS_SOLD = "Sold"
ITEM_STATUS_INCIDENT = "Incident"


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("user_id", "name", name="uq_categories_user_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Item(db.Model):
    """
    A registered object in a book.

    An item has at most one purchase record (how it came in) and at most
    one sale record (how it went out). Incidents are appended over time.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_book_created", "book_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    item_number = db.Column(db.String(64), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)
    color = db.Column(db.String(64), nullable=True)
    grade = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    book = db.relationship("Book", backref=db.backref("items", lazy=True))
    category = db.relationship("Category", backref=db.backref("items", lazy=True))
    purchase = db.relationship("ItemPurchase", uselist=False, back_populates="item")
    sale = db.relationship("ItemSale", uselist=False, back_populates="item")
    incidents = db.relationship(
        "ItemIncident",
        back_populates="item",
        lazy=True,
        order_by="desc(ItemIncident.incident_date)",
    )
    attributes = db.relationship("ItemAttribute", back_populates="item", lazy=True)

    @property
    def status(self) -> str:
        if self.sale is not None:
            return ITEM_STATUS_SOLD
        if self.incidents:
            return ITEM_STATUS_INCIDENT
        return ITEM_STATUS_AVAILABLE

    def __repr__(self) -> str:
        return f"<Item id={self.id} number={self.item_number!r} book_id={self.book_id}>"

    def to_dict(self, include_relations: bool = True) -> dict:
        data = {
            "id": self.id,
            "book_id": self.book_id,
            "category_id": self.category_id,
            "item_number": self.item_number,
            "description": self.description,
            "color": self.color,
            "grade": self.grade,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_relations:
            data["category"] = self.category.to_dict() if self.category else None
            data["purchase"] = self.purchase.to_dict() if self.purchase else None
            data["sale"] = self.sale.to_dict() if self.sale else None
            data["attributes"] = [attr.to_dict() for attr in self.attributes]
            data["incident_count"] = len(self.incidents)
        return data


class ItemAttribute(db.Model):
    """Value of a book-type custom field for one item."""
    __tablename__ = "item_attributes"
    __table_args__ = (
        db.UniqueConstraint("item_id", "field_definition_id", name="uq_item_attributes_item_field"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    field_definition_id = db.Column(db.Integer, db.ForeignKey("field_definitions.id"), nullable=False)
    value = db.Column(db.Text, nullable=True)

    item = db.relationship("Item", back_populates="attributes")
    field_definition = db.relationship("FieldDefinition")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "field_definition_id": self.field_definition_id,
            "name": self.field_definition.name if self.field_definition else None,
            "label": self.field_definition.label if self.field_definition else None,
            "value": self.value,
        }


class ItemPurchase(db.Model):
    __tablename__ = "item_purchases"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, unique=True)
    # Seller the item was bought from
    person_id = db.Column(db.Integer, db.ForeignKey("people.id"), nullable=True, index=True)

    purchase_price_cents = db.Column(db.Integer, nullable=True)
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item", back_populates="purchase")
    person = db.relationship("Person", backref=db.backref("purchases", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "person_id": self.person_id,
            "purchase_price_cents": self.purchase_price_cents,
            "purchase_date": to_utc_z(self.purchase_date) if self.purchase_date else None,
        }


class ItemIncident(db.Model):
    __tablename__ = "item_incidents"
    __table_args__ = (
        db.Index("ix_item_incidents_item_date", "item_id", "incident_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    incident_type = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)
    incident_date = db.Column(db.DateTime(timezone=True), nullable=True)
    reported_by = db.Column(db.String(128), nullable=True)
    resolution_status = db.Column(db.String(16), nullable=False, default="open", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    item = db.relationship("Item", back_populates="incidents")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "incident_type": self.incident_type,
            "description": self.description,
            "incident_date": to_utc_z(self.incident_date) if self.incident_date else None,
            "reported_by": self.reported_by,
            "resolution_status": self.resolution_status,
            "created_at": to_utc_z(self.created_at),
        }
