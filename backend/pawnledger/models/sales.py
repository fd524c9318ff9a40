from __future__ import annotations

from ..extensions import db
from pawnledger.time_utils import to_utc_z

class Invoice(db.Model):
    """
    Invoice document grouping one or more item sales.

    invoice_number is sequential per book ("INV-001", "INV-002", ...).
    The (book_id, invoice_number) pair is unique so a concurrent writer that
    computed the same number fails at flush time instead of duplicating it.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("book_id", "invoice_number", name="uq_invoices_book_number"),
        db.Index("ix_invoices_book_date", "book_id", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("people.id"), nullable=True, index=True)

    invoice_number = db.Column(db.String(32), nullable=False)
    invoice_date = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="paid")

    # Denormalized sum of sale prices
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    book = db.relationship("Book", backref=db.backref("invoices", lazy=True))
    client = db.relationship("Person", backref=db.backref("invoices", lazy=True))
    sales = db.relationship("ItemSale", back_populates="invoice", lazy=True, order_by="ItemSale.id")

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} book_id={self.book_id}>"

    def to_dict(self, include_sales: bool = False) -> dict:
        data = {
            "id": self.id,
            "book_id": self.book_id,
            "user_id": self.user_id,
            "client_id": self.client_id,
            "invoice_number": self.invoice_number,
            "invoice_date": to_utc_z(self.invoice_date),
            "status": self.status,
            "total_amount_cents": self.total_amount_cents,
            "created_at": to_utc_z(self.created_at),
        }
        if include_sales:
            data["sales"] = [sale.to_dict() for sale in self.sales]
        return data


class ItemSale(db.Model):
    """Sale of a single item. An item can be sold once (item_id is unique)."""
    __tablename__ = "item_sales"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, unique=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("people.id"), nullable=True, index=True)

    sale_price_cents = db.Column(db.Integer, nullable=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)
    sale_location = db.Column(db.String(255), nullable=True)
    payment_method = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item", back_populates="sale")
    invoice = db.relationship("Invoice", back_populates="sales")
    client = db.relationship("Person", backref=db.backref("sales", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "invoice_id": self.invoice_id,
            "client_id": self.client_id,
            "sale_price_cents": self.sale_price_cents,
            "sale_date": to_utc_z(self.sale_date),
            "sale_location": self.sale_location,
            "payment_method": self.payment_method,
            "created_at": to_utc_z(self.created_at),
        }
