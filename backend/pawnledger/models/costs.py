from __future__ import annotations

from ..extensions import db
from pawnledger.time_utils import to_utc_z


class CostEventType(db.Model):
    __tablename__ = "cost_event_types"
    __table_args__ = (
        db.UniqueConstraint("user_id", "name", name="uq_cost_event_types_user_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class Cost(db.Model):
    """Operating expense recorded against a book."""
    __tablename__ = "costs"
    __table_args__ = (
        db.Index("ix_costs_book_date", "book_id", "cost_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    cost_event_type_id = db.Column(db.Integer, db.ForeignKey("cost_event_types.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    cost_date = db.Column(db.DateTime(timezone=True), nullable=False)
    details_message = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    cost_event_type = db.relationship("CostEventType", backref=db.backref("costs", lazy=True))
    book = db.relationship("Book", backref=db.backref("costs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "cost_event_type_id": self.cost_event_type_id,
            "cost_event_type": self.cost_event_type.name if self.cost_event_type else None,
            "amount_cents": self.amount_cents,
            "cost_date": to_utc_z(self.cost_date),
            "details_message": self.details_message,
            "created_at": to_utc_z(self.created_at),
        }
