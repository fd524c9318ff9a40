from __future__ import annotations

from ..extensions import db
from pawnledger.time_utils import to_utc_z


class Subscription(db.Model):
    """
    Local mirror of a Stripe subscription.

    Rows are written only by the webhook handler and keyed by
    stripe_subscription_id, so replayed events upsert the same row.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        db.Index("ix_subscriptions_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    stripe_subscription_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    stripe_customer_id = db.Column(db.String(255), nullable=True, index=True)

    # active, trialing, past_due, canceled, unpaid, incomplete, ...
    status = db.Column(db.String(32), nullable=False)

    current_period_start = db.Column(db.DateTime(timezone=True), nullable=True)
    current_period_end = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_at = db.Column(db.DateTime(timezone=True), nullable=True)
    canceled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("subscriptions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "stripe_subscription_id": self.stripe_subscription_id,
            "stripe_customer_id": self.stripe_customer_id,
            "status": self.status,
            "current_period_start": to_utc_z(self.current_period_start) if self.current_period_start else None,
            "current_period_end": to_utc_z(self.current_period_end) if self.current_period_end else None,
            "cancel_at": to_utc_z(self.cancel_at) if self.cancel_at else None,
            "canceled_at": to_utc_z(self.canceled_at) if self.canceled_at else None,
            "created_at": to_utc_z(self.created_at),
        }
