from __future__ import annotations

from ..extensions import db
from pawnledger.time_utils import to_utc_z


NOTIFICATION_TYPES = ("GENERAL", "OFFER", "UPDATES")


class Notification(db.Model):
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_read", "user_id", "is_read"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(16), nullable=False, default="GENERAL")
    is_read = db.Column(db.Boolean, nullable=False, default=False)

    # False when created as part of a broadcast to every user
    is_targeted = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", foreign_keys=[user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "message": self.message,
            "type": self.type,
            "is_read": self.is_read,
            "is_targeted": self.is_targeted,
            "created_at": to_utc_z(self.created_at),
        }
