"""
In-app notifications.

Admins create notifications for one user (targeted) or for every user
(broadcast: one row per recipient, is_targeted=False). Users only ever see
and mark their own rows.
"""

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Notification, User, Book
from ..models.notifications import NOTIFICATION_TYPES
from ..validation import ValidationError, coerce_int
from .access_service import NotFoundError


USER_FEED_LIMIT = 50
USER_SEARCH_LIMIT = 10


def list_for_user(user_id: int, limit: int = USER_FEED_LIMIT) -> list[Notification]:
    return (
        db.session.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def unread_count(user_id: int) -> int:
    return (
        db.session.query(func.count(Notification.id))
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .scalar()
    ) or 0


def mark_read(notification_id: int, user_id: int) -> Notification:
    notification = (
        db.session.query(Notification)
        .filter_by(id=notification_id, user_id=user_id)
        .first()
    )
    if not notification:
        raise NotFoundError("Notification not found")
    notification.is_read = True
    db.session.commit()
    return notification


def mark_all_read(user_id: int) -> int:
    updated = (
        db.session.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.session.commit()
    return updated


# ---- admin ----

def list_users_with_book_counts() -> list[dict]:
    rows = (
        db.session.query(User, func.count(Book.id))
        .outerjoin(Book, Book.user_id == User.id)
        .group_by(User.id)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    result = []
    for user, book_count in rows:
        data = user.to_dict()
        data["book_count"] = book_count
        result.append(data)
    return result


def search_users(query: str | None, limit: int = USER_SEARCH_LIMIT) -> list[User]:
    query = (query or "").strip()
    if not query:
        return []
    pattern = f"%{query.lower()}%"
    return (
        db.session.query(User)
        .filter(or_(func.lower(User.email).like(pattern), func.lower(User.username).like(pattern)))
        .order_by(User.email.asc())
        .limit(limit)
        .all()
    )


def list_all() -> list[Notification]:
    return (
        db.session.query(Notification)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .all()
    )


def create_notification(*, created_by: int, message: str | None, type: str | None, target_user_id=None) -> list[Notification]:
    """
    target_user_id=None broadcasts to every user. Returns the created rows.
    """
    message = (message or "").strip()
    if not message:
        raise ValidationError("Message is required")

    notification_type = (type or "GENERAL").strip().upper()
    if notification_type not in NOTIFICATION_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(NOTIFICATION_TYPES)}")

    if target_user_id not in (None, ""):
        target_id = coerce_int(target_user_id, "target_user_id")
        if db.session.get(User, target_id) is None:
            raise NotFoundError("User not found")
        recipients = [target_id]
        targeted = True
    else:
        recipients = [uid for (uid,) in db.session.query(User.id).order_by(User.id.asc()).all()]
        targeted = False

    notifications = [
        Notification(
            user_id=uid,
            created_by=created_by,
            message=message,
            type=notification_type,
            is_read=False,
            is_targeted=targeted,
        )
        for uid in recipients
    ]
    db.session.add_all(notifications)
    db.session.commit()
    return notifications
