from flask import Blueprint, jsonify, current_app, g

from ..services import notification_service
from ..services.access_service import NotFoundError
from ..decorators import require_auth


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """Last 50 notifications of the caller plus the unread count."""
    notifications = notification_service.list_for_user(g.current_user.id)
    return jsonify({
        "notifications": [n.to_dict() for n in notifications],
        "unread_count": notification_service.unread_count(g.current_user.id),
    }), 200


@notifications_bp.get("/unread-count")
@require_auth
def unread_count_route():
    return jsonify({"unread_count": notification_service.unread_count(g.current_user.id)}), 200


@notifications_bp.post("/<int:notification_id>/read")
@require_auth
def mark_read_route(notification_id: int):
    try:
        notification = notification_service.mark_read(notification_id, g.current_user.id)
        return jsonify({"notification": notification.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to mark notification read")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.post("/read-all")
@require_auth
def mark_all_read_route():
    updated = notification_service.mark_all_read(g.current_user.id)
    return jsonify({"updated": updated}), 200
