"""
Admin routes. Every endpoint requires an authenticated admin.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import notification_service
from ..services.access_service import NotFoundError
from ..validation import ValidationError
from ..decorators import require_auth, require_admin


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    return jsonify({"users": notification_service.list_users_with_book_counts()}), 200


@admin_bp.get("/users/search")
@require_auth
@require_admin
def search_users_route():
    users = notification_service.search_users(request.args.get("q"))
    return jsonify({"users": [{"id": u.id, "email": u.email, "username": u.username} for u in users]}), 200


@admin_bp.get("/notifications")
@require_auth
@require_admin
def list_all_notifications_route():
    notifications = notification_service.list_all()
    result = []
    for n in notifications:
        data = n.to_dict()
        data["user"] = {"id": n.user.id, "email": n.user.email, "username": n.user.username} if n.user else None
        result.append(data)
    return jsonify({"notifications": result}), 200


@admin_bp.post("/notifications")
@require_auth
@require_admin
def create_notification_route():
    """Body: {"message", "type": GENERAL|OFFER|UPDATES, "target_user_id": int|null}"""
    data = request.get_json(silent=True) or {}
    try:
        notifications = notification_service.create_notification(
            created_by=g.current_user.id,
            message=data.get("message"),
            type=data.get("type"),
            target_user_id=data.get("target_user_id"),
        )
        current_app.logger.info(
            "Notification sent: admin=%s recipients=%s targeted=%s",
            g.current_user.id, len(notifications), data.get("target_user_id") is not None,
        )
        if data.get("target_user_id") not in (None, ""):
            return jsonify({"notification": notifications[0].to_dict()}), 201
        return jsonify({"count": len(notifications)}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create notification")
        return jsonify({"error": "Internal server error"}), 500
