from flask import Blueprint, request, jsonify, current_app, g

from ..services import cost_service
from ..services.access_service import NotFoundError
from ..validation import ValidationError, ConflictError, DeletionBlockedError
from ..decorators import require_auth


costs_bp = Blueprint("costs", __name__, url_prefix="/api/costs")


# ---- event types ----

@costs_bp.get("/event-types")
@require_auth
def list_event_types_route():
    types = cost_service.list_event_types(g.current_user.id)
    return jsonify({"event_types": [t.to_dict() for t in types]}), 200


@costs_bp.post("/event-types")
@require_auth
def create_event_type_route():
    data = request.get_json(silent=True) or {}
    try:
        event_type = cost_service.create_event_type(g.current_user.id, data.get("name"))
        return jsonify({"event_type": event_type.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create cost event type")
        return jsonify({"error": "Internal server error"}), 500


@costs_bp.put("/event-types/<int:event_type_id>")
@require_auth
def rename_event_type_route(event_type_id: int):
    data = request.get_json(silent=True) or {}
    try:
        event_type = cost_service.rename_event_type(event_type_id, g.current_user.id, data.get("name"))
        return jsonify({"event_type": event_type.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update cost event type")
        return jsonify({"error": "Internal server error"}), 500


@costs_bp.delete("/event-types/<int:event_type_id>")
@require_auth
def delete_event_type_route(event_type_id: int):
    try:
        cost_service.delete_event_type(event_type_id, g.current_user.id)
        return jsonify({"ok": True}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except DeletionBlockedError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to delete cost event type")
        return jsonify({"error": "Internal server error"}), 500


# ---- costs ----

@costs_bp.get("")
@require_auth
def list_costs_route():
    """Query params: book_id (optional)."""
    try:
        costs = cost_service.list_costs(g.current_user.id, book_id=request.args.get("book_id"))
        return jsonify({"costs": [c.to_dict() for c in costs]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@costs_bp.post("")
@require_auth
def create_cost_route():
    """Body: {"book_id", "amount_cents", "cost_date", "cost_event_type_id", "details_message"}"""
    payload = request.get_json(silent=True) or {}
    try:
        cost = cost_service.create_cost(g.current_user.id, payload)
        return jsonify({"cost": cost.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create cost")
        return jsonify({"error": "Internal server error"}), 500


@costs_bp.put("/<int:cost_id>")
@require_auth
def update_cost_route(cost_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        cost = cost_service.update_cost(cost_id, g.current_user.id, payload)
        return jsonify({"cost": cost.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update cost")
        return jsonify({"error": "Internal server error"}), 500


@costs_bp.delete("/<int:cost_id>")
@require_auth
def delete_cost_route(cost_id: int):
    try:
        cost_service.delete_cost(cost_id, g.current_user.id)
        return jsonify({"ok": True}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete cost")
        return jsonify({"error": "Internal server error"}), 500
