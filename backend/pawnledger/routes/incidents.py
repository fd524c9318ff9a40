from flask import Blueprint, request, jsonify, current_app, g

from ..services import incident_service, attachment_service
from ..services.access_service import NotFoundError
from ..validation import ValidationError
from ..decorators import require_auth
from .books import request_book_id


incidents_bp = Blueprint("incidents", __name__, url_prefix="/api/incidents")


def _incident_payload(incident) -> dict:
    data = incident.to_dict()
    item = incident.item
    data["item"] = {"id": item.id, "item_number": item.item_number, "description": item.description}
    return data


@incidents_bp.get("")
@require_auth
def list_incidents_route():
    book_id = request_book_id()
    if book_id is None:
        return jsonify({"incidents": [], "book_id": None}), 200
    try:
        incidents = incident_service.list_incidents(
            book_id, g.current_user.id, status=request.args.get("status")
        )
        return jsonify({"incidents": [_incident_payload(i) for i in incidents], "book_id": book_id}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@incidents_bp.post("")
@require_auth
def report_incident_route():
    """Body: {"item_id", "incident_type", "description", "incident_date", "reported_by"}"""
    data = request.get_json(silent=True) or {}
    item_id = data.pop("item_id", None)
    if item_id is None:
        return jsonify({"error": "item_id is required"}), 400

    try:
        incident = incident_service.report_incident(item_id, g.current_user.id, data)
        return jsonify({"incident": _incident_payload(incident)}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create incident")
        return jsonify({"error": "Internal server error"}), 500


@incidents_bp.get("/<int:incident_id>")
@require_auth
def get_incident_route(incident_id: int):
    try:
        incident = incident_service.get_incident(incident_id, g.current_user.id)
        return jsonify({"incident": _incident_payload(incident)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@incidents_bp.put("/<int:incident_id>/status")
@require_auth
def update_status_route(incident_id: int):
    data = request.get_json(silent=True) or {}
    try:
        incident = incident_service.update_resolution_status(
            incident_id, g.current_user.id, data.get("resolution_status")
        )
        return jsonify({"incident": _incident_payload(incident)}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update incident status")
        return jsonify({"error": "Internal server error"}), 500


@incidents_bp.get("/<int:incident_id>/images")
@require_auth
def list_incident_images_route(incident_id: int):
    try:
        images = attachment_service.list_images(g.current_user, "incident", incident_id)
        return jsonify({"images": [i.to_dict() for i in images]}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@incidents_bp.post("/<int:incident_id>/images/reorder")
@require_auth
def reorder_incident_images_route(incident_id: int):
    data = request.get_json(silent=True) or {}
    try:
        images = attachment_service.reorder_images(
            g.current_user, "incident", incident_id, data.get("image_ids")
        )
        return jsonify({"images": [i.to_dict() for i in images]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to reorder incident images")
        return jsonify({"error": "Internal server error"}), 500
