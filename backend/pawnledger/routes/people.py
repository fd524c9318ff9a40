from flask import Blueprint, request, jsonify, current_app, g

from ..services import people_service, attachment_service
from ..services.access_service import NotFoundError
from ..validation import ValidationError, DeletionBlockedError
from ..decorators import require_auth


people_bp = Blueprint("people", __name__, url_prefix="/api/people")


@people_bp.get("/types")
@require_auth
def list_person_types_route():
    types = people_service.list_person_types()
    return jsonify({"person_types": [t.to_dict() for t in types]}), 200


@people_bp.get("")
@require_auth
def list_people_route():
    """Query params: type (optional person type name)."""
    people = people_service.list_people(g.current_user.id, person_type=request.args.get("type"))
    counts = people_service.usage_counts([p.id for p in people])
    result = []
    for person in people:
        data = person.to_dict()
        data["counts"] = counts[person.id]
        result.append(data)
    return jsonify({"people": result}), 200


@people_bp.get("/clients")
@require_auth
def list_clients_route():
    clients = people_service.list_clients(g.current_user.id)
    return jsonify({"clients": [c.to_dict() for c in clients]}), 200


@people_bp.post("")
@require_auth
def create_person_route():
    data = request.get_json(silent=True) or {}
    try:
        person = people_service.create_person(g.current_user.id, data)
        return jsonify({"person": person.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create person")
        return jsonify({"error": "Internal server error"}), 500


@people_bp.get("/<int:person_id>")
@require_auth
def get_person_route(person_id: int):
    try:
        return jsonify({"person": people_service.get_person_detail(person_id, g.current_user.id)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@people_bp.put("/<int:person_id>")
@require_auth
def update_person_route(person_id: int):
    data = request.get_json(silent=True) or {}
    try:
        person = people_service.update_person(person_id, g.current_user.id, data)
        return jsonify({"person": person.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update person")
        return jsonify({"error": "Internal server error"}), 500


@people_bp.delete("/<int:person_id>")
@require_auth
def delete_person_route(person_id: int):
    try:
        people_service.delete_person(person_id, g.current_user.id)
        return jsonify({"message": "Person deleted successfully"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except DeletionBlockedError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to delete person")
        return jsonify({"error": "Internal server error"}), 500


@people_bp.get("/<int:person_id>/documents")
@require_auth
def list_person_documents_route(person_id: int):
    try:
        documents = attachment_service.list_documents(g.current_user, "person", person_id)
        return jsonify({"documents": [d.to_dict() for d in documents]}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
