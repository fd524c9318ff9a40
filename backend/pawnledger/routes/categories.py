from flask import Blueprint, request, jsonify, current_app, g

from ..services import category_service
from ..services.access_service import NotFoundError
from ..validation import ValidationError, ConflictError, DeletionBlockedError
from ..decorators import require_auth


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
def list_categories_route():
    categories = category_service.list_categories(g.current_user.id)
    counts = category_service.category_item_counts(g.current_user.id)
    result = []
    for category in categories:
        data = category.to_dict()
        data["item_count"] = counts.get(category.id, 0)
        result.append(data)
    return jsonify({"categories": result}), 200


@categories_bp.get("/<int:category_id>")
@require_auth
def get_category_route(category_id: int):
    try:
        category = category_service.get_category(category_id, g.current_user.id)
        return jsonify({"category": category.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@categories_bp.post("")
@require_auth
def create_category_route():
    data = request.get_json(silent=True) or {}
    try:
        category = category_service.create_category(g.current_user.id, data.get("name"))
        return jsonify({"category": category.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.put("/<int:category_id>")
@require_auth
def update_category_route(category_id: int):
    data = request.get_json(silent=True) or {}
    try:
        category = category_service.update_category(category_id, g.current_user.id, data.get("name"))
        return jsonify({"category": category.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.delete("/<int:category_id>")
@require_auth
def delete_category_route(category_id: int):
    try:
        category_service.delete_category(category_id, g.current_user.id)
        return jsonify({"ok": True}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except DeletionBlockedError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500
