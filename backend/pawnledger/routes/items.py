"""
Item registry routes.

All item reads and writes are scoped to the caller's books. The target book
for create / list comes from the body or ?book_id=, then the selected-book
cookie, then the newest book.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import item_service, attachment_service
from ..services.access_service import NotFoundError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth
from .books import request_book_id


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("")
@require_auth
def list_items_route():
    """
    Query params:
    - book_id: int (optional)
    - status: available | sold | incident (optional)
    - category_id: int (optional)
    - q: search on item number / description (optional)
    """
    book_id = request_book_id()
    if book_id is None:
        return jsonify({"items": [], "book_id": None}), 200

    try:
        items = item_service.list_items(
            user_id=g.current_user.id,
            book_id=book_id,
            status=request.args.get("status"),
            category_id=request.args.get("category_id", type=int),
            search=request.args.get("q"),
        )
        return jsonify({"items": [i.to_dict() for i in items], "book_id": book_id}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to list items")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.post("")
@require_auth
def create_item_route():
    """
    Body:
    {
      "book_id": 1,                       # optional, see module docstring
      "item_number": "A-001",
      "description": "...", "category_id": 3, "color": "...", "grade": "...",
      "purchase": {"purchase_price_cents": 1000, "purchase_date": "2024-01-05", "person_id": 7},
      "attributes": {"<field_definition_id>": "value"}
    }
    """
    data = request.get_json(silent=True) or {}
    purchase = data.pop("purchase", None)
    attributes = data.pop("attributes", None)
    book_id = request_book_id(data.pop("book_id", None))

    if book_id is None:
        return jsonify({"error": "Create a book first"}), 400

    try:
        item = item_service.create_item(
            user_id=g.current_user.id,
            book_id=book_id,
            payload=data,
            purchase=purchase,
            attributes=attributes,
        )
        return jsonify({"item": item.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = item_service.get_item(item_id, g.current_user.id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    data = item.to_dict()
    data["incidents"] = [incident.to_dict() for incident in item.incidents]
    return jsonify({"item": data}), 200


@items_bp.put("/<int:item_id>")
@require_auth
def update_item_route(item_id: int):
    data = request.get_json(silent=True) or {}
    attributes = data.pop("attributes", None)
    try:
        item = item_service.update_item(item_id, g.current_user.id, data, attributes=attributes)
        return jsonify({"item": item.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.put("/<int:item_id>/category")
@require_auth
def update_item_category_route(item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        item = item_service.update_item_category(item_id, g.current_user.id, data.get("category_id"))
        return jsonify({"item": item.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update item category")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.put("/<int:item_id>/purchase")
@require_auth
def set_purchase_route(item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        purchase = item_service.set_purchase(item_id, g.current_user.id, data)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to set purchase")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("/<int:item_id>/images")
@require_auth
def list_item_images_route(item_id: int):
    try:
        images = attachment_service.list_images(g.current_user, "item", item_id)
        return jsonify({"images": [i.to_dict() for i in images]}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@items_bp.post("/<int:item_id>/images/reorder")
@require_auth
def reorder_item_images_route(item_id: int):
    """Body: {"image_ids": [5, 3, 9]}; positions follow list order."""
    data = request.get_json(silent=True) or {}
    try:
        images = attachment_service.reorder_images(
            g.current_user, "item", item_id, data.get("image_ids")
        )
        return jsonify({"images": [i.to_dict() for i in images]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to reorder item images")
        return jsonify({"error": "Internal server error"}), 500
