"""
Image attachment routes.

Create accepts JSON metadata of an already-stored file, or a multipart form
with a `file` part that is uploaded to storage first.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import attachment_service
from ..services.access_service import NotFoundError, AccessDeniedError
from ..services.storage_service import StorageError
from ..validation import ValidationError
from ..decorators import require_auth


images_bp = Blueprint("images", __name__, url_prefix="/api/images")


def attachment_request():
    """(payload, upload) for JSON or multipart create requests."""
    upload = request.files.get("file")
    if upload is not None:
        return request.form.to_dict(), upload
    return request.get_json(silent=True) or {}, None


@images_bp.get("/types")
@require_auth
def list_image_types_route():
    types = attachment_service.list_image_types()
    return jsonify({"image_types": [t.to_dict() for t in types]}), 200


@images_bp.get("")
@require_auth
def list_images_route():
    """Query params: entity_type, entity_id (both required)."""
    entity_type = request.args.get("entity_type")
    entity_id = request.args.get("entity_id", type=int)
    if not entity_type or entity_id is None:
        return jsonify({"error": "Entity type and ID required"}), 400

    try:
        images = attachment_service.list_images(g.current_user, entity_type, entity_id)
        return jsonify({"images": [i.to_dict() for i in images]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@images_bp.post("")
@require_auth
def create_image_route():
    payload, upload = attachment_request()
    try:
        image = attachment_service.create_image(g.current_user, payload, upload=upload)
        current_app.logger.info(
            "Image created: user=%s image=%s entity=%s:%s",
            g.current_user.id, image.id, image.entity_type, image.entity_id,
        )
        return jsonify({"image": image.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError as e:
        return jsonify({"error": str(e)}), 502
    except Exception:
        current_app.logger.exception("Failed to create image")
        return jsonify({"error": "Internal server error"}), 500


@images_bp.get("/<int:image_id>")
@require_auth
def get_image_route(image_id: int):
    try:
        image = attachment_service.get_image(g.current_user, image_id)
        return jsonify({"image": image.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403


@images_bp.put("/<int:image_id>")
@require_auth
def update_image_route(image_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        image = attachment_service.update_image(g.current_user, image_id, payload)
        return jsonify({"image": image.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to update image")
        return jsonify({"error": "Internal server error"}), 500


@images_bp.post("/<int:image_id>/primary")
@require_auth
def set_primary_image_route(image_id: int):
    try:
        image = attachment_service.set_primary_image(g.current_user, image_id)
        return jsonify({"image": image.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to set primary image")
        return jsonify({"error": "Internal server error"}), 500


@images_bp.post("/reorder")
@require_auth
def reorder_images_route():
    """Body: {"entity_type", "entity_id", "image_ids": [...]}"""
    data = request.get_json(silent=True) or {}
    entity_type = data.get("entity_type")
    entity_id = data.get("entity_id")
    if not entity_type or not isinstance(entity_id, int):
        return jsonify({"error": "Entity type and ID required"}), 400

    try:
        images = attachment_service.reorder_images(
            g.current_user, entity_type, entity_id, data.get("image_ids")
        )
        return jsonify({"images": [i.to_dict() for i in images]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to reorder images")
        return jsonify({"error": "Internal server error"}), 500


@images_bp.delete("/<int:image_id>")
@require_auth
def delete_image_route(image_id: int):
    try:
        image = attachment_service.delete_image(g.current_user, image_id)
        current_app.logger.info("Image soft-deleted: user=%s image=%s", g.current_user.id, image.id)
        return jsonify({"success": True, "image": image.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to delete image")
        return jsonify({"error": "Internal server error"}), 500
