"""
Document attachment routes and the shared document type catalogue.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import attachment_service
from ..services.access_service import NotFoundError, AccessDeniedError
from ..services.storage_service import StorageError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth
from .images import attachment_request


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


@documents_bp.get("/types")
@require_auth
def list_document_types_route():
    """?name= returns the single matching type instead of the list."""
    name = request.args.get("name")
    if name is not None:
        try:
            document_type = attachment_service.get_document_type_by_name(name)
        except NotFoundError as e:
            return jsonify({"error": str(e)}), 404
        return jsonify({"document_type": document_type.to_dict()}), 200

    types = attachment_service.list_document_types()
    return jsonify({"document_types": [t.to_dict() for t in types]}), 200


@documents_bp.post("/types")
@require_auth
def create_document_type_route():
    data = request.get_json(silent=True) or {}
    try:
        document_type = attachment_service.create_document_type(data.get("name"), data.get("description"))
        return jsonify({"document_type": document_type.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create document type")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.get("")
@require_auth
def list_documents_route():
    """Query params: entity_type, entity_id (both required)."""
    entity_type = request.args.get("entity_type")
    entity_id = request.args.get("entity_id", type=int)
    if not entity_type or entity_id is None:
        return jsonify({"error": "Entity type and ID required"}), 400

    try:
        documents = attachment_service.list_documents(g.current_user, entity_type, entity_id)
        return jsonify({"documents": [d.to_dict() for d in documents]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@documents_bp.post("")
@require_auth
def create_document_route():
    payload, upload = attachment_request()
    try:
        document = attachment_service.create_document(g.current_user, payload, upload=upload)
        current_app.logger.info(
            "Document created: user=%s document=%s entity=%s:%s",
            g.current_user.id, document.id, document.entity_type, document.entity_id,
        )
        return jsonify({"document": document.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError as e:
        return jsonify({"error": str(e)}), 502
    except Exception:
        current_app.logger.exception("Failed to create document")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.get("/<int:document_id>")
@require_auth
def get_document_route(document_id: int):
    try:
        document = attachment_service.get_document(g.current_user, document_id)
        return jsonify({"document": document.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403


@documents_bp.delete("/<int:document_id>")
@require_auth
def delete_document_route(document_id: int):
    try:
        document = attachment_service.delete_document(g.current_user, document_id)
        current_app.logger.info("Document soft-deleted: user=%s document=%s", g.current_user.id, document.id)
        return jsonify({"success": True, "document": document.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except AccessDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to delete document")
        return jsonify({"error": "Internal server error"}), 500
