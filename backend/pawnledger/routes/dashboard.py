from flask import Blueprint, jsonify, g

from ..services import dashboard_service
from ..services.access_service import NotFoundError
from ..decorators import require_auth
from .books import request_book_id


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
def dashboard_route():
    """Stats of the selected book. Query params: book_id (optional)."""
    book_id = request_book_id()
    if book_id is None:
        return jsonify({"stats": None, "book_id": None}), 200

    try:
        stats = dashboard_service.book_stats(book_id, g.current_user.id)
        return jsonify({"stats": stats, "book_id": book_id}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
