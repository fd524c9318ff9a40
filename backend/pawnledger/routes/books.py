"""
Book routes.

A book is the ledger the rest of the dashboard works on. The selected
book is remembered in an httpOnly cookie for 30 days.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import book_service
from ..services.access_service import NotFoundError, get_owned_book
from ..validation import ValidationError
from ..decorators import require_auth


books_bp = Blueprint("books", __name__, url_prefix="/api/books")

SELECTED_BOOK_MAX_AGE = 60 * 60 * 24 * 30


def request_book_id(explicit=None) -> int | None:
    """Book for the current request: explicit value, ?book_id=, selected-book cookie, newest book."""
    if explicit in (None, ""):
        explicit = request.args.get("book_id")
    return book_service.resolve_book_id(
        g.current_user.id,
        explicit=explicit,
        cookie_value=request.cookies.get(current_app.config["SELECTED_BOOK_COOKIE"]),
    )


@books_bp.get("")
@require_auth
def list_books_route():
    books = book_service.list_books(g.current_user.id)
    selected = request_book_id()
    return jsonify({"books": [b.to_dict() for b in books], "selected_book_id": selected}), 200


@books_bp.post("")
@require_auth
def create_book_route():
    data = request.get_json(silent=True) or {}
    try:
        book = book_service.create_book(
            user_id=g.current_user.id,
            book_type_id=data.get("book_type_id"),
            description=data.get("description"),
            reference=data.get("reference"),
        )
        return jsonify({"book": book.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create book")
        return jsonify({"error": "Internal server error"}), 500


@books_bp.get("/types")
@require_auth
def list_book_types_route():
    types = book_service.list_book_types()
    return jsonify({"book_types": [t.to_dict() for t in types]}), 200


@books_bp.get("/<int:book_id>/fields")
@require_auth
def list_field_definitions_route(book_id: int):
    try:
        fields = book_service.get_field_definitions(book_id, g.current_user.id)
        return jsonify({"fields": [f.to_dict() for f in fields]}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@books_bp.post("/<int:book_id>/select")
@require_auth
def select_book_route(book_id: int):
    try:
        get_owned_book(book_id, g.current_user.id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    response = jsonify({"selected_book_id": book_id})
    response.set_cookie(
        current_app.config["SELECTED_BOOK_COOKIE"],
        str(book_id),
        max_age=SELECTED_BOOK_MAX_AGE,
        httponly=True,
        secure=not current_app.debug and not current_app.testing,
        samesite="Lax",
    )
    return response, 200
