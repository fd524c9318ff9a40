from flask import Blueprint, jsonify, current_app, g, make_response

from ..services import export_service
from ..services.access_service import NotFoundError
from ..decorators import require_auth
from .books import request_book_id


export_bp = Blueprint("export", __name__, url_prefix="/api/export")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _download(body, mimetype: str, filename: str):
    response = make_response(body)
    response.headers["Content-Type"] = mimetype
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    return response


@export_bp.get("/<fmt>")
@require_auth
def export_registry_route(fmt: str):
    """
    Registry export of a book.

    Path: csv | xlsx. Query params: book_id (falls back to the selected book).
    """
    if fmt not in ("csv", "xlsx"):
        return jsonify({"error": "Unsupported export format"}), 400

    book_id = request_book_id()
    if book_id is None:
        return jsonify({"error": "Book ID is required"}), 400

    try:
        rows = export_service.export_rows(book_id, g.current_user.id)
        filename = export_service.export_filename(fmt)
        if fmt == "csv":
            return _download(export_service.render_csv(rows), "text/csv; charset=utf-8", filename)
        return _download(export_service.render_xlsx(rows), XLSX_MIMETYPE, filename)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Registry export failed")
        return jsonify({"error": "Export failed"}), 500
