"""
Invoice routes: invoice line listing and on-demand PDF rendering.

PDFs are returned as `application/pdf` attachments and never stored.
"""

from flask import Blueprint, request, jsonify, current_app, g, make_response

from ..services import invoice_pdf_service, sales_service
from ..services.access_service import NotFoundError
from ..validation import ValidationError, coerce_int
from ..decorators import require_auth


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _pdf_response(document):
    pdf_bytes = invoice_pdf_service.render_invoice_pdf(document)
    response = make_response(pdf_bytes)
    response.headers["Content-Type"] = "application/pdf"
    response.headers["Content-Disposition"] = f'attachment; filename="{document.filename}"'
    return response


def _optional_int(data: dict, key: str):
    value = data.get(key)
    if value in (None, ""):
        return None
    return coerce_int(value, key)


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        invoice, sales = sales_service.get_invoice_items(invoice_id, g.current_user.id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    data = invoice.to_dict()
    data["client"] = invoice.client.to_dict() if invoice.client else None
    return jsonify({"invoice": data}), 200


@invoices_bp.get("/<int:invoice_id>/items")
@require_auth
def invoice_items_route(invoice_id: int):
    try:
        _, sales = sales_service.get_invoice_items(invoice_id, g.current_user.id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    items = []
    for sale in sales:
        item = sale.item
        items.append({
            "id": item.id,
            "item_number": item.item_number,
            "description": item.description,
            "category": item.category.to_dict() if item.category else None,
            "color": item.color,
            "grade": item.grade,
            "sale_id": sale.id,
            "sale_price_cents": sale.sale_price_cents,
            "sale_date": sale.to_dict()["sale_date"],
            "sale_location": sale.sale_location,
            "payment_method": sale.payment_method,
        })
    return jsonify({"items": items}), 200


@invoices_bp.post("/pdf")
@require_auth
def invoice_pdf_route():
    """Body: {"invoice_id"} or {"sale_id"}."""
    data = request.get_json(silent=True) or {}
    try:
        invoice_id = _optional_int(data, "invoice_id")
        sale_id = _optional_int(data, "sale_id")
        if invoice_id is not None:
            document = invoice_pdf_service.document_for_invoice(invoice_id, g.current_user.id)
        elif sale_id is not None:
            document = invoice_pdf_service.document_for_sale(sale_id, g.current_user.id)
        else:
            return jsonify({"error": "No sale_id or invoice_id provided"}), 400
        return _pdf_response(document)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to generate invoice")
        return jsonify({"error": "Failed to generate invoice"}), 500


@invoices_bp.post("/pdf/item")
@require_auth
def item_invoice_pdf_route():
    """Body: {"item_id", "client_id"?}"""
    data = request.get_json(silent=True) or {}
    try:
        item_id = _optional_int(data, "item_id")
        if item_id is None:
            return jsonify({"error": "item_id is required"}), 400
        document = invoice_pdf_service.document_for_item(
            item_id, g.current_user.id, client_id=_optional_int(data, "client_id")
        )
        return _pdf_response(document)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to generate item invoice")
        return jsonify({"error": "Failed to generate invoice"}), 500


@invoices_bp.post("/pdf/multi")
@require_auth
def multi_invoice_pdf_route():
    """Body: {"sale_ids": [...], "client_id"?}"""
    data = request.get_json(silent=True) or {}
    try:
        raw_ids = data.get("sale_ids")
        if not isinstance(raw_ids, list) or not raw_ids:
            return jsonify({"error": "sale_ids is required"}), 400
        sale_ids = [coerce_int(v, "sale_ids") for v in raw_ids]
        document = invoice_pdf_service.document_for_selection(
            sale_ids, g.current_user.id, client_id=_optional_int(data, "client_id")
        )
        return _pdf_response(document)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to generate multi-sale invoice")
        return jsonify({"error": "Failed to generate invoice"}), 500
