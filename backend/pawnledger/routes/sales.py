"""
Sales routes.

Single and multi-item sales both answer with the created invoice and its
sales. Rejections carry {"error": ..., "details": {...}}.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import sales_service
from ..services.sales_service import SaleError
from ..services.access_service import NotFoundError
from ..validation import ValidationError
from ..decorators import require_auth
from .books import request_book_id


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _invoice_response(invoice, status: int):
    data = invoice.to_dict()
    data["sales"] = [sales_service.sale_payload(s) for s in invoice.sales]
    return jsonify({"invoice": data}), status


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Sell one item.

    Body: {"item_id", "sale_price_cents", "client_id", "sale_date",
           "sale_location", "payment_method"}
    """
    data = request.get_json(silent=True) or {}
    if data.get("item_id") in (None, ""):
        return jsonify({"error": "item_id is required"}), 400

    try:
        invoice = sales_service.create_sale(
            user_id=g.current_user.id,
            item_id=data.get("item_id"),
            sale_price_cents=data.get("sale_price_cents"),
            client_id=data.get("client_id"),
            sale_date=data.get("sale_date"),
            sale_location=data.get("sale_location"),
            payment_method=data.get("payment_method"),
        )
        current_app.logger.info(
            "Sale recorded: user=%s invoice=%s", g.current_user.id, invoice.invoice_number
        )
        return _invoice_response(invoice, 201)
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/multi")
@require_auth
def create_multi_sale_route():
    """
    Sell several items of one book under one invoice.

    Body: {"items": [{"item_id", "sale_price_cents"}, ...], "book_id",
           "client_id", "sale_date", "sale_location", "payment_method"}
    """
    data = request.get_json(silent=True) or {}
    try:
        invoice = sales_service.create_multi_sale(
            user_id=g.current_user.id,
            lines=data.get("items"),
            book_id=data.get("book_id"),
            client_id=data.get("client_id"),
            sale_date=data.get("sale_date"),
            sale_location=data.get("sale_location"),
            payment_method=data.get("payment_method"),
        )
        current_app.logger.info(
            "Multi-item sale recorded: user=%s invoice=%s items=%s",
            g.current_user.id, invoice.invoice_number, len(invoice.sales),
        )
        return _invoice_response(invoice, 201)
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create multi-item sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Sold items of the current book.

    Query params: group=invoice returns invoices with their sales instead.
    """
    book_id = request_book_id()
    if book_id is None:
        return jsonify({"sales": [], "book_id": None}), 200

    try:
        if request.args.get("group") == "invoice":
            invoices = sales_service.list_invoices(book_id, g.current_user.id)
            result = []
            for invoice in invoices:
                data = invoice.to_dict()
                data["client"] = invoice.client.to_dict() if invoice.client else None
                data["sales"] = [sales_service.sale_payload(s) for s in invoice.sales]
                result.append(data)
            return jsonify({"invoices": result, "book_id": book_id}), 200

        sales = sales_service.list_sales(book_id, g.current_user.id)
        return jsonify({"sales": [sales_service.sale_payload(s) for s in sales], "book_id": book_id}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
