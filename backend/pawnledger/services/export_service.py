"""
Registry export of one book (the "police registry"): one row per item with
its purchase, sale and most recent incident, newest item first.
"""

from __future__ import annotations

import csv
import io

from flask import current_app
from openpyxl import Workbook
from openpyxl.styles import Font

from ..extensions import db
from ..models import Item
from pawnledger.time_utils import utcnow, format_day
from .access_service import get_owned_book


def export_headers() -> list[str]:
    symbol = current_app.config.get("INVOICE_CURRENCY_SYMBOL", "€")
    return [
        "Item Number",
        "Description",
        "Category",
        "Color",
        "Grade",
        f"Purchase Price ({symbol})",
        "Purchase Date",
        "Seller",
        f"Sale Price ({symbol})",
        "Sale Date",
        "Buyer",
        "Status",
        "Last Incident",
        "Created At",
    ]


def _price(cents: int | None) -> str:
    return f"{cents / 100:.2f}" if cents is not None else ""


def _name(person) -> str:
    if person is None:
        return ""
    return f"{person.name} {person.lastname or ''}".strip()


def item_row(item: Item) -> list[str]:
    purchase = item.purchase
    sale = item.sale
    incident = item.incidents[0] if item.incidents else None
    return [
        item.item_number or "",
        item.description or "",
        item.category.name if item.category else "",
        item.color or "",
        item.grade or "",
        _price(purchase.purchase_price_cents) if purchase else "",
        format_day(purchase.purchase_date) if purchase else "",
        _name(purchase.person) if purchase else "",
        _price(sale.sale_price_cents) if sale else "",
        format_day(sale.sale_date) if sale else "",
        _name(sale.client) if sale else "",
        item.status,
        (incident.incident_type or "Incident reported") if incident else "",
        item.created_at.strftime("%Y-%m-%d %H:%M:%S") if item.created_at else "",
    ]


def export_rows(book_id: int, user_id: int) -> list[list[str]]:
    book = get_owned_book(book_id, user_id)
    items = (
        db.session.query(Item)
        .filter(Item.book_id == book.id)
        .order_by(Item.created_at.desc(), Item.id.desc())
        .all()
    )
    return [item_row(item) for item in items]


def export_filename(extension: str) -> str:
    return f"police-registry-{format_day(utcnow())}.{extension}"


def render_csv(rows: list[list[str]]) -> str:
    """Fields with commas, quotes or newlines are quoted; quotes are doubled."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(export_headers())
    writer.writerows(rows)
    return buffer.getvalue()


def render_xlsx(rows: list[list[str]]) -> bytes:
    wb = Workbook()
    sheet = wb.active
    sheet.title = "Registry"
    sheet.append(export_headers())
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for row in rows:
        sheet.append(row)
    sheet.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
