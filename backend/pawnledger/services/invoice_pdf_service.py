"""
Invoice PDF rendering.

PDFs are rendered on demand from stored sales and never persisted. Three
sources feed the same layout:
- a stored invoice (by invoice id, or by one of its sale ids)
- a single sold item
- an ad-hoc selection of sales, numbered INV-MULTI-<timestamp>

Layout: title, date, number, bill-to block, item table (item #,
description truncated to 30 chars, category, price), total, payment
methods and locations, footer.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import datetime
from xml.sax.saxutils import escape

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from ..extensions import db
from ..models import Item, ItemSale, Book, Person
from pawnledger.time_utils import utcnow, format_day
from .access_service import NotFoundError, get_owned_invoice, get_owned_sale, get_owned_item, get_owned_person


DESCRIPTION_MAX_CHARS = 30
FOOTER_TEXT = "Thank you for your business!"


@dataclass
class InvoiceLine:
    item_number: str
    description: str
    category: str
    price_cents: int


@dataclass
class InvoiceDocument:
    number: str
    date: datetime
    client: Person | None = None
    lines: list[InvoiceLine] = field(default_factory=list)
    payment_methods: list[str] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)

    @property
    def total_cents(self) -> int:
        return sum(line.price_cents for line in self.lines)

    @property
    def filename(self) -> str:
        return f"invoice_{self.number}.pdf"


def truncate_description(text: str | None, limit: int = DESCRIPTION_MAX_CHARS) -> str:
    if not text:
        return "-"
    return text if len(text) <= limit else text[:limit] + "..."


def format_money(cents: int | None, symbol: str | None = None) -> str:
    if symbol is None:
        symbol = current_app.config.get("INVOICE_CURRENCY_SYMBOL", "€")
    return f"{symbol}{(cents or 0) / 100:,.2f}"


def _unique(values) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def _line_for(sale: ItemSale) -> InvoiceLine:
    item = sale.item
    return InvoiceLine(
        item_number=item.item_number or "-",
        description=truncate_description(item.description),
        category=item.category.name if item.category else "-",
        price_cents=sale.sale_price_cents or 0,
    )


def _document_from_sales(number: str, date: datetime, client: Person | None, sales: list[ItemSale]) -> InvoiceDocument:
    return InvoiceDocument(
        number=number,
        date=date,
        client=client,
        lines=[_line_for(s) for s in sales],
        payment_methods=_unique(s.payment_method for s in sales),
        locations=_unique(s.sale_location for s in sales),
    )


def document_for_invoice(invoice_id: int, user_id: int) -> InvoiceDocument:
    invoice = get_owned_invoice(invoice_id, user_id)
    return _document_from_sales(invoice.invoice_number, invoice.invoice_date, invoice.client, list(invoice.sales))


def document_for_sale(sale_id: int, user_id: int) -> InvoiceDocument:
    """The invoice a sale belongs to, with every line of that invoice."""
    sale = get_owned_sale(sale_id, user_id)
    return document_for_invoice(sale.invoice_id, user_id)


def document_for_item(item_id: int, user_id: int, client_id: int | None = None) -> InvoiceDocument:
    """Single-item invoice for a sold item. client_id overrides the sale's client."""
    item = get_owned_item(item_id, user_id)
    sale = item.sale
    if sale is None:
        raise NotFoundError("Sale not found")
    client = get_owned_person(client_id, user_id) if client_id else sale.client
    number = sale.invoice.invoice_number if sale.invoice else f"INV-{item.item_number or item.id}"
    return _document_from_sales(number, sale.sale_date, client, [sale])


def document_for_selection(sale_ids: list[int], user_id: int, client_id: int | None = None) -> InvoiceDocument:
    """Ad-hoc invoice over selected sales of the caller, in creation order."""
    if not sale_ids:
        raise NotFoundError("No sales found")
    sales = (
        db.session.query(ItemSale)
        .join(Item, ItemSale.item_id == Item.id)
        .join(Book, Item.book_id == Book.id)
        .filter(ItemSale.id.in_(sale_ids), Book.user_id == user_id)
        .order_by(ItemSale.created_at.asc(), ItemSale.id.asc())
        .all()
    )
    if not sales:
        raise NotFoundError("No sales found")
    client = get_owned_person(client_id, user_id) if client_id else None
    now = utcnow()
    number = f"INV-MULTI-{str(int(now.timestamp() * 1000))[-8:]}"
    return _document_from_sales(number, now, client, sales)


def _bill_to_lines(client: Person) -> list[str]:
    lines = [client.full_name]
    if client.address_line_1:
        lines.append(client.address_line_1)
    if client.address_line_2:
        lines.append(client.address_line_2)
    locality = f"{client.zipcode or ''} {client.country or ''}".strip()
    if locality:
        lines.append(locality)
    if client.phone:
        lines.append(f"Phone: {client.phone}")
    return lines


def render_invoice_pdf(document: InvoiceDocument) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=2 * cm,
        leftMargin=2 * cm,
        topMargin=2 * cm,
        bottomMargin=2 * cm,
        title=f"Invoice {document.number}",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("InvoiceTitle", parent=styles["Heading1"], fontSize=20, alignment=1, spaceAfter=12)
    normal_style = ParagraphStyle("InvoiceNormal", parent=styles["Normal"], fontSize=11, spaceAfter=4)
    bold_style = ParagraphStyle("InvoiceBold", parent=normal_style, fontName="Helvetica-Bold")
    footer_style = ParagraphStyle("InvoiceFooter", parent=styles["Italic"], fontSize=10, alignment=1)

    story = [
        Paragraph("INVOICE", title_style),
        Paragraph(f"Invoice Date: {format_day(document.date)}", normal_style),
        Paragraph(f"Invoice Number: {escape(document.number)}", normal_style),
        Spacer(1, 0.5 * cm),
    ]

    if document.client is not None:
        story.append(Paragraph("Bill To:", bold_style))
        for line in _bill_to_lines(document.client):
            story.append(Paragraph(escape(line), normal_style))
        story.append(Spacer(1, 0.5 * cm))

    table_data = [["Item #", "Description", "Category", "Price"]]
    for line in document.lines:
        table_data.append([
            line.item_number,
            line.description,
            line.category,
            format_money(line.price_cents),
        ])
    table_data.append(["", "", "Total:", format_money(document.total_cents)])

    items_table = Table(table_data, colWidths=[3 * cm, 7 * cm, 4 * cm, 3 * cm], repeatRows=1)
    items_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("LINEBELOW", (0, 0), (-1, 0), 1, colors.black),
        ("ALIGN", (3, 0), (3, -1), "RIGHT"),
        ("LINEABOVE", (0, -1), (-1, -1), 1, colors.black),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]))
    story.append(items_table)
    story.append(Spacer(1, 0.8 * cm))

    if document.payment_methods:
        story.append(Paragraph(f"Payment Method(s): {escape(', '.join(document.payment_methods))}", normal_style))
    if document.locations:
        story.append(Paragraph(f"Location(s): {escape(', '.join(document.locations))}", normal_style))

    story.append(Spacer(1, 1.5 * cm))
    story.append(Paragraph(FOOTER_TEXT, footer_style))

    doc.build(story)
    buffer.seek(0)
    return buffer.getvalue()
