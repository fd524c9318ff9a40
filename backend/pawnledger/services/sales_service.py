"""
Sales and invoicing.

Every sale, single or multi-item, produces exactly one Invoice and one
ItemSale per item in a single transaction. Nothing is written when any item
is rejected.

Invoice numbers are sequential per book: INV-001, INV-002, ... The next
number is derived from the book's most recently created invoice. Two
concurrent sales on the same book can compute the same number; the unique
(book_id, invoice_number) constraint rejects the second insert and the whole
transaction is retried with a freshly computed number. The unique item_id on
item_sales plays the same role for two concurrent sales of one item: the
retry then sees the item as sold.
"""

from __future__ import annotations

import re
from datetime import datetime

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Item, ItemSale, Invoice, Book
from ..validation import ValidationError, enforce_amount, coerce_int, coerce_datetime
from pawnledger.time_utils import utcnow
from .access_service import NotFoundError, get_owned_book, get_owned_invoice, get_owned_person
from .concurrency import lock_for_update, run_with_retry


INVOICE_PREFIX = "INV-"
INVOICE_NUMBER_PAD = 3
INVOICE_DEFAULT_STATUS = "paid"

_TRAILING_DIGITS = re.compile(r"(\d+)$")

SALE_RETRY_ERRORS = (IntegrityError, OperationalError, StaleDataError)


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def format_invoice_number(sequence: int) -> str:
    return f"{INVOICE_PREFIX}{sequence:0{INVOICE_NUMBER_PAD}d}"


def next_invoice_number(book_id: int) -> str:
    """
    Next invoice number for a book.

    Takes the most recently created invoice of the book, parses the trailing
    digits of its number and increments. Falls back to (invoice count + 1)
    when the last number carries no digits. INV-001 when the book has none.
    """
    last = (
        db.session.query(Invoice)
        .filter(Invoice.book_id == book_id)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .first()
    )
    if last is None:
        return format_invoice_number(1)

    match = _TRAILING_DIGITS.search(last.invoice_number or "")
    if match:
        return format_invoice_number(int(match.group(1)) + 1)

    count = db.session.query(Invoice).filter(Invoice.book_id == book_id).count()
    return format_invoice_number(count + 1)


def _normalize_lines(lines) -> list[dict]:
    if not isinstance(lines, list) or not lines:
        raise ValidationError("At least one item is required")

    normalized = []
    seen: set[int] = set()
    duplicates: list[int] = []
    for raw in lines:
        if not isinstance(raw, dict):
            raise ValidationError("Each sale line must be an object")
        if raw.get("item_id") in (None, ""):
            raise ValidationError("item_id is required")
        item_id = coerce_int(raw.get("item_id"), "item_id")
        line = {"item_id": item_id, "sale_price_cents": raw.get("sale_price_cents")}
        if line["sale_price_cents"] is not None:
            line["sale_price_cents"] = coerce_int(line["sale_price_cents"], "sale_price_cents")
        enforce_amount(line, "sale_price_cents")
        if item_id in seen:
            duplicates.append(item_id)
        seen.add(item_id)
        normalized.append(line)

    if duplicates:
        raise SaleError("Duplicate item in sale", details={"item_ids": sorted(set(duplicates))})
    return normalized


def _clean_sale_date(sale_date) -> datetime:
    if sale_date in (None, ""):
        return utcnow()
    value = coerce_datetime(sale_date, "sale_date")
    if value > utcnow():
        raise ValidationError("Sale date cannot be in the future")
    return value


def _clean_text(value, field: str, max_len: int) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    if len(value) > max_len:
        raise ValidationError(f"{field} exceeds max length {max_len}")
    return value or None


def _load_items_for_sale(user_id: int, item_ids: list[int], book_id: int | None) -> tuple[list[Item], int]:
    """
    Lock and return the items in request order, with the book they share.

    Raises NotFoundError for a missing or foreign item, SaleError when an
    item is already sold or items span books.
    """
    rows = lock_for_update(
        db.session.query(Item)
        .join(Book, Item.book_id == Book.id)
        .filter(Item.id.in_(item_ids), Book.user_id == user_id)
    ).all()
    by_id = {item.id: item for item in rows}

    items = []
    for item_id in item_ids:
        item = by_id.get(item_id)
        if item is None:
            raise NotFoundError(f"Item {item_id} not found")
        items.append(item)

    target_book_id = book_id if book_id is not None else items[0].book_id
    mismatched = [item.id for item in items if item.book_id != target_book_id]
    if mismatched:
        raise SaleError(
            "All items must belong to the same book",
            details={"book_id": target_book_id, "item_ids": mismatched},
        )

    sold = [item.id for item in items if item.sale is not None]
    if sold:
        raise SaleError("Item is already sold", details={"item_ids": sold})

    return items, target_book_id


def create_multi_sale(
    *,
    user_id: int,
    lines: list[dict],
    book_id: int | None = None,
    client_id=None,
    sale_date=None,
    sale_location: str | None = None,
    payment_method: str | None = None,
) -> Invoice:
    """
    Sell one or more items under a single invoice.

    lines: [{"item_id": 1, "sale_price_cents": 12000}, ...]

    Returns the committed Invoice. On any rejection nothing is written.
    """
    lines = _normalize_lines(lines)
    sale_dt = _clean_sale_date(sale_date)
    sale_location = _clean_text(sale_location, "sale_location", 255)
    payment_method = _clean_text(payment_method, "payment_method", 64)

    if book_id is not None:
        book_id = get_owned_book(coerce_int(book_id, "book_id"), user_id).id
    if client_id in ("",):
        client_id = None
    if client_id is not None:
        client_id = get_owned_person(coerce_int(client_id, "client_id"), user_id).id

    item_ids = [line["item_id"] for line in lines]

    def _op() -> Invoice:
        items, target_book_id = _load_items_for_sale(user_id, item_ids, book_id)

        invoice = Invoice(
            book_id=target_book_id,
            user_id=user_id,
            client_id=client_id,
            invoice_number=next_invoice_number(target_book_id),
            invoice_date=sale_dt,
            status=INVOICE_DEFAULT_STATUS,
            total_amount_cents=0,
        )
        db.session.add(invoice)

        total = 0
        for item, line in zip(items, lines):
            price = line["sale_price_cents"]
            db.session.add(ItemSale(
                item=item,
                invoice=invoice,
                client_id=client_id,
                sale_price_cents=price,
                sale_date=sale_dt,
                sale_location=sale_location,
                payment_method=payment_method,
            ))
            total += price or 0

        invoice.total_amount_cents = total
        db.session.commit()
        return invoice

    try:
        return run_with_retry(_op, retry_on=SALE_RETRY_ERRORS)
    except Exception:
        db.session.rollback()
        raise


def create_sale(
    *,
    user_id: int,
    item_id,
    sale_price_cents=None,
    client_id=None,
    sale_date=None,
    sale_location: str | None = None,
    payment_method: str | None = None,
    book_id: int | None = None,
) -> Invoice:
    """Sell a single item; creates its own one-line invoice."""
    return create_multi_sale(
        user_id=user_id,
        lines=[{"item_id": item_id, "sale_price_cents": sale_price_cents}],
        book_id=book_id,
        client_id=client_id,
        sale_date=sale_date,
        sale_location=sale_location,
        payment_method=payment_method,
    )


def list_sales(book_id: int, user_id: int) -> list[ItemSale]:
    """Sold items of a book, newest sale first."""
    book = get_owned_book(book_id, user_id)
    return (
        db.session.query(ItemSale)
        .join(Item, ItemSale.item_id == Item.id)
        .filter(Item.book_id == book.id)
        .order_by(ItemSale.sale_date.desc(), ItemSale.id.desc())
        .all()
    )


def list_invoices(book_id: int, user_id: int) -> list[Invoice]:
    """Invoices of a book with their sales, newest invoice date first."""
    book = get_owned_book(book_id, user_id)
    return (
        db.session.query(Invoice)
        .filter(Invoice.book_id == book.id)
        .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .all()
    )


def get_invoice_items(invoice_id: int, user_id: int) -> tuple[Invoice, list[ItemSale]]:
    invoice = get_owned_invoice(invoice_id, user_id)
    return invoice, list(invoice.sales)


def sale_payload(sale: ItemSale) -> dict:
    """Sale with the item and client summaries the sold-items views need."""
    data = sale.to_dict()
    item = sale.item
    data["item"] = {
        "id": item.id,
        "item_number": item.item_number,
        "description": item.description,
        "category": item.category.name if item.category else None,
    }
    data["client"] = sale.client.to_dict() if sale.client else None
    data["invoice_number"] = sale.invoice.invoice_number if sale.invoice else None
    return data
