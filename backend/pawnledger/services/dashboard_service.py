from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Item, ItemIncident, ItemPurchase, ItemSale, Invoice, Cost, Person
from pawnledger.time_utils import utcnow, start_of_today, days_ago
from .access_service import get_owned_book


RECENT_DAYS = 30
TREND_MONTHS = 12


def _month_starts(now: datetime, months: int) -> list[datetime]:
    """First day of each of the last `months` months, oldest first, current month last."""
    starts = []
    year, month = now.year, now.month
    for _ in range(months):
        starts.append(datetime(year, month, 1))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(starts))


def sales_trend(book_id: int, now: datetime | None = None) -> list[dict]:
    """Invoice totals and counts per calendar month for the last 12 months."""
    now = now or utcnow()
    starts = _month_starts(now, TREND_MONTHS)
    buckets = {(s.year, s.month): {"amount_cents": 0, "count": 0} for s in starts}

    invoices = (
        db.session.query(Invoice.invoice_date, Invoice.total_amount_cents)
        .filter(Invoice.book_id == book_id, Invoice.invoice_date >= starts[0])
        .all()
    )
    for invoice_date, total in invoices:
        bucket = buckets.get((invoice_date.year, invoice_date.month))
        if bucket is None:
            continue
        bucket["amount_cents"] += total or 0
        bucket["count"] += 1

    return [
        {
            "month": s.strftime("%Y-%m"),
            "label": s.strftime("%b"),
            **buckets[(s.year, s.month)],
        }
        for s in starts
    ]


def book_stats(book_id: int, user_id: int) -> dict:
    """
    Headline figures of a book.

    expenses = purchase prices of the book's items + recorded costs;
    profit_loss = revenue (sum of invoice totals) - expenses.
    """
    book = get_owned_book(book_id, user_id)
    recent = days_ago(RECENT_DAYS)

    total_items = db.session.query(func.count(Item.id)).filter(Item.book_id == book.id).scalar() or 0
    items_today = (
        db.session.query(func.count(Item.id))
        .filter(Item.book_id == book.id, Item.created_at >= start_of_today())
        .scalar()
    ) or 0
    recent_incidents = (
        db.session.query(func.count(ItemIncident.id))
        .join(Item, ItemIncident.item_id == Item.id)
        .filter(Item.book_id == book.id, ItemIncident.incident_date >= recent)
        .scalar()
    ) or 0
    total_costs = db.session.query(func.count(Cost.id)).filter(Cost.book_id == book.id).scalar() or 0
    recent_invoices = (
        db.session.query(func.count(Invoice.id))
        .filter(Invoice.book_id == book.id, Invoice.invoice_date >= recent)
        .scalar()
    ) or 0
    sold_items = (
        db.session.query(func.count(ItemSale.id))
        .join(Item, ItemSale.item_id == Item.id)
        .filter(Item.book_id == book.id)
        .scalar()
    ) or 0
    total_people = db.session.query(func.count(Person.id)).filter(Person.user_id == user_id).scalar() or 0

    revenue, total_invoices = (
        db.session.query(func.coalesce(func.sum(Invoice.total_amount_cents), 0), func.count(Invoice.id))
        .filter(Invoice.book_id == book.id)
        .one()
    )
    inventory_value = (
        db.session.query(func.coalesce(func.sum(ItemPurchase.purchase_price_cents), 0))
        .join(Item, ItemPurchase.item_id == Item.id)
        .filter(Item.book_id == book.id)
        .scalar()
    ) or 0
    cost_total = (
        db.session.query(func.coalesce(func.sum(Cost.amount_cents), 0))
        .filter(Cost.book_id == book.id)
        .scalar()
    ) or 0
    expenses = inventory_value + cost_total

    return {
        "book_id": book.id,
        "total_items": total_items,
        "items_today": items_today,
        "recent_incidents": recent_incidents,
        "total_costs": total_costs,
        "recent_invoices": recent_invoices,
        "total_invoices": total_invoices,
        "sold_items": sold_items,
        "total_people": total_people,
        "revenue_cents": revenue,
        "inventory_value_cents": inventory_value,
        "costs_cents": cost_total,
        "expenses_cents": expenses,
        "profit_loss_cents": revenue - expenses,
        "sales_trend": sales_trend(book.id),
    }
