"""
Sales and invoicing tests.

Verifies:
- One invoice per sale, numbered INV-001, INV-002, ... per book
- Multi-item sales are atomic: any rejected item leaves nothing written
- An item can only be sold once
- Invoice total is the sum of the line prices
"""

from datetime import timedelta

import pytest

from pawnledger.models import Book, Invoice, ItemSale
from pawnledger.services import people_service, sales_service
from pawnledger.services.sales_service import SaleError, next_invoice_number, format_invoice_number
from pawnledger.time_utils import utcnow


class TestInvoiceNumbering:

    def test_format(self):
        assert format_invoice_number(1) == 'INV-001'
        assert format_invoice_number(1234) == 'INV-1234'

    def test_first_number(self, book_a):
        assert next_invoice_number(book_a.id) == 'INV-001'

    def test_sequential_per_book(self, client, user_a, user_b, book_a, book_b, headers_a, make_item):
        first = make_item(user_a, book_a, 'A-001')
        second = make_item(user_a, book_a, 'A-002')
        other = make_item(user_b, book_b, 'B-001')

        r1 = client.post('/api/sales', headers=headers_a, json={'item_id': first.id, 'sale_price_cents': 1000})
        r2 = client.post('/api/sales', headers=headers_a, json={'item_id': second.id, 'sale_price_cents': 2000})
        assert r1.get_json()['invoice']['invoice_number'] == 'INV-001'
        assert r2.get_json()['invoice']['invoice_number'] == 'INV-002'

        invoice_b = sales_service.create_sale(user_id=user_b.id, item_id=other.id, sale_price_cents=10)
        assert invoice_b.invoice_number == 'INV-001'

    def test_number_without_digits_falls_back_to_count(self, db_session, user_a, book_a):
        db_session.add(Invoice(
            book_id=book_a.id,
            user_id=user_a.id,
            invoice_number='MANUAL',
            invoice_date=utcnow(),
            total_amount_cents=0,
        ))
        db_session.commit()
        assert next_invoice_number(book_a.id) == 'INV-002'


class TestSingleSale:

    def test_sale_creates_invoice(self, client, db_session, user_a, book_a, headers_a, make_item):
        item = make_item(user_a, book_a, 'A-001')
        resp = client.post('/api/sales', headers=headers_a, json={
            'item_id': item.id,
            'sale_price_cents': 12500,
            'payment_method': 'cash',
            'sale_location': 'Front desk',
        })
        assert resp.status_code == 201
        invoice = resp.get_json()['invoice']
        assert invoice['total_amount_cents'] == 12500
        assert invoice['status'] == 'paid'
        assert len(invoice['sales']) == 1
        assert invoice['sales'][0]['item']['item_number'] == 'A-001'

        detail = client.get(f'/api/items/{item.id}', headers=headers_a).get_json()['item']
        assert detail['status'] == 'Sold'

    def test_already_sold(self, client, db_session, user_a, book_a, headers_a, make_item):
        item = make_item(user_a, book_a, 'A-001')
        client.post('/api/sales', headers=headers_a, json={'item_id': item.id, 'sale_price_cents': 100})

        resp = client.post('/api/sales', headers=headers_a, json={'item_id': item.id, 'sale_price_cents': 100})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body['error'] == 'Item is already sold'
        assert body['details']['item_ids'] == [item.id]
        assert db_session.query(Invoice).count() == 1

    def test_foreign_item(self, client, user_b, book_b, headers_a, make_item):
        item = make_item(user_b, book_b, 'B-001')
        resp = client.post('/api/sales', headers=headers_a, json={'item_id': item.id, 'sale_price_cents': 100})
        assert resp.status_code == 404

    def test_future_sale_date(self, client, user_a, book_a, headers_a, make_item):
        item = make_item(user_a, book_a, 'A-001')
        future = (utcnow() + timedelta(days=3)).isoformat()
        resp = client.post('/api/sales', headers=headers_a, json={'item_id': item.id, 'sale_date': future})
        assert resp.status_code == 400

    def test_missing_item_id(self, client, headers_a):
        resp = client.post('/api/sales', headers=headers_a, json={'sale_price_cents': 100})
        assert resp.status_code == 400

    def test_foreign_client(self, client, db_session, user_a, user_b, book_a, headers_a, make_item):
        stranger = people_service.create_person(user_b.id, {'name': 'Stranger'})
        item = make_item(user_a, book_a, 'A-001')
        resp = client.post('/api/sales', headers=headers_a, json={'item_id': item.id, 'client_id': stranger.id})
        assert resp.status_code == 404
        assert db_session.query(ItemSale).count() == 0


class TestMultiSale:

    def test_one_invoice_for_many_items(self, client, db_session, user_a, book_a, headers_a, make_item):
        items = [make_item(user_a, book_a, f'A-00{n}') for n in range(1, 4)]
        resp = client.post('/api/sales/multi', headers=headers_a, json={
            'book_id': book_a.id,
            'items': [{'item_id': i.id, 'sale_price_cents': 1000 * (n + 1)} for n, i in enumerate(items)],
            'payment_method': 'card',
        })
        assert resp.status_code == 201
        invoice = resp.get_json()['invoice']
        assert invoice['total_amount_cents'] == 6000
        assert len(invoice['sales']) == 3
        assert db_session.query(Invoice).count() == 1
        assert db_session.query(ItemSale).count() == 3

    def test_rejects_all_when_one_sold(self, client, db_session, user_a, book_a, headers_a, make_item):
        sold = make_item(user_a, book_a, 'A-001')
        fresh = make_item(user_a, book_a, 'A-002')
        sales_service.create_sale(user_id=user_a.id, item_id=sold.id, sale_price_cents=100)

        resp = client.post('/api/sales/multi', headers=headers_a, json={
            'items': [{'item_id': fresh.id, 'sale_price_cents': 100}, {'item_id': sold.id, 'sale_price_cents': 100}],
        })
        assert resp.status_code == 400
        assert resp.get_json()['details']['item_ids'] == [sold.id]
        assert db_session.query(Invoice).count() == 1
        assert db_session.query(ItemSale).filter_by(item_id=fresh.id).count() == 0

    def test_duplicate_lines(self, user_a, book_a, make_item):
        item = make_item(user_a, book_a, 'A-001')
        with pytest.raises(SaleError) as exc:
            sales_service.create_multi_sale(
                user_id=user_a.id,
                lines=[{'item_id': item.id}, {'item_id': item.id}],
            )
        assert exc.value.details == {'item_ids': [item.id]}

    def test_items_across_books(self, db_session, user_a, book_a, book_type, make_item):
        other_book = Book(user_id=user_a.id, book_type_id=book_type.id)
        db_session.add(other_book)
        db_session.commit()

        first = make_item(user_a, book_a, 'A-001')
        second = make_item(user_a, other_book, 'X-001')
        with pytest.raises(SaleError):
            sales_service.create_multi_sale(
                user_id=user_a.id,
                lines=[{'item_id': first.id}, {'item_id': second.id}],
            )
        assert db_session.query(Invoice).count() == 0

    def test_empty_lines(self, client, headers_a):
        resp = client.post('/api/sales/multi', headers=headers_a, json={'items': []})
        assert resp.status_code == 400


class TestSalesListing:

    def test_list_and_group_by_invoice(self, client, user_a, book_a, headers_a, make_item):
        first = make_item(user_a, book_a, 'A-001')
        second = make_item(user_a, book_a, 'A-002')
        sales_service.create_multi_sale(
            user_id=user_a.id,
            lines=[{'item_id': first.id, 'sale_price_cents': 1}, {'item_id': second.id, 'sale_price_cents': 2}],
        )

        sales = client.get(f'/api/sales?book_id={book_a.id}', headers=headers_a).get_json()['sales']
        assert {s['item']['item_number'] for s in sales} == {'A-001', 'A-002'}

        invoices = client.get(f'/api/sales?book_id={book_a.id}&group=invoice', headers=headers_a).get_json()['invoices']
        assert len(invoices) == 1
        assert invoices[0]['total_amount_cents'] == 3
        assert len(invoices[0]['sales']) == 2
