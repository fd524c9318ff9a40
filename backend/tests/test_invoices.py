"""
Invoice lookups and PDF generation.

Verifies:
- Invoice detail / line items are tenant-scoped
- PDF endpoints answer application/pdf attachments named after the invoice
- Single-item and ad-hoc multi-sale invoices
"""

import re

import pytest

from pawnledger.services import invoice_pdf_service, people_service, sales_service
from pawnledger.services.access_service import NotFoundError


@pytest.fixture
def sold_invoice(user_a, book_a, make_item):
    first = make_item(user_a, book_a, 'A-001', description='Vintage mechanical chronograph watch, steel case')
    second = make_item(user_a, book_a, 'A-002', description='Ring')
    return sales_service.create_multi_sale(
        user_id=user_a.id,
        lines=[{'item_id': first.id, 'sale_price_cents': 150000}, {'item_id': second.id, 'sale_price_cents': 2550}],
        payment_method='card',
        sale_location='Main street',
    )


class TestFormatting:

    def test_truncate_description(self):
        assert invoice_pdf_service.truncate_description(None) == '-'
        assert invoice_pdf_service.truncate_description('short') == 'short'
        assert invoice_pdf_service.truncate_description('x' * 31) == 'x' * 30 + '...'

    def test_format_money(self, app):
        assert invoice_pdf_service.format_money(123456, symbol='€') == '€1,234.56'
        assert invoice_pdf_service.format_money(None, symbol='$') == '$0.00'


class TestInvoiceDocument:

    def test_document_for_invoice(self, user_a, sold_invoice):
        document = invoice_pdf_service.document_for_invoice(sold_invoice.id, user_a.id)
        assert document.number == 'INV-001'
        assert document.total_cents == 152550
        assert document.filename == 'invoice_INV-001.pdf'
        assert document.lines[0].description.endswith('...')
        assert document.payment_methods == ['card']
        assert document.locations == ['Main street']

    def test_document_for_sale_covers_whole_invoice(self, user_a, sold_invoice):
        sale_id = sold_invoice.sales[1].id
        document = invoice_pdf_service.document_for_sale(sale_id, user_a.id)
        assert len(document.lines) == 2

    def test_document_for_unsold_item(self, user_a, book_a, make_item):
        item = make_item(user_a, book_a, 'A-009')
        with pytest.raises(NotFoundError):
            invoice_pdf_service.document_for_item(item.id, user_a.id)

    def test_selection_number(self, user_a, sold_invoice):
        document = invoice_pdf_service.document_for_selection([s.id for s in sold_invoice.sales], user_a.id)
        assert re.fullmatch(r'INV-MULTI-\d{8}', document.number)
        assert document.total_cents == 152550

    def test_selection_of_foreign_sales(self, user_b, sold_invoice):
        with pytest.raises(NotFoundError):
            invoice_pdf_service.document_for_selection([s.id for s in sold_invoice.sales], user_b.id)


class TestInvoiceRoutes:

    def test_invoice_detail(self, client, headers_a, sold_invoice):
        resp = client.get(f'/api/invoices/{sold_invoice.id}', headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()['invoice']['invoice_number'] == 'INV-001'

        items = client.get(f'/api/invoices/{sold_invoice.id}/items', headers=headers_a).get_json()['items']
        assert [i['item_number'] for i in items] == ['A-001', 'A-002']

    def test_invoice_detail_foreign(self, client, headers_b, sold_invoice):
        assert client.get(f'/api/invoices/{sold_invoice.id}', headers=headers_b).status_code == 404

    def test_pdf_by_invoice(self, client, headers_a, sold_invoice):
        resp = client.post('/api/invoices/pdf', headers=headers_a, json={'invoice_id': sold_invoice.id})
        assert resp.status_code == 200
        assert resp.headers['Content-Type'] == 'application/pdf'
        assert 'invoice_INV-001.pdf' in resp.headers['Content-Disposition']
        assert resp.data.startswith(b'%PDF')

    def test_pdf_requires_id(self, client, headers_a):
        resp = client.post('/api/invoices/pdf', headers=headers_a, json={})
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'No sale_id or invoice_id provided'

    def test_pdf_foreign_invoice(self, client, headers_b, sold_invoice):
        resp = client.post('/api/invoices/pdf', headers=headers_b, json={'invoice_id': sold_invoice.id})
        assert resp.status_code == 404

    def test_item_pdf_with_client_override(self, client, user_a, headers_a, sold_invoice):
        person = people_service.create_person(user_a.id, {'name': 'Jane', 'lastname': 'Doe', 'address_line_1': '1 Road'})
        item_id = sold_invoice.sales[0].item_id
        resp = client.post('/api/invoices/pdf/item', headers=headers_a, json={'item_id': item_id, 'client_id': person.id})
        assert resp.status_code == 200
        assert resp.data.startswith(b'%PDF')

    def test_multi_pdf(self, client, headers_a, sold_invoice):
        resp = client.post('/api/invoices/pdf/multi', headers=headers_a, json={
            'sale_ids': [s.id for s in sold_invoice.sales],
        })
        assert resp.status_code == 200
        assert re.search(r'invoice_INV-MULTI-\d{8}\.pdf', resp.headers['Content-Disposition'])

    def test_multi_pdf_requires_ids(self, client, headers_a):
        resp = client.post('/api/invoices/pdf/multi', headers=headers_a, json={'sale_ids': []})
        assert resp.status_code == 400
