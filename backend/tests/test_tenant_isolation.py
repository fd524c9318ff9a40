"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that one user can never reach another user's data.

The user is the tenant. These tests create two users with one book each,
then verify that:
1. Ownership helpers treat foreign rows exactly like missing rows
2. Every id-addressed route answers 404 for another user's row
3. Listing endpoints never leak rows of another user
4. Foreign ids in query strings fall back to the caller's own book

Test Coverage:
- Books, items, incidents, people, categories, invoices, sales
- Attachment entity resolution (item / incident / person / user)
"""

import pytest

from pawnledger.services import incident_service, people_service, sales_service
from pawnledger.services.access_service import (
    NotFoundError,
    get_owned_book,
    get_owned_item,
    get_owned_incident,
    get_owned_person,
    get_owned_invoice,
    get_owned_sale,
    owns_entity,
)


@pytest.fixture
def tenant_b_rows(user_b, book_b, make_item):
    """One of everything owned by user B."""
    item = make_item(user_b, book_b, 'B-001', purchase_price_cents=1000)
    incident = incident_service.report_incident(item.id, user_b.id, {'incident_type': 'damage'})
    person = people_service.create_person(user_b.id, {'name': 'Bob client'})
    sold = make_item(user_b, book_b, 'B-002')
    invoice = sales_service.create_sale(user_id=user_b.id, item_id=sold.id, sale_price_cents=500, client_id=person.id)
    return {
        'item': item,
        'incident': incident,
        'person': person,
        'invoice': invoice,
        'sale': invoice.sales[0],
    }


class TestOwnershipHelpers:
    """access_service helpers."""

    def test_own_rows_resolve(self, user_b, book_b, tenant_b_rows):
        """Rows resolve for their owner."""
        assert get_owned_book(book_b.id, user_b.id).id == book_b.id
        assert get_owned_item(tenant_b_rows['item'].id, user_b.id).id == tenant_b_rows['item'].id
        assert get_owned_invoice(tenant_b_rows['invoice'].id, user_b.id).id == tenant_b_rows['invoice'].id

    @pytest.mark.parametrize('getter,key', [
        (get_owned_item, 'item'),
        (get_owned_incident, 'incident'),
        (get_owned_person, 'person'),
        (get_owned_invoice, 'invoice'),
        (get_owned_sale, 'sale'),
    ])
    def test_foreign_rows_are_not_found(self, user_a, tenant_b_rows, getter, key):
        """A foreign row raises the same error as a missing one."""
        with pytest.raises(NotFoundError):
            getter(tenant_b_rows[key].id, user_a.id)
        with pytest.raises(NotFoundError):
            getter(999999, user_a.id)

    def test_foreign_book(self, user_a, book_b):
        with pytest.raises(NotFoundError):
            get_owned_book(book_b.id, user_a.id)

    def test_none_id(self, user_a):
        with pytest.raises(NotFoundError):
            get_owned_item(None, user_a.id)

    def test_owns_entity(self, user_a, user_b, tenant_b_rows):
        """Attachment targets follow the same ownership chains."""
        assert owns_entity(user_b, 'item', tenant_b_rows['item'].id) is True
        assert owns_entity(user_a, 'item', tenant_b_rows['item'].id) is False
        assert owns_entity(user_a, 'incident', tenant_b_rows['incident'].id) is False
        assert owns_entity(user_a, 'person', tenant_b_rows['person'].id) is False
        assert owns_entity(user_a, 'user', user_b.id) is False
        assert owns_entity(user_a, 'USER', user_a.id) is True


class TestRouteIsolation:
    """Id-addressed routes answer 404 for another user's rows."""

    def test_item_routes(self, client, headers_a, tenant_b_rows):
        item_id = tenant_b_rows['item'].id
        assert client.get(f'/api/items/{item_id}', headers=headers_a).status_code == 404
        assert client.put(f'/api/items/{item_id}', headers=headers_a, json={'color': 'red'}).status_code == 404
        assert client.put(f'/api/items/{item_id}/category', headers=headers_a, json={'category_id': None}).status_code == 404
        assert client.put(f'/api/items/{item_id}/purchase', headers=headers_a, json={'purchase_price_cents': 1}).status_code == 404
        assert client.get(f'/api/items/{item_id}/images', headers=headers_a).status_code == 404

    def test_item_unchanged_after_foreign_write(self, client, user_b, headers_a, tenant_b_rows):
        item_id = tenant_b_rows['item'].id
        client.put(f'/api/items/{item_id}/purchase', headers=headers_a, json={'purchase_price_cents': 1})
        assert get_owned_item(item_id, user_b.id).purchase.purchase_price_cents == 1000

    def test_incident_routes(self, client, headers_a, tenant_b_rows):
        incident_id = tenant_b_rows['incident'].id
        assert client.get(f'/api/incidents/{incident_id}', headers=headers_a).status_code == 404
        assert client.put(f'/api/incidents/{incident_id}/status', headers=headers_a,
                          json={'resolution_status': 'resolved'}).status_code == 404
        assert client.get(f'/api/incidents/{incident_id}/images', headers=headers_a).status_code == 404

    def test_person_routes(self, client, headers_a, tenant_b_rows):
        person_id = tenant_b_rows['person'].id
        assert client.get(f'/api/people/{person_id}', headers=headers_a).status_code == 404
        assert client.delete(f'/api/people/{person_id}', headers=headers_a).status_code == 404
        assert client.get(f'/api/people/{person_id}/documents', headers=headers_a).status_code == 404

    def test_invoice_routes(self, client, headers_a, tenant_b_rows):
        invoice_id = tenant_b_rows['invoice'].id
        assert client.get(f'/api/invoices/{invoice_id}', headers=headers_a).status_code == 404
        assert client.get(f'/api/invoices/{invoice_id}/items', headers=headers_a).status_code == 404
        assert client.post('/api/invoices/pdf', headers=headers_a,
                           json={'sale_id': tenant_b_rows['sale'].id}).status_code == 404

    def test_sell_foreign_item(self, client, headers_a, tenant_b_rows):
        resp = client.post('/api/sales', headers=headers_a, json={'item_id': tenant_b_rows['item'].id})
        assert resp.status_code == 404

    def test_attach_to_foreign_person(self, client, headers_a, tenant_b_rows):
        resp = client.post('/api/documents', headers=headers_a, json={
            'entity_type': 'person',
            'entity_id': tenant_b_rows['person'].id,
            'file_path': 'https://cdn.example.test/id.pdf',
            'document_type': 'person',
        })
        assert resp.status_code == 404


class TestListingIsolation:
    """Listings only ever contain the caller's rows."""

    def test_lists_are_empty_for_other_tenant(self, client, user_a, book_a, headers_a, tenant_b_rows):
        assert client.get('/api/items', headers=headers_a).get_json()['items'] == []
        assert client.get('/api/incidents', headers=headers_a).get_json()['incidents'] == []
        assert client.get('/api/sales', headers=headers_a).get_json()['sales'] == []
        assert client.get('/api/people', headers=headers_a).get_json()['people'] == []
        assert client.get('/api/people/clients', headers=headers_a).get_json()['clients'] == []

    def test_foreign_book_id_in_query_falls_back(self, client, user_a, book_a, book_b, headers_a, make_item, tenant_b_rows):
        make_item(user_a, book_a, 'A-001')
        body = client.get(f'/api/items?book_id={book_b.id}', headers=headers_a).get_json()
        assert body['book_id'] == book_a.id
        assert [i['item_number'] for i in body['items']] == ['A-001']

    def test_foreign_cookie_ignored(self, client, user_a, book_a, book_b, headers_a, tenant_b_rows):
        client.set_cookie('selectedBookId', str(book_b.id))
        body = client.get('/api/books', headers=headers_a).get_json()
        assert body['selected_book_id'] == book_a.id
        assert [b['id'] for b in body['books']] == [book_a.id]
