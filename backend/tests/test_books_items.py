"""
Books and item registry tests.

Verifies:
- Book creation, listing and the selected-book cookie
- Item creation with purchase and custom attributes in one commit
- Item number uniqueness per book, future purchase dates rejected
- Derived status filters (available / sold / incident)
"""

from datetime import timedelta

from pawnledger.models import Item, ItemPurchase
from pawnledger.services import sales_service, incident_service
from pawnledger.time_utils import utcnow


class TestBooks:

    def test_create_and_list(self, client, book_type, headers_a):
        resp = client.post('/api/books', headers=headers_a, json={
            'book_type_id': book_type.id,
            'description': 'Main shop',
        })
        assert resp.status_code == 201
        book_id = resp.get_json()['book']['id']

        listing = client.get('/api/books', headers=headers_a).get_json()
        assert [b['id'] for b in listing['books']] == [book_id]
        assert listing['selected_book_id'] == book_id

    def test_create_requires_type(self, client, headers_a):
        resp = client.post('/api/books', headers=headers_a, json={'description': 'x'})
        assert resp.status_code == 400

    def test_select_book_sets_cookie(self, client, db_session, user_a, book_a, book_type, headers_a):
        second = client.post('/api/books', headers=headers_a, json={'book_type_id': book_type.id}).get_json()['book']

        # Newest book is the default
        assert client.get('/api/books', headers=headers_a).get_json()['selected_book_id'] == second['id']

        resp = client.post(f'/api/books/{book_a.id}/select', headers=headers_a)
        assert resp.status_code == 200
        assert 'selectedBookId=' in resp.headers['Set-Cookie']
        assert client.get('/api/books', headers=headers_a).get_json()['selected_book_id'] == book_a.id

    def test_select_foreign_book(self, client, book_b, headers_a):
        resp = client.post(f'/api/books/{book_b.id}/select', headers=headers_a)
        assert resp.status_code == 404

    def test_field_definitions(self, client, book_a, headers_a):
        resp = client.get(f'/api/books/{book_a.id}/fields', headers=headers_a)
        assert resp.status_code == 200
        assert [f['name'] for f in resp.get_json()['fields']] == ['serial']


class TestItemCreate:

    def test_create_with_purchase_and_attribute(self, client, book_a, book_type, headers_a):
        field_id = book_type.field_definitions[0].id

        resp = client.post('/api/items', headers=headers_a, json={
            'book_id': book_a.id,
            'item_number': 'A-001',
            'description': 'Gold ring',
            'purchase': {'purchase_price_cents': 15000, 'purchase_date': '2024-01-05'},
            'attributes': {str(field_id): 'SN-42'},
        })
        assert resp.status_code == 201
        item = resp.get_json()['item']
        assert item['status'] == 'Available'
        assert item['purchase']['purchase_price_cents'] == 15000
        assert item['attributes'][0]['value'] == 'SN-42'

    def test_duplicate_number_in_book(self, client, user_a, book_a, headers_a, make_item):
        make_item(user_a, book_a, 'A-001')
        resp = client.post('/api/items', headers=headers_a, json={'book_id': book_a.id, 'item_number': 'A-001'})
        assert resp.status_code == 409

    def test_same_number_in_other_tenant(self, client, user_a, book_a, book_b, headers_b, make_item):
        make_item(user_a, book_a, 'A-001')
        resp = client.post('/api/items', headers=headers_b, json={'book_id': book_b.id, 'item_number': 'A-001'})
        assert resp.status_code == 201

    def test_item_number_required(self, client, book_a, headers_a):
        resp = client.post('/api/items', headers=headers_a, json={'book_id': book_a.id, 'description': 'x'})
        assert resp.status_code == 400

    def test_future_purchase_date_rejected(self, client, db_session, book_a, headers_a):
        tomorrow = (utcnow() + timedelta(days=2)).strftime('%Y-%m-%d')
        resp = client.post('/api/items', headers=headers_a, json={
            'book_id': book_a.id,
            'item_number': 'A-002',
            'purchase': {'purchase_date': tomorrow},
        })
        assert resp.status_code == 400
        assert db_session.query(Item).count() == 0

    def test_negative_price_rejected(self, client, db_session, book_a, headers_a):
        resp = client.post('/api/items', headers=headers_a, json={
            'book_id': book_a.id,
            'item_number': 'A-003',
            'purchase': {'purchase_price_cents': -1},
        })
        assert resp.status_code == 400
        assert db_session.query(Item).count() == 0
        assert db_session.query(ItemPurchase).count() == 0

    def test_unknown_field_rejected(self, client, book_a, headers_a):
        resp = client.post('/api/items', headers=headers_a, json={
            'book_id': book_a.id,
            'item_number': 'A-004',
            'attributes': {'99999': 'x'},
        })
        assert resp.status_code == 400

    def test_no_book(self, client, user_a, headers_a):
        resp = client.post('/api/items', headers=headers_a, json={'item_number': 'A-001'})
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Create a book first'


class TestItemUpdate:

    def test_update_fields(self, client, user_a, book_a, headers_a, make_item):
        item = make_item(user_a, book_a, 'A-001')
        resp = client.put(f'/api/items/{item.id}', headers=headers_a, json={'color': 'Gold', 'grade': 'A'})
        assert resp.status_code == 200
        assert resp.get_json()['item']['color'] == 'Gold'

    def test_set_and_clear_category(self, client, db_session, user_a, book_a, headers_a, make_item):
        item = make_item(user_a, book_a, 'A-001')
        category = client.post('/api/categories', headers=headers_a, json={'name': 'Jewelry'}).get_json()['category']

        resp = client.put(f'/api/items/{item.id}/category', headers=headers_a, json={'category_id': category['id']})
        assert resp.get_json()['item']['category']['name'] == 'Jewelry'

        resp = client.put(f'/api/items/{item.id}/category', headers=headers_a, json={'category_id': None})
        assert resp.get_json()['item']['category'] is None

    def test_set_purchase_replaces(self, client, user_a, book_a, headers_a, make_item):
        item = make_item(user_a, book_a, 'A-001', purchase_price_cents=100)
        resp = client.put(f'/api/items/{item.id}/purchase', headers=headers_a, json={'purchase_price_cents': 250})
        assert resp.status_code == 200
        detail = client.get(f'/api/items/{item.id}', headers=headers_a).get_json()['item']
        assert detail['purchase']['purchase_price_cents'] == 250


class TestItemListing:

    def test_status_filters(self, client, user_a, book_a, headers_a, make_item):
        available = make_item(user_a, book_a, 'A-001')
        sold = make_item(user_a, book_a, 'A-002')
        flagged = make_item(user_a, book_a, 'A-003')
        sales_service.create_sale(user_id=user_a.id, item_id=sold.id, sale_price_cents=500)
        incident_service.report_incident(flagged.id, user_a.id, {'incident_type': 'theft_report'})

        def numbers(status):
            resp = client.get(f'/api/items?book_id={book_a.id}&status={status}', headers=headers_a)
            return [i['item_number'] for i in resp.get_json()['items']]

        assert numbers('available') == [available.item_number]
        assert numbers('sold') == [sold.item_number]
        assert numbers('incident') == [flagged.item_number]

    def test_invalid_status(self, client, book_a, headers_a):
        resp = client.get(f'/api/items?book_id={book_a.id}&status=lost', headers=headers_a)
        assert resp.status_code == 400

    def test_search(self, client, user_a, book_a, headers_a, make_item):
        make_item(user_a, book_a, 'A-001', description='Silver watch')
        make_item(user_a, book_a, 'A-002', description='Gold chain')
        resp = client.get(f'/api/items?book_id={book_a.id}&q=watch', headers=headers_a)
        assert [i['item_number'] for i in resp.get_json()['items']] == ['A-001']

    def test_newest_first(self, client, user_a, book_a, headers_a, make_item):
        make_item(user_a, book_a, 'A-001')
        make_item(user_a, book_a, 'A-002')
        resp = client.get(f'/api/items?book_id={book_a.id}', headers=headers_a)
        assert [i['item_number'] for i in resp.get_json()['items']] == ['A-002', 'A-001']
