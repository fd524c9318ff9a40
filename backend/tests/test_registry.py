"""
Categories, people and incidents.

Verifies:
- Category names unique per user (case-insensitive); in-use categories not deletable
- People typed as client / seller / expert; people with transactions not deletable
- Incidents open by default, resolution status restricted, derived item status
"""

import pytest

from pawnledger.extensions import db
from pawnledger.models import PersonType
from pawnledger.services import sales_service


def _person_type_id(name):
    return db.session.query(PersonType).filter_by(name=name).one().id


class TestCategories:

    def test_create_and_list_with_counts(self, client, user_a, book_a, headers_a, make_item):
        category = client.post('/api/categories', headers=headers_a, json={'name': 'Watches'}).get_json()['category']
        make_item(user_a, book_a, 'A-001', category_id=category['id'])

        listing = client.get('/api/categories', headers=headers_a).get_json()['categories']
        assert listing == [dict(category, item_count=1)]

    def test_duplicate_name_case_insensitive(self, client, headers_a):
        client.post('/api/categories', headers=headers_a, json={'name': 'Watches'})
        resp = client.post('/api/categories', headers=headers_a, json={'name': 'watches'})
        assert resp.status_code == 409

    def test_same_name_other_tenant(self, client, headers_a, headers_b):
        client.post('/api/categories', headers=headers_a, json={'name': 'Watches'})
        resp = client.post('/api/categories', headers=headers_b, json={'name': 'Watches'})
        assert resp.status_code == 201

    def test_blank_name(self, client, headers_a):
        resp = client.post('/api/categories', headers=headers_a, json={'name': '   '})
        assert resp.status_code == 400

    def test_rename(self, client, headers_a):
        category = client.post('/api/categories', headers=headers_a, json={'name': 'Watchs'}).get_json()['category']
        resp = client.put(f"/api/categories/{category['id']}", headers=headers_a, json={'name': 'Watches'})
        assert resp.status_code == 200
        assert resp.get_json()['category']['name'] == 'Watches'

    def test_delete_in_use_blocked(self, client, user_a, book_a, headers_a, make_item):
        category = client.post('/api/categories', headers=headers_a, json={'name': 'Rings'}).get_json()['category']
        make_item(user_a, book_a, 'A-001', category_id=category['id'])
        make_item(user_a, book_a, 'A-002', category_id=category['id'])

        resp = client.delete(f"/api/categories/{category['id']}", headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Cannot delete category that is being used by 2 items'

    def test_delete_unused(self, client, headers_a):
        category = client.post('/api/categories', headers=headers_a, json={'name': 'Rings'}).get_json()['category']
        assert client.delete(f"/api/categories/{category['id']}", headers=headers_a).status_code == 200
        assert client.get(f"/api/categories/{category['id']}", headers=headers_a).status_code == 404

    def test_foreign_category(self, client, headers_a, headers_b):
        category = client.post('/api/categories', headers=headers_b, json={'name': 'Rings'}).get_json()['category']
        assert client.get(f"/api/categories/{category['id']}", headers=headers_a).status_code == 404
        assert client.delete(f"/api/categories/{category['id']}", headers=headers_a).status_code == 404


class TestPeople:

    def test_types_in_fixed_order(self, client, headers_a):
        types = client.get('/api/people/types', headers=headers_a).get_json()['person_types']
        assert [t['name'] for t in types] == ['client', 'seller', 'expert']

    def test_create_and_filter_by_type(self, client, headers_a):
        client.post('/api/people', headers=headers_a, json={
            'name': 'Jane', 'lastname': 'Doe', 'person_type_id': _person_type_id('client'),
        })
        client.post('/api/people', headers=headers_a, json={
            'name': 'Sam', 'person_type_id': _person_type_id('seller'),
        })

        clients = client.get('/api/people?type=client', headers=headers_a).get_json()['people']
        assert [p['name'] for p in clients] == ['Jane']
        assert clients[0]['counts'] == {'purchases': 0, 'sales': 0, 'invoices': 0}

        assert [c['name'] for c in client.get('/api/people/clients', headers=headers_a).get_json()['clients']] == ['Jane']

    def test_name_required(self, client, headers_a):
        resp = client.post('/api/people', headers=headers_a, json={'lastname': 'Doe'})
        assert resp.status_code == 400

    def test_unknown_field_rejected(self, client, headers_a):
        resp = client.post('/api/people', headers=headers_a, json={'name': 'Jane', 'user_id': 99})
        assert resp.status_code == 400

    def test_detail_lists_invoices(self, client, user_a, book_a, headers_a, make_item):
        person = client.post('/api/people', headers=headers_a, json={
            'name': 'Jane', 'person_type_id': _person_type_id('client'),
        }).get_json()['person']
        item = make_item(user_a, book_a, 'A-001')
        sales_service.create_sale(user_id=user_a.id, item_id=item.id, sale_price_cents=900, client_id=person['id'])

        detail = client.get(f"/api/people/{person['id']}", headers=headers_a).get_json()['person']
        assert [i['invoice_number'] for i in detail['invoices']] == ['INV-001']
        assert detail['counts'] == {'purchases': 0, 'sales': 1, 'invoices': 1}

    def test_delete_with_transactions_blocked(self, client, user_a, book_a, headers_a, make_item):
        person = client.post('/api/people', headers=headers_a, json={'name': 'Seller'}).get_json()['person']
        item = make_item(user_a, book_a, 'A-001')
        client.put(f'/api/items/{item.id}/purchase', headers=headers_a, json={'person_id': person['id']})

        resp = client.delete(f"/api/people/{person['id']}", headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Cannot delete person with existing transactions'

    @pytest.mark.parametrize('keep', ['sale', 'invoice'])
    def test_delete_blocked_by_client_reference(self, client, user_a, book_a, headers_a, make_item, keep):
        """A person kept only as the client of a sale, or only of an invoice, stays."""
        person = client.post('/api/people', headers=headers_a, json={'name': 'Buyer'}).get_json()['person']
        item = make_item(user_a, book_a, 'A-001')
        invoice = sales_service.create_sale(
            user_id=user_a.id, item_id=item.id, sale_price_cents=900, client_id=person['id'],
        )
        if keep == 'sale':
            invoice.client_id = None
        else:
            invoice.sales[0].client_id = None
        db.session.commit()

        resp = client.delete(f"/api/people/{person['id']}", headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Cannot delete person with existing transactions'

    def test_delete_unused(self, client, headers_a):
        person = client.post('/api/people', headers=headers_a, json={'name': 'Nobody'}).get_json()['person']
        assert client.delete(f"/api/people/{person['id']}", headers=headers_a).status_code == 200

    def test_foreign_person(self, client, headers_a, headers_b):
        person = client.post('/api/people', headers=headers_b, json={'name': 'Bob client'}).get_json()['person']
        assert client.get(f"/api/people/{person['id']}", headers=headers_a).status_code == 404
        assert client.put(f"/api/people/{person['id']}", headers=headers_a, json={'name': 'x'}).status_code == 404


class TestIncidents:

    def test_report_defaults_to_open(self, client, user_a, book_a, headers_a, make_item):
        item = make_item(user_a, book_a, 'A-001')
        resp = client.post('/api/incidents', headers=headers_a, json={
            'item_id': item.id,
            'incident_type': 'police_hold',
            'description': 'Matched a stolen goods report',
        })
        assert resp.status_code == 201
        incident = resp.get_json()['incident']
        assert incident['resolution_status'] == 'open'
        assert incident['incident_date'] is not None
        assert incident['item']['item_number'] == 'A-001'

        detail = client.get(f'/api/items/{item.id}', headers=headers_a).get_json()['item']
        assert detail['status'] == 'Incident'
        assert len(detail['incidents']) == 1

    def test_incident_type_required(self, client, user_a, book_a, headers_a, make_item):
        item = make_item(user_a, book_a, 'A-001')
        resp = client.post('/api/incidents', headers=headers_a, json={'item_id': item.id})
        assert resp.status_code == 400

    def test_update_status(self, client, user_a, book_a, headers_a, make_item):
        item = make_item(user_a, book_a, 'A-001')
        incident = client.post('/api/incidents', headers=headers_a, json={
            'item_id': item.id, 'incident_type': 'damage',
        }).get_json()['incident']

        resp = client.put(f"/api/incidents/{incident['id']}/status", headers=headers_a,
                          json={'resolution_status': 'resolved'})
        assert resp.status_code == 200
        assert resp.get_json()['incident']['resolution_status'] == 'resolved'

        bad = client.put(f"/api/incidents/{incident['id']}/status", headers=headers_a,
                         json={'resolution_status': 'closed'})
        assert bad.status_code == 400

    def test_list_by_status(self, client, user_a, book_a, headers_a, make_item):
        first = make_item(user_a, book_a, 'A-001')
        second = make_item(user_a, book_a, 'A-002')
        open_one = client.post('/api/incidents', headers=headers_a, json={
            'item_id': first.id, 'incident_type': 'damage',
        }).get_json()['incident']
        done = client.post('/api/incidents', headers=headers_a, json={
            'item_id': second.id, 'incident_type': 'damage',
        }).get_json()['incident']
        client.put(f"/api/incidents/{done['id']}/status", headers=headers_a, json={'resolution_status': 'resolved'})

        listing = client.get(f'/api/incidents?book_id={book_a.id}&status=open', headers=headers_a).get_json()
        assert [i['id'] for i in listing['incidents']] == [open_one['id']]

    def test_sold_item_status_wins_over_incident(self, client, user_a, book_a, headers_a, make_item):
        item = make_item(user_a, book_a, 'A-001')
        client.post('/api/incidents', headers=headers_a, json={'item_id': item.id, 'incident_type': 'damage'})
        sales_service.create_sale(user_id=user_a.id, item_id=item.id, sale_price_cents=100)
        assert client.get(f'/api/items/{item.id}', headers=headers_a).get_json()['item']['status'] == 'Sold'

    def test_foreign_item(self, client, user_b, book_b, headers_a, make_item):
        item = make_item(user_b, book_b, 'B-001')
        resp = client.post('/api/incidents', headers=headers_a, json={'item_id': item.id, 'incident_type': 'damage'})
        assert resp.status_code == 404
