"""
Operating costs and cost event types.
"""

import pytest


@pytest.fixture
def event_type(client, headers_a):
    resp = client.post('/api/costs/event-types', headers=headers_a, json={'name': 'Rent'})
    assert resp.status_code == 201
    return resp.get_json()['event_type']


class TestEventTypes:

    def test_list_sorted_by_name(self, client, headers_a, event_type):
        client.post('/api/costs/event-types', headers=headers_a, json={'name': 'Electricity'})
        names = [t['name'] for t in client.get('/api/costs/event-types', headers=headers_a).get_json()['event_types']]
        assert names == ['Electricity', 'Rent']

    def test_duplicate_name(self, client, headers_a, event_type):
        resp = client.post('/api/costs/event-types', headers=headers_a, json={'name': ' rent '})
        assert resp.status_code == 409

    def test_blank_name(self, client, headers_a):
        assert client.post('/api/costs/event-types', headers=headers_a, json={'name': ''}).status_code == 400

    def test_rename_and_foreign(self, client, headers_a, headers_b, event_type):
        resp = client.put(f"/api/costs/event-types/{event_type['id']}", headers=headers_a, json={'name': 'Lease'})
        assert resp.get_json()['event_type']['name'] == 'Lease'

        foreign = client.put(f"/api/costs/event-types/{event_type['id']}", headers=headers_b, json={'name': 'x'})
        assert foreign.status_code == 404

    def test_delete_in_use_blocked(self, client, book_a, headers_a, event_type):
        client.post('/api/costs', headers=headers_a, json={
            'book_id': book_a.id,
            'amount_cents': 50000,
            'cost_date': '2024-02-01',
            'cost_event_type_id': event_type['id'],
        })
        resp = client.delete(f"/api/costs/event-types/{event_type['id']}", headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Cannot delete event type with associated costs'

    def test_delete_unused(self, client, headers_a, event_type):
        resp = client.delete(f"/api/costs/event-types/{event_type['id']}", headers=headers_a)
        assert resp.status_code == 200
        assert client.get('/api/costs/event-types', headers=headers_a).get_json()['event_types'] == []


class TestCosts:

    def test_create_and_list(self, client, book_a, headers_a, event_type):
        resp = client.post('/api/costs', headers=headers_a, json={
            'book_id': book_a.id,
            'amount_cents': 120000,
            'cost_date': '2024-03-01',
            'cost_event_type_id': event_type['id'],
            'details_message': 'March rent',
        })
        assert resp.status_code == 201
        cost = resp.get_json()['cost']
        assert cost['cost_event_type'] == 'Rent'
        assert cost['cost_date'].startswith('2024-03-01')

        costs = client.get('/api/costs', headers=headers_a).get_json()['costs']
        assert [c['id'] for c in costs] == [cost['id']]

    def test_newest_first_and_book_filter(self, client, user_a, book_a, book_type, headers_a):
        other_book = client.post('/api/books', headers=headers_a, json={'book_type_id': book_type.id}).get_json()['book']
        older = client.post('/api/costs', headers=headers_a, json={
            'book_id': book_a.id, 'amount_cents': 100, 'cost_date': '2024-01-01',
        }).get_json()['cost']
        newer = client.post('/api/costs', headers=headers_a, json={
            'book_id': book_a.id, 'amount_cents': 200, 'cost_date': '2024-02-01',
        }).get_json()['cost']
        client.post('/api/costs', headers=headers_a, json={
            'book_id': other_book['id'], 'amount_cents': 300, 'cost_date': '2024-03-01',
        })

        costs = client.get(f'/api/costs?book_id={book_a.id}', headers=headers_a).get_json()['costs']
        assert [c['id'] for c in costs] == [newer['id'], older['id']]

    def test_required_fields(self, client, book_a, headers_a):
        resp = client.post('/api/costs', headers=headers_a, json={'book_id': book_a.id})
        assert resp.status_code == 400

    def test_negative_amount(self, client, book_a, headers_a):
        resp = client.post('/api/costs', headers=headers_a, json={
            'book_id': book_a.id, 'amount_cents': -5, 'cost_date': '2024-01-01',
        })
        assert resp.status_code == 400

    def test_foreign_book(self, client, book_b, headers_a):
        resp = client.post('/api/costs', headers=headers_a, json={
            'book_id': book_b.id, 'amount_cents': 100, 'cost_date': '2024-01-01',
        })
        assert resp.status_code == 404

    def test_foreign_event_type(self, client, book_b, headers_b, event_type):
        resp = client.post('/api/costs', headers=headers_b, json={
            'book_id': book_b.id, 'amount_cents': 100, 'cost_date': '2024-01-01',
            'cost_event_type_id': event_type['id'],
        })
        assert resp.status_code == 400

    def test_update_and_delete(self, client, book_a, headers_a, headers_b):
        cost = client.post('/api/costs', headers=headers_a, json={
            'book_id': book_a.id, 'amount_cents': 100, 'cost_date': '2024-01-01',
        }).get_json()['cost']

        resp = client.put(f"/api/costs/{cost['id']}", headers=headers_a, json={'amount_cents': 150})
        assert resp.get_json()['cost']['amount_cents'] == 150

        assert client.delete(f"/api/costs/{cost['id']}", headers=headers_b).status_code == 404
        assert client.delete(f"/api/costs/{cost['id']}", headers=headers_a).get_json() == {'ok': True}
        assert client.get('/api/costs', headers=headers_a).get_json()['costs'] == []
