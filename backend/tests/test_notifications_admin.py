"""
Notifications and admin endpoints.

Verifies:
- Admin endpoints refuse non-admins (403) and anonymous callers (401)
- Targeted notifications reach one user, broadcasts reach everyone
- Users only see and mark their own notifications
"""

import pytest

from pawnledger.models import Notification
from pawnledger.services import notification_service


ADMIN_ENDPOINTS = [
    ('get', '/api/admin/users'),
    ('get', '/api/admin/users/search?q=a'),
    ('get', '/api/admin/notifications'),
    ('post', '/api/admin/notifications'),
]


class TestAdminAccess:

    @pytest.mark.parametrize('method,url', ADMIN_ENDPOINTS)
    def test_non_admin_forbidden(self, client, headers_a, method, url):
        resp = getattr(client, method)(url, headers=headers_a, json={'message': 'hi'} if method == 'post' else None)
        assert resp.status_code == 403
        assert resp.get_json()['error'] == 'Admin access required'

    @pytest.mark.parametrize('method,url', ADMIN_ENDPOINTS)
    def test_anonymous_rejected(self, client, method, url):
        assert getattr(client, method)(url).status_code == 401


class TestAdminNotifications:

    def test_targeted(self, client, db_session, admin_headers, user_a, user_b):
        resp = client.post('/api/admin/notifications', headers=admin_headers, json={
            'message': 'Your book was reviewed', 'type': 'updates', 'target_user_id': user_a.id,
        })
        assert resp.status_code == 201
        notification = resp.get_json()['notification']
        assert notification['user_id'] == user_a.id
        assert notification['type'] == 'UPDATES'
        assert notification['is_targeted'] is True
        assert db_session.query(Notification).filter_by(user_id=user_b.id).count() == 0

    def test_broadcast(self, client, db_session, admin_headers, admin_user, user_a, user_b):
        resp = client.post('/api/admin/notifications', headers=admin_headers, json={'message': 'Maintenance tonight'})
        assert resp.status_code == 201
        assert resp.get_json() == {'count': 3}

        rows = db_session.query(Notification).all()
        assert {n.user_id for n in rows} == {admin_user.id, user_a.id, user_b.id}
        assert all(n.is_targeted is False and n.type == 'GENERAL' for n in rows)

    def test_unknown_target(self, client, admin_headers):
        resp = client.post('/api/admin/notifications', headers=admin_headers, json={
            'message': 'x', 'target_user_id': 999999,
        })
        assert resp.status_code == 404

    def test_message_required(self, client, admin_headers):
        resp = client.post('/api/admin/notifications', headers=admin_headers, json={'message': '  '})
        assert resp.status_code == 400

    def test_invalid_type(self, client, admin_headers):
        resp = client.post('/api/admin/notifications', headers=admin_headers, json={'message': 'x', 'type': 'spam'})
        assert resp.status_code == 400

    def test_admin_list_includes_recipient(self, client, admin_user, admin_headers, user_a):
        notification_service.create_notification(created_by=admin_user.id, message='Hello', type=None, target_user_id=user_a.id)
        listing = client.get('/api/admin/notifications', headers=admin_headers).get_json()['notifications']
        assert listing[0]['user']['email'] == user_a.email


class TestAdminUsers:

    def test_users_with_book_counts(self, client, admin_headers, user_a, book_a):
        users = client.get('/api/admin/users', headers=admin_headers).get_json()['users']
        counts = {u['email']: u['book_count'] for u in users}
        assert counts[user_a.email] == 1

    def test_search(self, client, admin_headers, user_a, user_b):
        users = client.get('/api/admin/users/search?q=ALI', headers=admin_headers).get_json()['users']
        assert [u['email'] for u in users] == [user_a.email]

    def test_search_blank(self, client, admin_headers, user_a):
        assert client.get('/api/admin/users/search?q=', headers=admin_headers).get_json()['users'] == []


class TestUserNotifications:

    @pytest.fixture
    def notifications(self, admin_user, user_a, user_b):
        for message in ('First', 'Second'):
            notification_service.create_notification(
                created_by=admin_user.id, message=message, type='OFFER', target_user_id=user_a.id,
            )
        return notification_service.create_notification(
            created_by=admin_user.id, message='For bob', type=None, target_user_id=user_b.id,
        )

    def test_feed_and_unread_count(self, client, headers_a, notifications):
        body = client.get('/api/notifications', headers=headers_a).get_json()
        assert [n['message'] for n in body['notifications']] == ['Second', 'First']
        assert body['unread_count'] == 2
        assert client.get('/api/notifications/unread-count', headers=headers_a).get_json() == {'unread_count': 2}

    def test_mark_read(self, client, headers_a, notifications):
        first = client.get('/api/notifications', headers=headers_a).get_json()['notifications'][0]
        resp = client.post(f"/api/notifications/{first['id']}/read", headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()['notification']['is_read'] is True
        assert client.get('/api/notifications/unread-count', headers=headers_a).get_json()['unread_count'] == 1

    def test_mark_foreign_read(self, client, headers_a, notifications):
        resp = client.post(f'/api/notifications/{notifications[0].id}/read', headers=headers_a)
        assert resp.status_code == 404

    def test_read_all(self, client, headers_a, headers_b, notifications):
        assert client.post('/api/notifications/read-all', headers=headers_a).get_json() == {'updated': 2}
        assert client.get('/api/notifications/unread-count', headers=headers_a).get_json()['unread_count'] == 0
        assert client.get('/api/notifications/unread-count', headers=headers_b).get_json()['unread_count'] == 1
