"""
Pytest fixtures for pawnledger backend tests.

Provides the test database, two independent tenants (users with their own
book), an admin account and the test client.
"""

import pytest

from pawnledger import create_app
from pawnledger.config import TestingConfig
from pawnledger.extensions import db
from pawnledger.models import Book, BookType, FieldDefinition
from pawnledger.services import item_service, reference_service, session_service
from pawnledger.services.auth_service import create_user


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def reference_types(db_session):
    """Seed person, document and image types."""
    reference_service.seed_reference_types()


@pytest.fixture(scope='function')
def book_type(db_session):
    """Police book type with one optional custom field."""
    book_type = BookType(name="police_book", display_name="Police Book")
    db_session.add(book_type)
    db_session.flush()
    db_session.add(FieldDefinition(
        book_type_id=book_type.id,
        name="serial",
        label="Serial number",
        field_type="text",
        is_required=False,
        display_order=1,
    ))
    db_session.commit()
    return book_type


@pytest.fixture(scope='function')
def user_a(db_session, reference_types):
    """Tenant A."""
    return create_user(email="alice@shop-a.test", password=PASSWORD, username="alice")


@pytest.fixture(scope='function')
def user_b(db_session, reference_types):
    """Tenant B."""
    return create_user(email="bob@shop-b.test", password=PASSWORD, username="bob")


@pytest.fixture(scope='function')
def admin_user(db_session, reference_types):
    return create_user(email="admin@pawnledger.test", password=PASSWORD, username="admin", is_admin=True)


@pytest.fixture(scope='function')
def book_a(db_session, user_a, book_type):
    """Book owned by tenant A."""
    book = Book(user_id=user_a.id, book_type_id=book_type.id, description="Shop A registry")
    db_session.add(book)
    db_session.commit()
    return book


@pytest.fixture(scope='function')
def book_b(db_session, user_b, book_type):
    """Book owned by tenant B."""
    book = Book(user_id=user_b.id, book_type_id=book_type.id, description="Shop B registry")
    db_session.add(book)
    db_session.commit()
    return book


@pytest.fixture(scope='function')
def headers_a(user_a):
    _, token = session_service.create_session(user_id=user_a.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def headers_b(user_b):
    _, token = session_service.create_session(user_id=user_b.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    _, token = session_service.create_session(user_id=admin_user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: make_item(user, book, "A-001", purchase_price_cents=1000)."""
    def _make(user, book, item_number, purchase_price_cents=None, **fields):
        purchase = None
        if purchase_price_cents is not None:
            purchase = {"purchase_price_cents": purchase_price_cents}
        return item_service.create_item(
            user_id=user.id,
            book_id=book.id,
            payload={"item_number": item_number, **fields},
            purchase=purchase,
        )
    return _make


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
