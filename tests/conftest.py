"""
Root pytest configuration and fixtures for unit and integration tests.

Every test gets a fresh app bound to its own in-memory SQLite database.
The app context stays pushed for the whole test, so model objects created
by the factories can be used directly alongside the HTTP test client.
"""
import uuid

import pytest
from flask import g

from services.blob_store import BlobStore

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SECRET_KEY': 'test-secret-key-for-testing-only-0123456789',
    'RANKING_MAX_RETRIES': 3,
    'INVITATION_EXPIRY_DAYS': 7,
    'S3_BUCKET': None,
}


class FakeBlobStore(BlobStore):
    """In-memory stand-in for object storage; records every call."""

    def __init__(self):
        self.uploads = []
        self.deleted = []
        self.fail_deletes = False

    def upload_url(self, key, content_type, expires_in):
        self.uploads.append((key, content_type, expires_in))
        return f"https://blobs.test/upload/{key}?expires={expires_in}"

    def download_url(self, key, expires_in):
        return f"https://blobs.test/download/{key}?expires={expires_in}"

    def delete(self, key):
        if self.fail_deletes:
            raise RuntimeError("blob store unavailable")
        self.deleted.append(key)


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def app(blob_store):
    """Create and configure a test Flask application."""
    from app import create_app
    from models import db

    test_app = create_app(config=TEST_CONFIG, blob_store=blob_store)

    with test_app.app_context():
        db.create_all()
        yield test_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


@pytest.fixture
def db_session(app):
    from models import db

    yield db.session
    db.session.rollback()


@pytest.fixture
def make_client(db_session):
    """Factory: make_client('Acme') -> persisted Client with a unique slug."""
    from services.client_service import create_client

    def _make(name=None, **kwargs):
        return create_client(name or f"Client {uuid.uuid4().hex[:6]}", **kwargs)

    return _make


@pytest.fixture
def make_user(db_session):
    """Factory: make_user(role, client) -> persisted User with password 'testpassword123'."""
    from models import User, UserRole

    def _make(role=UserRole.CLIENT_MEMBER.value, client=None, email=None, name='Test User',
              password='testpassword123'):
        user = User(
            email=email or f"user_{uuid.uuid4().hex[:8]}@example.com",
            name=name,
            role=role,
            client_id=client.id if client else None,
        )
        user.set_password(password)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_pbi(db_session):
    """Factory: make_pbi(client, 'Title') -> PBI appended to the bottom of the backlog."""
    from services import ranking_engine

    def _make(client, title=None, type='feature', **fields):
        return ranking_engine.append_pbi(
            client.id,
            title=title or f"PBI {uuid.uuid4().hex[:6]}",
            type=type,
            **fields,
        )

    return _make


@pytest.fixture
def acme(make_client):
    return make_client('Acme')


@pytest.fixture
def globex(make_client):
    return make_client('Globex')


@pytest.fixture
def flowency_admin(make_user):
    from models import UserRole
    return make_user(UserRole.FLOWENCY_ADMIN.value, name='Flowency Admin')


@pytest.fixture
def acme_admin(make_user, acme):
    from models import UserRole
    return make_user(UserRole.CLIENT_ADMIN.value, acme, name='Acme Admin')


@pytest.fixture
def acme_member(make_user, acme):
    from models import UserRole
    return make_user(UserRole.CLIENT_MEMBER.value, acme, name='Acme Member')


@pytest.fixture
def globex_member(make_user, globex):
    from models import UserRole
    return make_user(UserRole.CLIENT_MEMBER.value, globex, name='Globex Member')


def login_as(http_client, user):
    """
    Put `user` in the Flask-Login session of `http_client`.

    The app context is shared across requests in a test, so the user cached
    on `g` by Flask-Login is dropped as well.
    """
    with http_client.session_transaction() as sess:
        sess['_user_id'] = user.id
        sess['_fresh'] = True
    g.pop('_login_user', None)
    return http_client


@pytest.fixture
def login(client):
    """login(user) -> test client authenticated as `user`."""
    def _login(user):
        return login_as(client, user)
    return _login


def positions(client):
    """[(title, stack_position), ...] of a client's backlog read straight from the store."""
    from sqlalchemy import select
    from models import db, Pbi

    db.session.expire_all()
    rows = db.session.execute(
        select(Pbi.title, Pbi.stack_position)
        .where(Pbi.client_id == client.id)
        .order_by(Pbi.stack_position)
    ).all()
    return [(row.title, row.stack_position) for row in rows]


def titles(client):
    return [title for title, _ in positions(client)]


def assert_dense(client):
    stack = [position for _, position in positions(client)]
    assert stack == list(range(1, len(stack) + 1))
