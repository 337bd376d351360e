"""
Pytest fixtures for BoxCount backend tests.

Provides an in-memory database, seeded reference lists, the test client and
a webhook dispatcher wired to an httpx mock transport.
"""

import threading

import httpx
import pytest
from boxcount import create_app
from boxcount.extensions import db
from boxcount.models import Store, Asset
from boxcount.services.webhook_service import WebhookDispatcher


ADMIN_SECRET = "s3cret-admin"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ADMIN_SECRET': ADMIN_SECRET,
        'BUSINESS_UTC_OFFSET': '-03:00',
        'DISTRIBUTION_CENTER_NAMES': ('CD SP', 'CD ES'),
    })

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
def catalog(db_session):
    """Two regular stores, one distribution center and three assets."""
    stores = [
        Store(id="1", name="Loja 1"),
        Store(id="2", name="Loja 2"),
        Store(id="CD1", name="CD SP"),
    ]
    assets = [
        Asset(id="CX-P", name="Caixa Pequena", position=1),
        Asset(id="CX-G", name="Caixa Grande", position=2),
        Asset(id="PAL", name="Palete", position=3),
    ]
    db_session.add_all(stores + assets)
    db_session.commit()
    return {"stores": stores, "assets": assets}


class RecordingHandler:
    """httpx.MockTransport handler that remembers every request."""

    def __init__(self, status_code=200, error=None):
        self.status_code = status_code
        self.error = error
        self.requests = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json={"ok": True})


@pytest.fixture(scope='function')
def webhook_transport(app):
    """Install a dispatcher whose HTTP client never leaves the process."""
    handler = RecordingHandler()
    dispatcher = WebhookDispatcher(max_workers=4, timeout=2, transport=httpx.MockTransport(handler))
    previous = app.extensions.get("webhook_dispatcher")
    app.extensions["webhook_dispatcher"] = dispatcher

    yield handler

    dispatcher.shutdown(wait=True)
    if previous is None:
        app.extensions.pop("webhook_dispatcher", None)
    else:
        app.extensions["webhook_dispatcher"] = previous


@pytest.fixture(scope='function')
def admin_headers():
    """Headers carrying the shared admin secret."""
    return {'X-Admin-Secret': ADMIN_SECRET}
