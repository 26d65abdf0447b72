"""
Integration fixtures: a Flask app on a file-backed SQLite database per test
and a dispatcher that records deliveries instead of calling the webhook.
"""

from datetime import datetime

import pytest

from salon_booking.core.exceptions import DeliveryError
from salon_booking.db.session import SessionLocal
from salon_booking.domain.interfaces import DeliveryReceipt, INotificationDispatcher
from salon_booking.main import create_app
from tests.fixtures.database_fixtures import seed_catalog


class RecordingDispatcher(INotificationDispatcher):
    """Records every send; customers in ``failing_customer_ids`` fail."""

    def __init__(self, failing_customer_ids=()):
        self.calls = []
        self.failing_customer_ids = set(failing_customer_ids)

    def send_invite(self, customer, meeting):
        self.calls.append((customer.id, meeting.id))
        if customer.id in self.failing_customer_ids:
            raise DeliveryError("500 upstream unavailable", details={"status_code": 500})
        return DeliveryReceipt(status_code=200, sent_at=datetime(2025, 1, 1, 9, 0))


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def app(tmp_path, monkeypatch, dispatcher):
    """Create application for integration testing."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'api.db'}")
    flask_app = create_app({"TESTING": True, "NOTIFICATION_DISPATCHER": dispatcher})
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def api_catalog(app):
    """Seed the app database and release the connection before requests run."""
    session = SessionLocal()
    try:
        return seed_catalog(session)
    finally:
        session.close()
