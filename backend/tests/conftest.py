"""Pytest fixtures for customer PO auto-match testing.

Provides reusable test fixtures for:
- Database session on an in-memory SQLite database
- RFQ, partner, quote and customer PO builders
- Test client with the database and notification dispatcher overridden

Usage:
    def test_auto_match(client, make_customer_po):
        po = make_customer_po(rfq, [{"product_name": "Opus One", "quantity": 1}])
        response = client.post(f"/customer-pos/{po.id}/auto-match")
        assert response.status_code == 200
"""

import sys
import os
from decimal import Decimal
from pathlib import Path

# Set environment variables BEFORE any imports to ensure they take effect
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator, List, Optional

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

tests_dir = Path(__file__).parent
sys.path.insert(0, str(tests_dir))

from models.base import Base
from models.rfq import Partner, Rfq, RfqItem, RfqQuote
from models.customer_po import CustomerPo, CustomerPoItem
from fixtures.fakes import RecordingNotificationDispatcher


# Single shared connection so every session sees the same in-memory database
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


# Import the actual dependencies to use for overrides
from database import get_db as database_get_db
from notifications import get_notification_dispatcher


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test.

    Creates all tables before the test and drops them after.
    Each test gets a clean database state.
    """
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def partner(db_session: Session) -> Partner:
    """Create a supplier."""
    partner = Partner(business_name="Bordeaux Fine Wines Ltd")
    db_session.add(partner)
    db_session.commit()
    db_session.refresh(partner)
    return partner


@pytest.fixture(scope="function")
def make_rfq(db_session: Session):
    """Factory creating an RFQ with items.

    Each item is a dict of RfqItem columns (product_name required).
    """
    def _make_rfq(items: List[dict], rfq_number: str = "RFQ-0001") -> Rfq:
        rfq = Rfq(rfq_number=rfq_number, name="Spring allocation")
        db_session.add(rfq)
        db_session.flush()

        for position, item in enumerate(items):
            db_session.add(RfqItem(rfq_id=rfq.id, sort_order=position, **item))

        db_session.commit()
        db_session.refresh(rfq)
        return rfq

    return _make_rfq


@pytest.fixture(scope="function")
def make_quote(db_session: Session, partner: Partner):
    """Factory creating a quote for an RFQ item."""
    def _make_quote(
        item: RfqItem,
        cost: Optional[str],
        quote_partner: Optional[Partner] = None
    ) -> RfqQuote:
        quote = RfqQuote(
            item_id=item.id,
            partner_id=(quote_partner or partner).id,
            cost_price_per_case_usd=Decimal(cost) if cost is not None else None,
            quoted_vintage=item.vintage,
        )
        db_session.add(quote)
        db_session.commit()
        db_session.refresh(quote)
        return quote

    return _make_quote


@pytest.fixture(scope="function")
def make_customer_po(db_session: Session):
    """Factory creating a customer PO with items.

    Each item is a dict of CustomerPoItem columns; sell prices may be
    given as strings.
    """
    def _make_customer_po(
        rfq: Optional[Rfq],
        items: List[dict],
        po_number: str = "PO-1001"
    ) -> CustomerPo:
        customer_po = CustomerPo(
            rfq_id=rfq.id if rfq is not None else None,
            po_number=po_number,
            customer_name="Hong Kong Cellars",
        )
        db_session.add(customer_po)
        db_session.flush()

        for position, item in enumerate(items):
            item = dict(item)
            if item.get("sell_price_per_case_usd") is not None:
                item["sell_price_per_case_usd"] = Decimal(item["sell_price_per_case_usd"])
            db_session.add(
                CustomerPoItem(customer_po_id=customer_po.id, sort_order=position, **item)
            )

        db_session.commit()
        db_session.refresh(customer_po)
        return customer_po

    return _make_customer_po


@pytest.fixture(scope="function")
def notifier() -> RecordingNotificationDispatcher:
    """Notification dispatcher that records instead of enqueuing."""
    return RecordingNotificationDispatcher()


@pytest.fixture(scope="function")
def client(db_session: Session, notifier: RecordingNotificationDispatcher):
    """Create a test client bound to the test database.

    Returns a FastAPI TestClient. Notifications go to the recording
    dispatcher instead of the Celery broker.
    """
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[database_get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: notifier

    yield TestClient(app)

    app.dependency_overrides.clear()
