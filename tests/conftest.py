"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timezone
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from obligation_engine.api.dependencies import get_charge_client, get_clock
from obligation_engine.api.main import create_app
from obligation_engine.infrastructure.clients.charge import ChargeClient
from obligation_engine.infrastructure.database import models as orm
from obligation_engine.infrastructure.database.models import Base
from obligation_engine.infrastructure.database.session import get_db


# Test database: one shared in-memory connection
TEST_DATABASE_URL = "sqlite://"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
TODAY = date(2026, 3, 15)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database and fixed clock"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    app.dependency_overrides[get_charge_client] = lambda: ChargeClient(base_url="")
    return TestClient(app)


@pytest.fixture
def make_account(db: Session):
    def _make(balance_cents: int = 100_000, account_type: str = "checking", name: str = "Main Checking", **kwargs):
        account = orm.Account(
            account_name=name,
            account_type=account_type,
            current_balance_cents=balance_cents,
            source=kwargs.pop("source", "manual"),
            created_at=FIXED_NOW,
            **kwargs,
        )
        db.add(account)
        db.commit()
        return account

    return _make


@pytest.fixture
def make_obligation(db: Session):
    def _make(payee: str = "ComEd Electric", amount_due_cents: int | None = 15_000, **kwargs):
        obligation = orm.Obligation(
            payee=payee,
            category=kwargs.pop("category", "utility"),
            amount_due_cents=amount_due_cents,
            due_date=kwargs.pop("due_date", TODAY),
            status=kwargs.pop("status", "pending"),
            created_at=FIXED_NOW,
            **kwargs,
        )
        db.add(obligation)
        db.commit()
        return obligation

    return _make


@pytest.fixture
def make_transaction(db: Session):
    def _make(amount_cents: int, tx_date: date, direction: str = "outflow", **kwargs):
        tx = orm.Transaction(
            amount_cents=amount_cents,
            tx_date=tx_date,
            direction=direction,
            description=kwargs.pop("description", ""),
            created_at=FIXED_NOW,
            **kwargs,
        )
        db.add(tx)
        db.commit()
        return tx

    return _make


@pytest.fixture
def make_recommendation(db: Session):
    def _make(title: str = "Pay ComEd Electric immediately", rec_type: str = "payment", **kwargs):
        rec = orm.Recommendation(
            rec_type=rec_type,
            priority=kwargs.pop("priority", 1),
            title=title,
            reasoning=kwargs.pop("reasoning", "Due soon."),
            action_type=kwargs.pop("action_type", "pay_now"),
            dedup_key=kwargs.pop("dedup_key", title),
            status=kwargs.pop("status", "active"),
            created_at=kwargs.pop("created_at", FIXED_NOW),
            **kwargs,
        )
        db.add(rec)
        db.commit()
        return rec

    return _make
