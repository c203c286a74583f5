"""Pytest fixtures for testing"""

import pytest
from datetime import date
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from envelope_engine.api.dependencies import get_today
from envelope_engine.api.main import create_app
from envelope_engine.domain.models import Frequency, IncomeSource
from envelope_engine.infrastructure.database.models import Base
from envelope_engine.infrastructure.database.session import get_db

# Every date-dependent test runs against this calendar day (a Friday payday)
TODAY = date(2026, 1, 2)

# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def today() -> date:
    return TODAY


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
    """Create FastAPI test client with test database and a pinned calendar"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    return TestClient(app)


@pytest.fixture
def fortnightly_paychecks() -> list[IncomeSource]:
    """A $1000 and a $400 fortnightly paycheck, both landing today"""
    return [
        IncomeSource(id="pay-a", name="Main job", amount_cents=100000, frequency=Frequency.FORTNIGHTLY, next_pay_date=TODAY),
        IncomeSource(id="pay-b", name="Side job", amount_cents=40000, frequency=Frequency.FORTNIGHTLY, next_pay_date=TODAY),
    ]
