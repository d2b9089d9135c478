"""Pytest configuration and fixtures"""
import os

# Settings are read at import time, so configure before importing tollgate
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tollgate.database import Base, get_db
from tollgate.main import app
import tollgate.models  # noqa: F401

# One shared in-memory connection so every thread sees the same tables
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

API = "/api"


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create test client with database session override"""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def signup_data() -> dict:
    """Sample signup payload"""
    return {"email": "a@x.com", "password": "secret1", "fullName": "A"}


@pytest.fixture
def signed_up(client: TestClient, signup_data: dict) -> dict:
    """Sign up the sample user and return the response ``data``"""
    response = client.post(f"{API}/signup", json=signup_data)
    assert response.status_code == 201
    return response.json()["data"]
