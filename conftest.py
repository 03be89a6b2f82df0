"""
Fixtures compartidas para los tests

Usa SQLite en memoria (una sola conexión compartida) en lugar de PostgreSQL y
tokens JWT firmados con la clave de la configuración.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DEBUG", "false")

import pytest
from uuid import uuid4
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database.database import Base, get_db
from app.modules.auth.utils import create_access_token


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def tenant_id():
    return uuid4()


@pytest.fixture
def user_id():
    return uuid4()


def make_auth_headers(user_id, tenant_id, role="owner"):
    token = create_access_token({"sub": str(user_id), "user_role": role})
    return {
        "Authorization": f"Bearer {token}",
        "X-Company-ID": str(tenant_id)
    }


@pytest.fixture
def auth_headers(user_id, tenant_id):
    return make_auth_headers(user_id, tenant_id)


@pytest.fixture
def viewer_headers(user_id, tenant_id):
    return make_auth_headers(user_id, tenant_id, role="viewer")
