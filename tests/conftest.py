"""Pytest configuration and fixtures."""

import os

# Keep the application engine off the local database file
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from opsdesk.core.auth import hash_password
from opsdesk.db.session import get_db
from opsdesk.db.tenant import TenantContext
from opsdesk.models.base import Base
from opsdesk.models.models import (
    Client, Organization, Product, ProductCategory, Project, Service, User, Worker,
    WorkerProjectRate
)


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session in a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def api(session_factory):
    """TestClient whose requests use the in-memory database."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(api, email: str, password: str = "secret123", **extra) -> dict:
    """Create an account and return bearer headers for it."""
    payload = {"email": email, "password": password, "full_name": "Test Owner", **extra}
    response = api.post("/api/auth/register", json=payload)
    assert response.status_code == 200, response.text
    login = api.post("/api/auth/login", json={"email": email, "password": password})
    assert login.status_code == 200, login.text
    return {"Authorization": f"Bearer {login.json()['access_token']}"}


@pytest.fixture
def signup(api):
    def _signup(email: str, **extra) -> dict:
        return register(api, email, **extra)
    return _signup


@pytest.fixture
def auth_headers(api):
    return register(api, "owner@example.com")


def make_tenant(db, email: str, org_name: str = "Test Business", currency: str = "GHS") -> TenantContext:
    user = User(email=email, hashed_password=hash_password("secret123"), full_name="Test Owner")
    user.organization = Organization(name=org_name, currency=currency)
    db.add(user)
    db.commit()
    return TenantContext(db=db, user=user, organization=user.organization)


@pytest.fixture
def tenant(db_session):
    return make_tenant(db_session, "owner@example.com")


@pytest.fixture
def other_tenant(db_session):
    return make_tenant(db_session, "rival@example.com", org_name="Rival Business")


@pytest.fixture
def worker(tenant):
    worker = Worker(organization_id=tenant.org_id, name="Kofi Mensah", whatsapp="+233200000000")
    tenant.db.add(worker)
    tenant.db.commit()
    return worker


@pytest.fixture
def project(tenant):
    project = Project(organization_id=tenant.org_id, name="Tiling", base_price=150.0)
    tenant.db.add(project)
    tenant.db.commit()
    return project


@pytest.fixture
def rate(tenant, worker, project):
    rate = WorkerProjectRate(worker_id=worker.id, project_id=project.id, rate=120.0)
    tenant.db.add(rate)
    tenant.db.commit()
    return rate


@pytest.fixture
def customer(tenant):
    client = Client(organization_id=tenant.org_id, name="Akosua Boateng", phone="+233244000000")
    tenant.db.add(client)
    tenant.db.commit()
    return client


@pytest.fixture
def service(tenant):
    service = Service(organization_id=tenant.org_id, name="Floor installation", cost=100.0)
    tenant.db.add(service)
    tenant.db.commit()
    return service


@pytest.fixture
def product(tenant):
    product = Product(
        organization_id=tenant.org_id, name="Ceramic tile", category=ProductCategory.FINISHED_GOOD,
        unit_price=25.0, stock_quantity=3, reorder_point=1,
    )
    tenant.db.add(product)
    tenant.db.commit()
    return product
