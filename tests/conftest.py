"""
Pytest fixtures: an in-memory SQLite database shared by the app and the
test through StaticPool, a seeded company, and TestClients for the office
and crew roles.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models import *
from app.models.warehouse import WarehouseItem
from app.utils import documents
from app.utils.company import get_or_create_company

COMPANY_ID = "acme"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def company(db):
    """Acme: 10 OC sets, 6 CC sets, 24 rolls of tape, 10 rolls of poly."""
    company = get_or_create_company(db, COMPANY_ID, "Acme Foam", open_cell_sets=10.0, closed_cell_sets=6.0)
    db.add(WarehouseItem(id="item-tape", company_id=COMPANY_ID, name="Tape", quantity=24.0,
                         unit="Rolls", unit_cost=6.5, min_level=6.0))
    db.add(WarehouseItem(id="item-poly", company_id=COMPANY_ID, name="Poly Sheeting", quantity=10.0,
                         unit="Rolls", unit_cost=42.0, min_level=2.0))
    db.commit()
    return company


@pytest.fixture
def client(db, company, monkeypatch):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(documents, "SessionLocal", TestingSessionLocal)
    test_client = TestClient(app, headers={"X-Company-Id": COMPANY_ID, "X-Actor": "Office"})
    yield test_client
    app.dependency_overrides.clear()
    documents.set_work_order_generator(None)


@pytest.fixture
def crew_headers():
    return {"X-Company-Id": COMPANY_ID, "X-User-Role": "crew", "X-Actor": "Mike"}


def estimate_payload(open_cell=4.0, closed_cell=0.0, tape=2.0, name="Jane Homeowner", total=12000.0, **extra):
    payload = {
        "customer": {"name": name, "address": "12 Elm St"},
        "inputs": {"length": 40, "width": 30},
        "results": {"open_cell_sets": open_cell, "closed_cell_sets": closed_cell, "total_cost": total},
        "inventory": [{"name": "Tape", "quantity": tape, "unit": "Rolls"}] if tape else [],
        "expenses": {"man_hours": 10},
    }
    payload.update(extra)
    return payload


def warehouse_levels(client):
    data = client.get("/warehouse").json()
    items = {item["name"]: item["quantity"] for item in data["items"]}
    return data["open_cell_sets"], data["closed_cell_sets"], items
