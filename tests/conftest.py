import os

# Must be set before storefront modules are imported
os.environ["DATABASE_URL"] = "sqlite:///./test_storefront.db"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("ACTION_LINK_SECRET", "test-link-secret")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ.setdefault("UPI_ID", "homespun@okicici")
os.environ.setdefault("APP_ENV", "test")

import pytest
from fastapi.testclient import TestClient

from storefront.main import app as fastapi_app
from storefront.database import Base
from storefront.models import Role
import storefront.admin
import storefront.routes

from factories import (
    TestingSessionLocal,
    add_to_cart,
    auth_headers,
    create_address,
    create_product,
    create_user,
    engine,
    order_payload,
)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def email_sender(mocker):
    # Never talk to Resend from tests
    return mocker.patch("resend.Emails.send", return_value={"id": "email_test_123"})


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(storefront.routes, "SessionLocal", TestingSessionLocal)
    monkeypatch.setattr(storefront.admin, "SessionLocal", TestingSessionLocal)
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def customer():
    """A customer with one address and a cart holding 2 x P1 at 300."""
    user_id = create_user("user-1")
    address_id = create_address(user_id)
    create_product("P1", price=300, stock=10)
    add_to_cart(user_id, "P1", 2)
    return {"id": user_id, "address_id": address_id, "headers": auth_headers(user_id)}


@pytest.fixture
def admin_headers():
    create_user("admin-1", role=Role.ADMIN)
    return auth_headers("admin-1", Role.ADMIN)


@pytest.fixture
def placed_order(client, customer):
    response = client.post("/api/orders", json=order_payload(customer["address_id"]), headers=customer["headers"])
    assert response.status_code == 201
    return response.json()["order"]
