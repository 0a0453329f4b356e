"""Pytest configuration for storefront API tests."""

import os

# Settings must be in place before storefront.config is first read
os.environ["AUTH_PROVIDER"] = "local"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite:///./test_storefront.db"
os.environ["ALLOWED_ORIGINS"] = "http://localhost:3000,https://shop.example.com"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront.database import Base, get_db
from storefront.main import app
from storefront.models import User

TEST_DATABASE_URL = "sqlite:///./test_storefront.db"
DEFAULT_PASSWORD = "Passw0rd!"
PRODUCT_IMAGE = "https://cdn.example.com/products/p1.png"
ID_IMAGE = "https://cdn.example.com/ids/seller.jpg"

engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db

_client = TestClient(app)


@pytest.fixture(scope="function", autouse=True)
def setup_database():
    """Fresh tables for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    return _client


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def register(client):
    """Register through the API; returns the response."""

    def _register(display_name, email, password=DEFAULT_PASSWORD, role="user", **extra):
        body = {"displayName": display_name, "email": email, "password": password, "role": role}
        body.update(extra)
        return client.post("/auth/register", json=body)

    return _register


@pytest.fixture
def login(client):
    """Log in and return bearer headers."""

    def _login(email, password=DEFAULT_PASSWORD):
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.json()
        token = response.json()["session"]["access_token"]
        return {"Authorization": f"Bearer {token}"}

    return _login


@pytest.fixture
def alice(register, login):
    assert register("alice", "alice@x.com").status_code == 201
    return login("alice@x.com")


@pytest.fixture
def bob(register, login):
    assert register("bob", "bob@x.com").status_code == 201
    return login("bob@x.com")


@pytest.fixture
def admin(register, login):
    assert register("root", "admin@x.com").status_code == 201
    session = TestingSessionLocal()
    try:
        user = session.query(User).filter(User.email == "admin@x.com").one()
        user.role = "admin"
        session.commit()
    finally:
        session.close()
    return login("admin@x.com")


@pytest.fixture
def make_seller(register, login):
    """Register a seller, set its status directly and return bearer headers."""

    def _make_seller(display_name, email, status="approved"):
        response = register(display_name, email, role="seller", contact="09171234567", idUrl=ID_IMAGE)
        assert response.status_code == 201, response.json()
        session = TestingSessionLocal()
        try:
            user = session.query(User).filter(User.email == email).one()
            user.seller_status = "approved"
            session.commit()
            headers = login(email)
            user.seller_status = status
            session.commit()
        finally:
            session.close()
        return headers

    return _make_seller


def cart_item_body(username, product_id="P1", price="10.00", quantity=1, **extra):
    body = {
        "username": username,
        "productId": product_id,
        "productName": f"Product {product_id}",
        "description": "A product used in tests",
        "price": price,
        "idUrl": PRODUCT_IMAGE,
        "quantity": quantity,
    }
    body.update(extra)
    return body


def address_body(**overrides):
    body = {
        "fullName": "Alice Example",
        "phoneNumber": "+63 917 123 4567",
        "addressLine1": "123 Mabini Street",
        "city": "Manila",
        "province": "Metro Manila",
        "postalCode": "1000",
        "isDefault": False,
    }
    body.update(overrides)
    return body
