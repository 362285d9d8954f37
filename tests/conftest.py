import itertools

import pytest
from flask_jwt_extended import create_access_token

from minimarket import create_app
from minimarket.config import TestConfig
from minimarket.extensions import db as _db
from minimarket.identity import Guest, User
from minimarket.model import Product

CUSTOMER = {"name": "Aiko Tanaka", "email": "aiko@example.cl", "phone": "+56 9 1234 5678"}
ADDRESS = {
    "street": "Av. Providencia 1234",
    "city": "Santiago",
    "region": "Metropolitana",
    "postal_code": "7500000",
    "country": "CL",
}


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def session(app):
    return _db.session


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_product(session):
    counter = itertools.count(1)

    def _make(**overrides):
        n = next(counter)
        data = {
            "name": f"Producto {n}",
            "sku": f"SKU-{n:04d}",
            "price": 1000,
            "quantity": 10,
            "track_inventory": True,
            "is_active": True,
        }
        data.update(overrides)
        product = Product(**data)
        session.add(product)
        session.commit()
        return product

    return _make


@pytest.fixture()
def user():
    return User("user-001")


@pytest.fixture()
def guest():
    return Guest("guest-session-001")


@pytest.fixture()
def user_headers(app):
    def _headers(user_id="user-001"):
        return {"Authorization": f"Bearer {create_access_token(identity=user_id)}"}
    return _headers


@pytest.fixture()
def guest_headers():
    def _headers(session_id="guest-session-001"):
        return {"X-Session-Id": session_id}
    return _headers


@pytest.fixture()
def customer():
    return dict(CUSTOMER)


@pytest.fixture()
def address():
    return dict(ADDRESS)
