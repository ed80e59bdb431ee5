"""
Pytest fixtures for bakery POS backend tests.

Provides an app + test client on the memory backend, and a `store` fixture
parametrised over every record-store backend.
"""

from decimal import Decimal

import pytest

from bakery_pos import create_app
from bakery_pos.extensions import db, STORE_EXTENSION_KEY
from bakery_pos.services import catalog_service, customer_service
from bakery_pos.services.seed_service import seed_defaults

BACKENDS = ["memory", "csv", "sql"]


def make_config(backend: str, tmp_path, **overrides) -> dict:
    config = {
        "TESTING": True,
        "STORE_BACKEND": backend,
        "CSV_DATA_DIR": str(tmp_path / "data"),
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "BCRYPT_ROUNDS": 4,
        "SEED_ON_STARTUP": False,
        "LOG_LEVEL": "DEBUG",
    }
    config.update(overrides)
    return config


@pytest.fixture(scope='function')
def app(tmp_path):
    """Application on the memory backend, seeded with defaults and samples."""
    app = create_app(make_config("memory", tmp_path, SEED_ON_STARTUP=True, SEED_SAMPLE_DATA=True))
    yield app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', params=BACKENDS)
def backend_app(request, tmp_path):
    """Unseeded application for each backend, with an app context pushed."""
    app = create_app(make_config(request.param, tmp_path))
    with app.app_context():
        yield app
        if request.param == "sql":
            db.session.remove()
            db.drop_all()


@pytest.fixture(scope='function')
def store(backend_app):
    return backend_app.extensions[STORE_EXTENSION_KEY]


@pytest.fixture(scope='function')
def seeded_store(store):
    """Store with default users, walk-in customer and the sample catalog."""
    seed_defaults(store, include_samples=True)
    return store


def make_product(store, **overrides) -> dict:
    """Helper to create a product with sensible defaults."""
    patch = {
        "name": "Test Bun",
        "sku": "TB001",
        "category": "Breads",
        "counter_price": Decimal("50.00"),
        "wholesale_price": Decimal("40.00"),
        "stock": 20,
        "unit": "piece",
        "gst_rate": Decimal("18.00"),
    }
    patch.update(overrides)
    return catalog_service.create_product(store, patch=patch)


def make_customer(store, **overrides) -> dict:
    patch = {"name": "Asha Rao", "phone": "9000000001", "customer_type": "regular"}
    patch.update(overrides)
    return customer_service.create_customer(store, patch=patch)


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client):
    return auth_headers(get_auth_token(client, "admin", "admin123"))


@pytest.fixture(scope='function')
def cashier_headers(client):
    return auth_headers(get_auth_token(client, "cashier", "cashier123"))
