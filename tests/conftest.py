import mongomock
import pytest
from fastapi.testclient import TestClient

from database import create_document, ensure_indexes, get_db
from ledger import PointsLedger
from orders import OrderRepository
from schemas import OrderItemInput, Product, User


@pytest.fixture
def db():
    database = mongomock.MongoClient()["coffee_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def products(db):
    """Product ids keyed by a short name."""
    catalog = {
        "latte": Product(name="Caffe Latte", category="coffee", base_price=1500,
                         sizes=[{"name": "Regular", "price": 1500}, {"name": "Large", "price": 2500}]),
        "tea": Product(name="Green Tea", category="tea", base_price=1500),
        "muffin": Product(name="Blueberry Muffin", category="snacks", base_price=2500),
        "cookie": Product(name="Cookie", category="snacks", base_price=999),
    }
    return {key: create_document(db, "product", p.to_document()) for key, p in catalog.items()}


@pytest.fixture
def user_id(db):
    return create_document(db, "user", User(name="Coffee Lover", email="user@coffee.com").to_document())


@pytest.fixture
def repo(db):
    return OrderRepository(db)


@pytest.fixture
def ledger(db):
    return PointsLedger(db)


@pytest.fixture
def make_order(repo, products):
    def _make(*lines, user_id=None, customer_name="Alice"):
        items = [OrderItemInput(product_id=products[key], quantity=qty, size=size) for key, qty, size in lines]
        return repo.create_order(items, customer_name, user_id=user_id)
    return _make


@pytest.fixture
def client(db):
    from main import app
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()
