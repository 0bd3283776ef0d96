"""Shared fixtures: an isolated SQLite database per test and order helpers."""
import os

# Must be set before pizza_orders reads its settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["EXPORT_ORDERS"] = "false"
os.environ["ENV_MODE"] = "development"

import uuid

import httpx
import pytest

from pizza_orders.core.config import get_settings
from pizza_orders.database import build_engine, build_session_maker, get_db, init_db
from pizza_orders.models import Order, Product

get_settings.cache_clear()


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def seller_id():
    return str(uuid.uuid4())


@pytest.fixture
def user_id():
    return str(uuid.uuid4())


@pytest.fixture
def configure(monkeypatch):
    """Override settings through the environment for one test."""
    def _configure(**values):
        for key, value in values.items():
            monkeypatch.setenv(key.upper(), str(value))
        get_settings.cache_clear()

    yield _configure
    get_settings.cache_clear()


@pytest.fixture
def make_product(session_maker, seller_id):
    async def _make(**overrides) -> Product:
        fields = {
            "owner_id": seller_id,
            "name": "Margherita",
            "description": "Tomato, mozzarella, basil",
            "price": 10.00,
            "stock": 2,
            "photo_url": "https://img.example.com/margherita.jpg",
        }
        fields.update(overrides)
        async with session_maker() as s:
            async with s.begin():
                product = Product(**fields)
                s.add(product)
        return product

    return _make


async def fetch_product(session_maker, product_id):
    async with session_maker() as s:
        return await s.get(Product, product_id)


async def count_orders(session_maker):
    async with session_maker() as s:
        result = await s.execute(Order.__table__.select())
        return len(result.all())


def line(product, quantity=1, price=None, name=None, photo=None):
    item = {
        "productId": product if isinstance(product, str) else product.id,
        "name": name or (product.name if not isinstance(product, str) else "Mystery Pizza"),
        "quantity": quantity,
        "priceAtOrder": price if price is not None else (
            product.price if not isinstance(product, str) else 10.00
        ),
    }
    if photo is not None:
        item["photo"] = photo
    return item


def order_payload(user_id, items, total=None, **overrides):
    payload = {
        "userId": user_id,
        "items": items,
        "totalAmount": total if total is not None else sum(
            i["priceAtOrder"] * i["quantity"] for i in items
        ),
        "shippingAddress": {
            "street": "350 Fifth Avenue",
            "city": "New York",
            "state": "NY",
            "postalCode": "10118",
            "country": "US",
        },
        "paymentMethod": "cash_on_delivery",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def client(session_maker):
    from pizza_orders.main import app

    async def override_get_db():
        async with session_maker() as s:
            yield s

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
