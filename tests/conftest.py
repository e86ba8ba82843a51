import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api import create_app
from app.api.dependencies import get_lock_service, get_product_client
from app.data import models  # noqa: F401
from app.data.database import Base, get_db
from app.domain.models import Cart, CartItem, Promotion, utcnow
from app.repos.promotion_repo import PromotionRepo
from app.services.cart_service import CartService
from app.services.promotion_service import PromotionService

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeProductClient:
    """Katalog produktow w pamieci, brak produktu = HTTP 404 jak w product-service."""

    def __init__(self, products):
        self.products = products
        self.calls = []

    def fetch_product(self, product_id: int) -> dict:
        self.calls.append(product_id)
        if product_id not in self.products:
            response = requests.Response()
            response.status_code = 404
            raise requests.HTTPError(f"404 Client Error for product {product_id}", response=response)
        return self.products[product_id]


class FakeLockService:
    def __init__(self):
        self.held = {}

    def acquire_cart_lock(self, user_id, store_id, token, ttl):
        if (user_id, store_id) in self.held:
            return False
        self.held[(user_id, store_id)] = token
        return True

    def release_cart_lock(self, user_id, store_id, token):
        if self.held.get((user_id, store_id)) != token:
            return False
        del self.held[(user_id, store_id)]
        return True


class InMemoryCatalog:
    def __init__(self, promotions=()):
        self.promotions = {p.id: p for p in promotions}

    def get_promotion(self, promotion_id):
        return self.promotions.get(promotion_id)

    def find_active_promotions(self, store_id, now):
        return [
            p
            for p in self.promotions.values()
            if p.store_id == store_id and p.is_active and p.start_date <= now <= p.end_date
        ]


# =====================================================
# DOMENA (bez bazy)
# =====================================================
@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_promotion():
    ids = itertools.count(1)

    def _make(rule, **overrides):
        data = {
            "id": next(ids),
            "name": "Promo",
            "store_id": 1,
            "rule": rule,
            "start_date": NOW - timedelta(days=1),
            "end_date": NOW + timedelta(days=30),
        }
        data.update(overrides)
        return Promotion(**data)

    return _make


@pytest.fixture
def make_cart():
    def _make(*lines, user_id=7, store_id=1):
        cart = Cart(user_id=user_id, store_id=store_id, id=1)
        for line in lines:
            product_id, quantity, price = line[:3]
            category = line[3] if len(line) > 3 else None
            cart.items.append(
                CartItem(product_id=product_id, quantity=quantity, price=Decimal(str(price)), category_code=category)
            )
        return cart

    return _make


@pytest.fixture
def catalog_factory():
    return InMemoryCatalog


# =====================================================
# BAZA + SERWISY
# =====================================================
@pytest.fixture
def engine():
    """In-memory SQLite, jedno polaczenie dla wszystkich sesji."""
    _engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(_engine)
    yield _engine
    Base.metadata.drop_all(_engine)


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def products():
    return {
        1: {"id": 1, "ItemName": "Keyboard", "ItemsGroupCode": 100,
            "ItemPrices": [{"PriceList": 1, "Price": 219.99}, {"PriceList": 2, "Price": 199.99}]},
        4: {"id": 4, "ItemName": "Mouse pad", "ItemsGroupCode": 100, "price": 10},
        10: {"id": 10, "ItemName": "Pen", "ItemsGroupCode": 300, "prices": [{"PriceList": 2, "Price": "10.00"}]},
        20: {"id": 20, "ItemName": "Notebook", "ItemsGroupCode": 300, "price": "10.00 PLN"},
        30: {"id": 30, "ItemName": "Sticker", "ItemsGroupCode": 400, "price": 2},
    }


@pytest.fixture
def product_client(products):
    return FakeProductClient(products)


@pytest.fixture
def lock_service():
    return FakeLockService()


@pytest.fixture
def cart_service(db_session, product_client, lock_service):
    return CartService(db=db_session, product_client=product_client, lock_service=lock_service)


@pytest.fixture
def promotion_service(cart_service):
    return PromotionService(cart_service)


@pytest.fixture
def create_promotion(db_session):
    """Promocja zapisana w bazie, okno czasowe wokol biezacej chwili."""

    def _create(rule, **overrides):
        data = {
            "id": 0,
            "name": "Promo",
            "store_id": 1,
            "rule": rule,
            "start_date": utcnow() - timedelta(days=1),
            "end_date": utcnow() + timedelta(days=30),
        }
        data.update(overrides)
        created = PromotionRepo(db_session).create(Promotion(**data))
        db_session.commit()
        return created

    return _create


@pytest.fixture
def client(session_factory, product_client, lock_service):
    app = create_app()

    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_product_client] = lambda: product_client
    app.dependency_overrides[get_lock_service] = lambda: lock_service

    with TestClient(app) as c:
        yield c
