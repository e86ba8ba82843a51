from decimal import Decimal

from fastapi.testclient import TestClient

from app.domain.pricing import resolve_price
from app.product_service.main import app

client = TestClient(app)


def test_mock_products_resolve_to_prices():
    prices = {pid: resolve_price(client.get(f"/products/{pid}").json()) for pid in (1, 2, 3, 4)}

    assert prices == {
        1: Decimal("199.99"),
        2: Decimal("49.5"),
        3: Decimal("899.00"),
        4: Decimal("10"),
    }


def test_unknown_product_is_404():
    assert client.get("/products/999").status_code == 404
