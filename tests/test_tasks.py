from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from app.data.models.promotion import PromotionModel
from app.domain.models import CartItem, CartTotalRule, Promotion, UsageEntry, utcnow
from app.repos.cart_repo import CartRepo
from app.repos.promotion_repo import PromotionRepo
from app.tasks.expire import expire_carts_task, mark_abandoned_carts_task
from app.tasks.usage import reconcile_usage_counters_task


def test_expire_carts_task(db_session, session_factory):
    repo = CartRepo(db_session)
    stale = repo.create_cart(1, 1, now=utcnow() - timedelta(days=40), retention=timedelta(days=30))
    repo.create_cart(2, 1, now=utcnow(), retention=timedelta(days=30))
    db_session.commit()

    with patch("app.tasks.expire.SessionLocal", session_factory):
        assert expire_carts_task() == [stale.id]


def test_mark_abandoned_carts_task(db_session, session_factory):
    repo = CartRepo(db_session)
    cart = repo.create_cart(1, 1, now=utcnow(), retention=timedelta(days=30))
    cart.last_updated = utcnow() - timedelta(days=2)
    cart.items.append(CartItem(product_id=4, quantity=1, price=Decimal("10")))
    repo.save_cart(cart)
    db_session.commit()

    with patch("app.tasks.expire.SessionLocal", session_factory):
        assert mark_abandoned_carts_task() == [cart.id]

    db_session.expire_all()
    assert repo.get_cart(cart.id).status.value == "abandoned"


def test_reconcile_usage_counters_task(db_session, session_factory):
    repo = PromotionRepo(db_session)
    promo = repo.create(_promotion(code="DRIFT"))
    repo.add_usage(promo.id, UsageEntry(user_id=7, used_at=utcnow()))
    db_session.get(PromotionModel, promo.id).current_usage = 5
    db_session.commit()

    with patch("app.tasks.usage.SessionLocal", session_factory):
        assert reconcile_usage_counters_task() == {str(promo.id): 1}

    db_session.expire_all()
    assert repo.get_promotion(promo.id).current_usage == 1


def _promotion(**overrides):
    data = {
        "id": 0,
        "name": "Drift",
        "store_id": 1,
        "rule": CartTotalRule(discount_percent=Decimal("10")),
        "start_date": utcnow() - timedelta(days=1),
        "end_date": utcnow() + timedelta(days=1),
    }
    data.update(overrides)
    return Promotion(**data)
