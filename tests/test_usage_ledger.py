from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from app.domain.errors import NotEligible
from app.domain.models import CartTotalRule
from app.domain.usage_ledger import UsageLedger

RULE = CartTotalRule(discount_percent=Decimal("10"))


def _pending(promotion):
    return sum(1 for e in promotion.usage_history if e.is_pending)


def test_reserve_then_release_restores_the_counter(make_promotion, now):
    promotion = make_promotion(RULE, max_usage=10)
    ledger = UsageLedger()

    entry = ledger.reserve(promotion, 7, Decimal("12"), now)

    assert entry.is_pending
    assert entry.discount_amount == Decimal("12.00")
    assert promotion.current_usage == 1
    assert _pending(promotion) == 1

    assert ledger.release(promotion, 7) is True
    assert promotion.current_usage == 0
    assert promotion.usage_history == []


def test_release_without_pending_entry_is_a_noop(make_promotion):
    promotion = make_promotion(RULE, current_usage=0)

    assert UsageLedger().release(promotion, 7) is False
    assert promotion.current_usage == 0


def test_reserve_over_the_limit_is_rejected(make_promotion, now):
    promotion = make_promotion(RULE, max_usage=1, current_usage=1)

    with pytest.raises(NotEligible) as exc:
        UsageLedger().reserve(promotion, 7, Decimal("5"), now)

    assert exc.value.checks == ["usage_limit_exceeded"]
    assert promotion.current_usage == 1


def test_finalized_usage_is_never_released(make_promotion, now):
    promotion = make_promotion(RULE)
    ledger = UsageLedger()
    ledger.reserve(promotion, 7, Decimal("5"), now)

    assert ledger.finalize(promotion, 7, order_id=900) is True
    assert promotion.usage_history[0].order_id == 900

    assert ledger.release(promotion, 7) is False
    assert promotion.current_usage == 1


def test_record_reserves_and_finalizes(make_promotion, now):
    promotion = make_promotion(RULE)

    UsageLedger().record(promotion, 7, order_id=42, discount_amount=Decimal("3"), now=now)

    assert promotion.current_usage == 1
    assert [(e.user_id, e.order_id) for e in promotion.usage_history] == [(7, 42)]


def test_usage_conservation_over_many_apply_and_release(make_promotion, now):
    promotion = make_promotion(RULE)
    ledger = UsageLedger()

    for user_id in (1, 2, 3, 4):
        ledger.reserve(promotion, user_id, Decimal("1"), now)
    ledger.release(promotion, 2)
    ledger.release(promotion, 2)
    ledger.release(promotion, 4)

    assert promotion.current_usage == _pending(promotion) == 2


def test_store_rejection_wins_over_in_memory_state(make_promotion, now):
    promotion = make_promotion(RULE, max_usage=0)
    store = MagicMock()
    store.try_increment_usage.return_value = False

    with pytest.raises(NotEligible):
        UsageLedger(store).reserve(promotion, 7, Decimal("1"), now)

    store.add_usage.assert_not_called()
    assert promotion.current_usage == 0


def test_store_is_kept_in_sync(make_promotion, now):
    promotion = make_promotion(RULE)
    store = MagicMock()
    store.try_increment_usage.return_value = True
    ledger = UsageLedger(store)

    ledger.reserve(promotion, 7, Decimal("1"), now)
    ledger.release(promotion, 7)

    store.try_increment_usage.assert_called_once_with(promotion.id)
    store.add_usage.assert_called_once()
    store.delete_pending_usage.assert_called_once_with(promotion.id, 7)
    store.decrement_usage.assert_called_once_with(promotion.id)
