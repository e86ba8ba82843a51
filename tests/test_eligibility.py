from datetime import timedelta
from decimal import Decimal

from app.domain.eligibility import EligibilityCheck, can_apply, check_eligibility
from app.domain.models import CartTotalRule, QuantityDiscountRule, UsageEntry

TEN_PERCENT_OVER_100 = CartTotalRule(min_amount=Decimal("100"), discount_percent=Decimal("10"))


def test_eligible_promotion(make_promotion, make_cart, now):
    promotion = make_promotion(TEN_PERCENT_OVER_100)
    cart = make_cart((4, 12, 10))

    result = check_eligibility(promotion, cart, user_id=7, now=now)

    assert result.eligible
    assert result.first_failure is None
    assert can_apply(promotion, cart, 7, now)


def test_failures_are_listed_in_priority_order(make_promotion, make_cart, now):
    promotion = make_promotion(
        TEN_PERCENT_OVER_100,
        is_active=False,
        end_date=now - timedelta(days=1),
        start_date=now - timedelta(days=10),
        max_usage=1,
        current_usage=1,
    )
    cart = make_cart((4, 8, 10))

    result = check_eligibility(promotion, cart, user_id=7, now=now)

    assert [f.check for f in result.failures] == [
        EligibilityCheck.INACTIVE,
        EligibilityCheck.EXPIRED,
        EligibilityCheck.USAGE_LIMIT_EXCEEDED,
        EligibilityCheck.MINIMUM_ORDER_NOT_MET,
    ]
    assert result.first_failure.message == "Promotion is not active"


def test_not_started(make_promotion, make_cart, now):
    promotion = make_promotion(TEN_PERCENT_OVER_100, start_date=now + timedelta(hours=1))

    result = check_eligibility(promotion, make_cart((4, 12, 10)), 7, now)

    assert result.first_failure.check == EligibilityCheck.NOT_STARTED


def test_zero_max_usage_means_unlimited(make_promotion, make_cart, now):
    promotion = make_promotion(TEN_PERCENT_OVER_100, max_usage=0, current_usage=500, max_usage_per_user=5)

    assert can_apply(promotion, make_cart((4, 12, 10)), 7, now)


def test_per_user_limit(make_promotion, make_cart, now):
    promotion = make_promotion(
        TEN_PERCENT_OVER_100,
        max_usage_per_user=1,
        current_usage=1,
        usage_history=[UsageEntry(user_id=7, order_id=55, used_at=now)],
    )
    cart = make_cart((4, 12, 10))

    assert check_eligibility(promotion, cart, 7, now).first_failure.check == EligibilityCheck.PER_USER_LIMIT_EXCEEDED
    # inny uzytkownik nie jest blokowany
    assert can_apply(promotion, cart, 8, now)


def test_zero_per_user_limit_blocks_everyone(make_promotion, make_cart, now):
    promotion = make_promotion(TEN_PERCENT_OVER_100, max_usage=0, max_usage_per_user=0)

    result = check_eligibility(promotion, make_cart((4, 12, 10)), 7, now)

    assert not result.eligible
    assert result.first_failure.check == EligibilityCheck.PER_USER_LIMIT_EXCEEDED


def test_minimum_order_uses_the_higher_threshold(make_promotion, make_cart, now):
    promotion = make_promotion(TEN_PERCENT_OVER_100, min_order_amount=Decimal("150"))

    result = check_eligibility(promotion, make_cart((4, 12, 10)), 7, now)

    assert result.first_failure.check == EligibilityCheck.MINIMUM_ORDER_NOT_MET
    assert "Minimum order amount of 150" in result.first_failure.message


def test_minimum_order_counts_only_chargeable_units(make_promotion, make_cart, now):
    promotion = make_promotion(TEN_PERCENT_OVER_100)
    cart = make_cart((4, 12, 10))
    cart.items[0].free_quantity = 3  # 9 platnych = 90

    result = check_eligibility(promotion, cart, 7, now)

    assert result.first_failure.check == EligibilityCheck.MINIMUM_ORDER_NOT_MET
    assert "cart total 90.00" in result.first_failure.message


def test_no_applicable_products(make_promotion, make_cart, now):
    promotion = make_promotion(QuantityDiscountRule(min_quantity=2, discount_percent=Decimal("5")), applicable_products=[99])

    result = check_eligibility(promotion, make_cart((4, 3, 10)), 7, now)

    assert [f.check for f in result.failures] == [EligibilityCheck.NO_APPLICABLE_PRODUCTS]


def test_excluded_category_wins_over_empty_include_list(make_promotion, make_cart, now):
    promotion = make_promotion(QuantityDiscountRule(min_quantity=2, discount_percent=Decimal("5")), excluded_categories=["100"])

    assert not can_apply(promotion, make_cart((4, 3, 10, "100")), 7, now)
    assert can_apply(promotion, make_cart((4, 3, 10, "200")), 7, now)


def test_free_item_lines_do_not_qualify(make_promotion, make_cart, now):
    promotion = make_promotion(QuantityDiscountRule(min_quantity=1, discount_percent=Decimal("5")), applicable_products=[30])
    cart = make_cart((4, 3, 10), (30, 1, 2))
    cart.items[1].is_free_item = True
    cart.items[1].free_quantity = 1

    result = check_eligibility(promotion, cart, 7, now)

    assert result.first_failure.check == EligibilityCheck.NO_APPLICABLE_PRODUCTS


def test_own_reservation_is_not_counted_against_limits(make_promotion, make_cart, now):
    promotion = make_promotion(
        TEN_PERCENT_OVER_100,
        max_usage=1,
        current_usage=1,
        max_usage_per_user=1,
        usage_history=[UsageEntry(user_id=7, used_at=now)],
    )
    cart = make_cart((4, 12, 10))

    assert not can_apply(promotion, cart, 7, now)
    assert can_apply(promotion, cart, 7, now, own_reservation=True)
