from decimal import Decimal

from app.domain.discounts import compute_discounts
from app.domain.models import BuyXGetYRule, CartTotalRule, PromotionType, QuantityDiscountRule


def test_buy_two_get_one_on_six_units(make_promotion, make_cart):
    promotion = make_promotion(BuyXGetYRule(buy_quantity=2, get_quantity=1), applicable_products=[4])

    [discount] = compute_discounts(promotion, make_cart((4, 6, 10)))

    assert discount.type == PromotionType.BUY_X_GET_Y
    assert discount.product_id == 4
    assert discount.free_quantity == 2
    assert discount.discount_amount == Decimal("20.00")
    assert discount.unit_price == Decimal("10")


def test_buy_x_get_y_rounds_down_and_needs_a_full_cycle(make_promotion, make_cart):
    promotion = make_promotion(BuyXGetYRule(buy_quantity=2, get_quantity=1))

    assert compute_discounts(promotion, make_cart((4, 5, 10)))[0].free_quantity == 1
    assert compute_discounts(promotion, make_cart((4, 2, 10))) == []


def test_buy_x_get_y_ignores_free_units_already_in_the_cart(make_promotion, make_cart):
    promotion = make_promotion(BuyXGetYRule(buy_quantity=2, get_quantity=1))
    cart = make_cart((4, 8, 10))
    cart.items[0].free_quantity = 2

    assert compute_discounts(promotion, cart)[0].free_quantity == 2


def test_buy_x_get_y_with_another_free_product(make_promotion, make_cart):
    rule = BuyXGetYRule(buy_quantity=1, get_quantity=1, same_item=False, free_product_id=30)
    promotion = make_promotion(rule, applicable_products=[4])

    [discount] = compute_discounts(promotion, make_cart((4, 4, 10)), price_lookup=lambda pid: Decimal("3"))

    assert discount.product_id == 30
    assert discount.free_quantity == 2
    assert discount.discount_amount == Decimal("6.00")


def test_cart_total_percent(make_promotion, make_cart):
    promotion = make_promotion(CartTotalRule(min_amount=Decimal("100"), discount_percent=Decimal("10")))

    [discount] = compute_discounts(promotion, make_cart((4, 12, 10)))

    assert discount.discount_amount == Decimal("12.00")
    assert discount.product_id is None
    assert discount.free_quantity == 0


def test_cart_total_flat_amount_is_capped_at_the_total(make_promotion, make_cart):
    flat = make_promotion(CartTotalRule(discount_amount=Decimal("15")))
    huge = make_promotion(CartTotalRule(discount_amount=Decimal("500")))
    cart = make_cart((4, 12, 10))

    assert compute_discounts(flat, cart)[0].discount_amount == Decimal("15.00")
    assert compute_discounts(huge, cart)[0].discount_amount == Decimal("120.00")


def test_cart_total_below_minimum(make_promotion, make_cart):
    promotion = make_promotion(CartTotalRule(min_amount=Decimal("100"), discount_percent=Decimal("10")))

    assert compute_discounts(promotion, make_cart((4, 8, 10))) == []


def test_cart_total_counts_only_scoped_lines(make_promotion, make_cart):
    promotion = make_promotion(CartTotalRule(discount_percent=Decimal("10")), applicable_products=[20])

    [discount] = compute_discounts(promotion, make_cart((10, 7, 10), (20, 5, 10)))

    assert discount.discount_amount == Decimal("5.00")


def test_quantity_discount_per_qualifying_line(make_promotion, make_cart):
    promotion = make_promotion(QuantityDiscountRule(min_quantity=5, discount_percent=Decimal("10")))

    discounts = compute_discounts(promotion, make_cart((10, 7, 10), (20, 3, 10)))

    assert [(d.product_id, d.discount_amount) for d in discounts] == [(10, Decimal("7.00"))]


def test_quantity_discount_flat_amount_capped_at_line(make_promotion, make_cart):
    promotion = make_promotion(QuantityDiscountRule(min_quantity=5, discount_amount=Decimal("100")))

    [discount] = compute_discounts(promotion, make_cart((10, 7, 10)))

    assert discount.discount_amount == Decimal("70.00")


def test_empty_cart_yields_nothing(make_promotion, make_cart):
    promotion = make_promotion(CartTotalRule(discount_percent=Decimal("10")))

    assert compute_discounts(promotion, make_cart()) == []
