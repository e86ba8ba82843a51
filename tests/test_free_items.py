from decimal import Decimal

from app.domain.free_items import apply_free_quantity, revert_free_quantity
from app.domain.models import AppliedPromotion, Discount, PromotionType


def _assert_quantity_invariant(cart):
    for line in cart.items:
        assert 0 <= line.free_quantity <= line.quantity
        if line.is_free_item:
            assert line.free_quantity == line.quantity


def _free_goods(promotion_id, product_id, units):
    return Discount(
        promotion_id=promotion_id,
        type=PromotionType.BUY_X_GET_Y,
        discount_amount=Decimal("10.00") * units,
        product_id=product_id,
        free_quantity=units,
    )


def test_free_units_are_added_on_top_of_an_existing_line(make_cart):
    cart = make_cart((4, 6, 10))

    line = apply_free_quantity(cart, 4, 2)

    assert (line.quantity, line.free_quantity, line.chargeable_quantity) == (8, 2, 6)
    _assert_quantity_invariant(cart)


def test_missing_product_gets_a_free_item_line(make_cart):
    cart = make_cart((4, 6, 10))

    line = apply_free_quantity(cart, 30, 3, Decimal("2"))

    assert line.is_free_item
    assert (line.quantity, line.free_quantity, line.chargeable_quantity) == (3, 3, 0)
    assert line.price == Decimal("2")
    assert cart.chargeable_total == Decimal("60.00")
    _assert_quantity_invariant(cart)


def test_zero_units_is_a_noop(make_cart):
    cart = make_cart((4, 6, 10))

    assert apply_free_quantity(cart, 4, 0) is None
    assert cart.items[0].quantity == 6


def test_bulk_revert_restores_paid_quantities_and_is_idempotent(make_cart):
    cart = make_cart((4, 6, 10))
    apply_free_quantity(cart, 4, 2)
    apply_free_quantity(cart, 30, 1)

    assert revert_free_quantity(cart) == 3
    assert [(i.product_id, i.quantity, i.free_quantity) for i in cart.items] == [(4, 6, 0)]

    assert revert_free_quantity(cart) == 0
    assert [(i.product_id, i.quantity, i.free_quantity) for i in cart.items] == [(4, 6, 0)]


def test_revert_for_one_promotion_leaves_the_others(make_cart, now):
    cart = make_cart((4, 6, 10))
    apply_free_quantity(cart, 4, 2)
    apply_free_quantity(cart, 4, 1)
    first = AppliedPromotion(promotion_id=1, applied_at=now, discounts=[_free_goods(1, 4, 2)])
    second = AppliedPromotion(promotion_id=2, applied_at=now, discounts=[_free_goods(2, 4, 1)])
    cart.applied_promotions = [first, second]

    assert revert_free_quantity(cart, promotion_id=1) == 2

    line = cart.items[0]
    assert (line.quantity, line.free_quantity) == (7, 1)
    assert first.discounts[0].free_quantity == 0
    assert second.discounts[0].free_quantity == 1

    # drugie wywolanie nic nie zmienia
    assert revert_free_quantity(cart, promotion_id=1) == 0
    assert (line.quantity, line.free_quantity) == (7, 1)
    _assert_quantity_invariant(cart)


def test_revert_removes_free_item_lines_of_the_promotion(make_cart, now):
    cart = make_cart((4, 2, 10))
    apply_free_quantity(cart, 30, 2)
    cart.applied_promotions = [AppliedPromotion(promotion_id=5, applied_at=now, discounts=[_free_goods(5, 30, 2)])]

    revert_free_quantity(cart, promotion_id=5)

    assert [i.product_id for i in cart.items] == [4]


def test_revert_never_goes_below_paid_quantity(make_cart, now):
    cart = make_cart((4, 6, 10))
    apply_free_quantity(cart, 4, 1)
    # rekord mowi o wiekszej liczbie darmowych sztuk niz jest w linii
    cart.applied_promotions = [AppliedPromotion(promotion_id=1, applied_at=now, discounts=[_free_goods(1, 4, 5)])]

    assert revert_free_quantity(cart, promotion_id=1) == 1
    assert (cart.items[0].quantity, cart.items[0].free_quantity) == (6, 0)
