# app/domain/discounts.py
"""
Kalkulator rabatow - jeden algorytm na typ reguly.

Wszystko liczone od ilosci platnej (quantity - free_quantity), wiec wynik
nie zalezy od tego czy darmowe sztuki z buyXGetY sa juz w koszyku.
Pusta lista = promocja nic nie daje dla tego koszyka (wolajacy zglasza blad).
"""
from decimal import Decimal
from typing import Callable, List, Optional

from app.domain.models import (
    ZERO,
    BuyXGetYRule,
    Cart,
    CartItem,
    CartTotalRule,
    Discount,
    Promotion,
    QuantityDiscountRule,
    money,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)

PriceLookup = Callable[[int], Decimal]

HUNDRED = Decimal("100")


def applicable_paid_lines(promotion: Promotion, cart: Cart) -> List[CartItem]:
    return [
        item
        for item in cart.items
        if item.chargeable_quantity > 0
        and promotion.is_product_applicable(item.product_id, item.category_code)
    ]


def describe_lines(cart: Cart) -> List[str]:
    return [
        f"product {i.product_id} (qty {i.quantity}, free {i.free_quantity}, chargeable {i.chargeable_quantity})"
        for i in cart.items
    ]


def _percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    return money(amount * percent / HUNDRED)


def _cart_total(promotion: Promotion, rule: CartTotalRule, cart: Cart, price_lookup) -> List[Discount]:
    lines = applicable_paid_lines(promotion, cart)
    total = money(sum((i.chargeable_amount for i in lines), ZERO))

    if not lines or total < (rule.min_amount or ZERO):
        logger.info(f"Promotion {promotion.id}: applicable total {total} below minimum {rule.min_amount}")
        return []

    if rule.discount_amount and rule.discount_amount > 0:
        amount = money(rule.discount_amount)
        description = f"{amount} off orders over {rule.min_amount}"
    elif rule.discount_percent and rule.discount_percent > 0:
        amount = _percent_of(total, rule.discount_percent)
        description = f"{rule.discount_percent}% off orders over {rule.min_amount}"
    else:
        return []

    # rabat nie moze zejsc ponizej zera
    amount = min(amount, total)
    if amount <= 0:
        return []

    return [
        Discount(
            promotion_id=promotion.id,
            type=rule.type,
            discount_amount=amount,
            description=description,
        )
    ]


def _quantity_discount(promotion: Promotion, rule: QuantityDiscountRule, cart: Cart, price_lookup) -> List[Discount]:
    if not rule.min_quantity or rule.min_quantity <= 0:
        logger.warning(f"Promotion {promotion.id}: invalid min_quantity {rule.min_quantity}")
        return []

    discounts = []
    for line in applicable_paid_lines(promotion, cart):
        if line.chargeable_quantity < rule.min_quantity:
            continue

        line_amount = money(line.chargeable_amount)
        if rule.discount_amount and rule.discount_amount > 0:
            amount = min(money(rule.discount_amount), line_amount)
            description = f"{money(rule.discount_amount)} off when buying {rule.min_quantity}+"
        elif rule.discount_percent and rule.discount_percent > 0:
            amount = _percent_of(line_amount, rule.discount_percent)
            description = f"{rule.discount_percent}% off when buying {rule.min_quantity}+"
        else:
            return []

        if amount > 0:
            discounts.append(
                Discount(
                    promotion_id=promotion.id,
                    type=rule.type,
                    discount_amount=amount,
                    product_id=line.product_id,
                    description=description,
                )
            )
    return discounts


def _price_of(cart: Cart, product_id: int, price_lookup: Optional[PriceLookup]) -> Decimal:
    line = cart.find_item(product_id)
    if line is not None:
        return line.price
    if price_lookup is not None:
        return price_lookup(product_id)
    return ZERO


def _buy_x_get_y(promotion: Promotion, rule: BuyXGetYRule, cart: Cart, price_lookup) -> List[Discount]:
    if not rule.buy_quantity or rule.buy_quantity <= 0 or not rule.get_quantity or rule.get_quantity <= 0:
        logger.warning(f"Promotion {promotion.id}: invalid buy/get quantities")
        return []

    cycle = rule.buy_quantity + rule.get_quantity
    discounts = []

    for line in applicable_paid_lines(promotion, cart):
        paid = line.chargeable_quantity
        free_units = min((paid // cycle) * rule.get_quantity, paid)
        if free_units <= 0:
            continue

        if rule.same_item or rule.free_product_id is None:
            target_id, unit_price = line.product_id, line.price
        else:
            target_id = rule.free_product_id
            unit_price = _price_of(cart, target_id, price_lookup)

        discounts.append(
            Discount(
                promotion_id=promotion.id,
                type=rule.type,
                discount_amount=money(unit_price * free_units),
                product_id=target_id,
                free_quantity=free_units,
                unit_price=unit_price,
                description=f"Buy {rule.buy_quantity} get {rule.get_quantity} free",
            )
        )
    return discounts


_HANDLERS = {
    CartTotalRule: _cart_total,
    QuantityDiscountRule: _quantity_discount,
    BuyXGetYRule: _buy_x_get_y,
}


def compute_discounts(
    promotion: Promotion,
    cart: Cart,
    price_lookup: Optional[PriceLookup] = None,
) -> List[Discount]:
    handler = _HANDLERS.get(type(promotion.rule))
    if handler is None:
        logger.warning(f"Unknown rule for promotion {promotion.id}: {promotion.rule!r}")
        return []

    if not cart.items:
        return []

    discounts = handler(promotion, promotion.rule, cart, price_lookup)
    logger.info(f"Promotion {promotion.id} ({promotion.type.value}) -> {len(discounts)} discount(s)")
    return discounts
