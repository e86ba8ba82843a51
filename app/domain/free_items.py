# app/domain/free_items.py
"""
Darmowe sztuki z promocji buyXGetY.

Niezmiennik po kazdym wywolaniu: 0 <= free_quantity <= quantity,
a linia is_free_item ma free_quantity == quantity.
"""
from decimal import Decimal
from typing import Optional

from app.domain.models import ZERO, Cart, CartItem
from app.utils.logging import get_logger

logger = get_logger(__name__)


def apply_free_quantity(
    cart: Cart,
    product_id: int,
    free_units: int,
    price: Optional[Decimal] = None,
) -> Optional[CartItem]:
    """
    Dokleja free_units darmowych sztuk. Istniejaca linia dostaje je ponad
    platna ilosc, brak linii = nowa linia is_free_item (cena tylko do wyswietlenia).
    """
    if free_units <= 0:
        return None

    line = cart.find_item(product_id)
    if line is not None:
        line.quantity += free_units
        line.free_quantity += free_units
        return line

    line = CartItem(
        product_id=product_id,
        quantity=free_units,
        price=price if price is not None else ZERO,
        is_free_item=True,
        free_quantity=free_units,
    )
    cart.items.append(line)
    return line


def _drop_if_empty(cart: Cart, line: CartItem) -> None:
    if line.quantity <= 0 or (line.is_free_item and line.free_quantity == 0):
        cart.items.remove(line)


def _revert_line(cart: Cart, line: CartItem, units: int) -> int:
    units = min(units, line.free_quantity)
    line.quantity -= units
    line.free_quantity -= units
    _drop_if_empty(cart, line)
    return units


def revert_free_quantity(cart: Cart, promotion_id: Optional[int] = None) -> int:
    """
    Cofa darmowe sztuki. Z promotion_id - tylko te zapisane na rekordzie tej
    promocji, bez - wszystkie (reset przed ponownym naliczeniem).
    Drugie wywolanie niczego juz nie zmienia. Zwraca liczbe cofnietych sztuk.
    """
    reverted = 0

    if promotion_id is not None:
        applied = cart.find_applied(promotion_id)
        if applied is None:
            return 0
        for discount in applied.discounts:
            if discount.free_quantity <= 0 or discount.product_id is None:
                continue
            line = cart.find_item(discount.product_id)
            if line is not None:
                reverted += _revert_line(cart, line, discount.free_quantity)
            discount.free_quantity = 0
        return reverted

    for line in list(cart.items):
        if line.is_free_item and line.free_quantity == 0:
            cart.items.remove(line)
        elif line.free_quantity > 0:
            reverted += _revert_line(cart, line, line.free_quantity)

    for applied in cart.applied_promotions:
        for discount in applied.discounts:
            discount.free_quantity = 0

    if reverted:
        logger.info(f"Cart {cart.id}: reverted {reverted} free unit(s)")
    return reverted
