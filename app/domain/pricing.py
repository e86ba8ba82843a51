# app/domain/pricing.py
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from app.domain.discounts import PriceLookup, compute_discounts
from app.domain.models import ZERO, Cart, Discount, Promotion, PromotionType, money

DEFAULT_PRICE_LIST_ID = 2

_NON_NUMERIC = re.compile(r"[^0-9.]")


def _field(product: Any, name: str) -> Any:
    if isinstance(product, Mapping):
        return product.get(name)
    return getattr(product, name, None)


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = _NON_NUMERIC.sub("", value)
        if not value:
            return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _from_price_list(entries: Any, price_list_id: int) -> Optional[Decimal]:
    if not isinstance(entries, (list, tuple)):
        return None
    for entry in entries:
        list_id = _field(entry, "PriceList")
        try:
            matches = list_id is not None and int(list_id) == int(price_list_id)
        except (TypeError, ValueError):
            matches = False
        if matches:
            return _to_decimal(_field(entry, "Price"))
    return None


def resolve_price(product: Any, price_list_id: int = DEFAULT_PRICE_LIST_ID) -> Decimal:
    """
    Cena jednostkowa produktu.
    Kolejnosc: ItemPrices[PriceList] -> prices[PriceList] -> pole price
    (tekst czyszczony ze znakow nienumerycznych). Nigdy nie rzuca, 0 gdy brak.
    """
    if not product:
        return ZERO

    for collection in ("ItemPrices", "prices"):
        price = _from_price_list(_field(product, collection), price_list_id)
        if price is not None:
            return price

    price = _to_decimal(_field(product, "price"))
    return price if price is not None else ZERO


# =====================================================
# SUMY KOSZYKA
# =====================================================
@dataclass
class AppliedDiscountBreakdown:
    promotion_id: int
    type: PromotionType
    code: Optional[str]
    is_auto_applied: bool
    discount_amount: Decimal
    discounts: List[Discount] = field(default_factory=list)


@dataclass
class Totals:
    original_total: Decimal
    total_discount: Decimal
    final_total: Decimal
    applied_discounts: List[AppliedDiscountBreakdown] = field(default_factory=list)


def compute_totals(
    cart: Cart,
    promotions: Mapping[int, Promotion],
    price_lookup: Optional[PriceLookup] = None,
) -> Totals:
    original_total = cart.chargeable_total
    total_discount = ZERO
    breakdown = []

    for applied in cart.applied_promotions:
        promotion = promotions.get(applied.promotion_id)
        if promotion is not None:
            discounts = compute_discounts(promotion, cart, price_lookup)
            rule_type = promotion.type
        else:
            # promocja zniknela z katalogu, zostaje snapshot z momentu naliczenia
            discounts = list(applied.discounts)
            rule_type = discounts[0].type if discounts else PromotionType.CART_TOTAL

        # darmowe sztuki sa juz odjete w original_total przez free_quantity
        total_discount += sum((d.discount_amount for d in discounts if not d.is_free_goods), ZERO)
        breakdown.append(
            AppliedDiscountBreakdown(
                promotion_id=applied.promotion_id,
                type=rule_type,
                code=applied.code,
                is_auto_applied=applied.is_auto_applied,
                discount_amount=money(sum((d.discount_amount for d in discounts), ZERO)),
                discounts=discounts,
            )
        )

    total_discount = money(total_discount)
    final_total = money(max(ZERO, original_total - total_discount))

    return Totals(
        original_total=original_total,
        total_discount=total_discount,
        final_total=final_total,
        applied_discounts=breakdown,
    )


def totals_to_dict(totals: Totals) -> Dict[str, Any]:
    return {
        "original_total": totals.original_total,
        "total_discount": totals.total_discount,
        "final_total": totals.final_total,
        "applied_discounts": [
            {
                "promotion_id": b.promotion_id,
                "type": b.type.value,
                "code": b.code,
                "is_auto_applied": b.is_auto_applied,
                "discount_amount": b.discount_amount,
                "discounts": [
                    {
                        "product_id": d.product_id,
                        "free_quantity": d.free_quantity,
                        "discount_amount": d.discount_amount,
                        "description": d.description,
                    }
                    for d in b.discounts
                ],
            }
            for b in totals.applied_discounts
        ],
    }
