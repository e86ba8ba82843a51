# app/domain/models.py
"""
Model domenowy koszyka i promocji.

Silnik promocji operuje wylacznie na tych dataclassach (bez sesji bazy),
repozytoria mapuja je z/do modeli SQLAlchemy.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional, Union

MONEY = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(MONEY, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # sqlite zwraca naive datetime
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CartStatus(str, Enum):
    ACTIVE = "active"
    ABANDONED = "abandoned"
    CHECKED_OUT = "checked_out"
    EXPIRED = "expired"


class PromotionType(str, Enum):
    CART_TOTAL = "cartTotal"
    QUANTITY_DISCOUNT = "quantityDiscount"
    BUY_X_GET_Y = "buyXGetY"


# =====================================================
# REGULY PROMOCJI (tagged union po polu type)
# =====================================================
@dataclass(frozen=True)
class CartTotalRule:
    min_amount: Decimal = ZERO
    discount_percent: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None

    type = PromotionType.CART_TOTAL


@dataclass(frozen=True)
class QuantityDiscountRule:
    min_quantity: int = 1
    discount_percent: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None

    type = PromotionType.QUANTITY_DISCOUNT


@dataclass(frozen=True)
class BuyXGetYRule:
    buy_quantity: int = 1
    get_quantity: int = 1
    same_item: bool = True
    free_product_id: Optional[int] = None

    type = PromotionType.BUY_X_GET_Y


Rule = Union[CartTotalRule, QuantityDiscountRule, BuyXGetYRule]

RULE_TYPES = {
    PromotionType.CART_TOTAL: CartTotalRule,
    PromotionType.QUANTITY_DISCOUNT: QuantityDiscountRule,
    PromotionType.BUY_X_GET_Y: BuyXGetYRule,
}

_DECIMAL_FIELDS = ("min_amount", "discount_percent", "discount_amount")


def rule_to_dict(rule: Rule) -> Dict[str, Any]:
    data = asdict(rule)
    for key in _DECIMAL_FIELDS:
        if data.get(key) is not None:
            data[key] = str(data[key])
    return data


def rule_from_dict(rule_type: Union[str, PromotionType], data: Dict[str, Any]) -> Rule:
    rule_cls = RULE_TYPES[PromotionType(rule_type)]
    values = dict(data or {})
    values.pop("type", None)
    for key in _DECIMAL_FIELDS:
        if values.get(key) is not None:
            values[key] = Decimal(str(values[key]))
    known = rule_cls.__dataclass_fields__
    return rule_cls(**{k: v for k, v in values.items() if k in known})


# =====================================================
# PROMOCJA
# =====================================================
@dataclass
class UsageEntry:
    user_id: int
    order_id: Optional[int] = None
    used_at: datetime = field(default_factory=utcnow)
    discount_amount: Decimal = ZERO

    @property
    def is_pending(self) -> bool:
        return self.order_id is None


@dataclass
class Promotion:
    id: int
    name: str
    store_id: int
    rule: Rule
    start_date: datetime
    end_date: datetime
    code: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    max_usage: int = 0
    current_usage: int = 0
    max_usage_per_user: int = 1
    min_order_amount: Decimal = ZERO
    priority: int = 1
    auto_apply: bool = False
    requires_code: bool = True
    applicable_products: List[int] = field(default_factory=list)
    applicable_categories: List[str] = field(default_factory=list)
    excluded_products: List[int] = field(default_factory=list)
    excluded_categories: List[str] = field(default_factory=list)
    usage_history: List[UsageEntry] = field(default_factory=list)

    @property
    def type(self) -> PromotionType:
        return self.rule.type

    @property
    def effective_min_order(self) -> Decimal:
        # regula cartTotal ma wlasny prog, liczy sie wyzszy
        minimum = self.min_order_amount or ZERO
        if isinstance(self.rule, CartTotalRule):
            minimum = max(minimum, self.rule.min_amount or ZERO)
        return minimum

    def user_usage_count(self, user_id: int) -> int:
        return sum(1 for entry in self.usage_history if entry.user_id == user_id)

    def latest_pending_entry(self, user_id: int) -> Optional[UsageEntry]:
        for entry in reversed(self.usage_history):
            if entry.user_id == user_id and entry.is_pending:
                return entry
        return None

    def is_product_applicable(self, product_id: int, category_code: Optional[str] = None) -> bool:
        if product_id in self.excluded_products:
            return False
        if category_code is not None and str(category_code) in {str(c) for c in self.excluded_categories}:
            return False

        # brak list = promocja na wszystko (poza wykluczonymi)
        if not self.applicable_products and not self.applicable_categories:
            return True

        if product_id in self.applicable_products:
            return True
        if category_code is not None and str(category_code) in {str(c) for c in self.applicable_categories}:
            return True
        return False


# =====================================================
# KOSZYK
# =====================================================
@dataclass
class Discount:
    promotion_id: int
    type: PromotionType
    discount_amount: Decimal
    product_id: Optional[int] = None
    free_quantity: int = 0
    unit_price: Optional[Decimal] = None
    description: str = ""

    @property
    def is_free_goods(self) -> bool:
        return self.free_quantity > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "promotion_id": self.promotion_id,
            "type": self.type.value,
            "discount_amount": str(self.discount_amount),
            "product_id": self.product_id,
            "free_quantity": self.free_quantity,
            "unit_price": str(self.unit_price) if self.unit_price is not None else None,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Discount":
        unit_price = data.get("unit_price")
        return cls(
            promotion_id=data["promotion_id"],
            type=PromotionType(data["type"]),
            discount_amount=Decimal(str(data.get("discount_amount") or "0")),
            product_id=data.get("product_id"),
            free_quantity=int(data.get("free_quantity") or 0),
            unit_price=Decimal(str(unit_price)) if unit_price is not None else None,
            description=data.get("description") or "",
        )


@dataclass
class CartItem:
    product_id: int
    quantity: int
    price: Decimal
    is_free_item: bool = False
    free_quantity: int = 0
    category_code: Optional[str] = None
    name: Optional[str] = None

    @property
    def chargeable_quantity(self) -> int:
        if self.is_free_item:
            return 0
        return max(0, self.quantity - self.free_quantity)

    @property
    def chargeable_amount(self) -> Decimal:
        return self.price * self.chargeable_quantity


@dataclass
class AppliedPromotion:
    promotion_id: int
    applied_at: datetime
    discount_amount: Decimal = ZERO
    code: Optional[str] = None
    is_auto_applied: bool = False
    discounts: List[Discount] = field(default_factory=list)


@dataclass
class Cart:
    user_id: int
    store_id: int
    id: Optional[int] = None
    items: List[CartItem] = field(default_factory=list)
    applied_promotions: List[AppliedPromotion] = field(default_factory=list)
    status: CartStatus = CartStatus.ACTIVE
    last_updated: datetime = field(default_factory=utcnow)
    version: int = 1
    expires_at: Optional[datetime] = None

    def find_item(self, product_id: int) -> Optional[CartItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def find_applied(self, promotion_id: int) -> Optional[AppliedPromotion]:
        for applied in self.applied_promotions:
            if applied.promotion_id == promotion_id:
                return applied
        return None

    @property
    def chargeable_total(self) -> Decimal:
        return money(sum((i.chargeable_amount for i in self.items), ZERO))

    def touch(self, now: datetime, retention: Optional[timedelta] = None) -> None:
        self.last_updated = now
        if retention is not None:
            self.expires_at = now + retention
