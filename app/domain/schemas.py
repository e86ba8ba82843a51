# app/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Annotated, List, Literal, Optional, Union
from decimal import Decimal
from datetime import datetime, timezone

from app.domain.models import (
    BuyXGetYRule,
    CartTotalRule,
    QuantityDiscountRule,
)


class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi byc > 0)")
    quantity: int = Field(1, gt=0, description="Ilosc produktu (musi byc > 0)")


class ItemUpdateIn(BaseModel):
    """Schema dla zmiany ilosci, 0 usuwa linie."""

    quantity: int = Field(..., ge=0, description="Nowa platna ilosc (0 = usun)")


class ApplyPromotionIn(BaseModel):
    """Promocja po ID albo po kodzie - dokladnie jedno z dwoch."""

    promotion_id: Optional[int] = Field(None, gt=0)
    code: Optional[str] = Field(None, min_length=1, max_length=64)

    @model_validator(mode="after")
    def _one_reference(self):
        if (self.promotion_id is None) == (self.code is None):
            raise ValueError("Provide exactly one of promotion_id or code")
        return self

    @property
    def reference(self) -> Union[int, str]:
        return self.promotion_id if self.promotion_id is not None else self.code


class CheckoutIn(BaseModel):
    """Schema dla checkoutu - zamowienie tworzy zewnetrzny serwis."""

    order_id: int = Field(..., gt=0, description="ID utworzonego zamowienia")


# =====================================================
# RESPONSE KOSZYKA
# =====================================================
class CartItemOut(BaseModel):
    product_id: int
    name: Optional[str] = None
    quantity: int
    price: Decimal
    is_free_item: bool
    free_quantity: int
    chargeable_quantity: int


class AppliedPromotionOut(BaseModel):
    promotion_id: int
    code: Optional[str] = None
    applied_at: datetime
    discount_amount: Decimal
    is_auto_applied: bool


class DiscountLineOut(BaseModel):
    product_id: Optional[int] = None
    free_quantity: int
    discount_amount: Decimal
    description: str


class AppliedDiscountOut(BaseModel):
    promotion_id: int
    type: str
    code: Optional[str] = None
    is_auto_applied: bool
    discount_amount: Decimal
    discounts: List[DiscountLineOut]


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    cart_id: int
    user_id: int
    store_id: int
    status: str
    version: int
    items: List[CartItemOut]
    applied_promotions: List[AppliedPromotionOut]
    original_total: Decimal
    total_discount: Decimal
    final_total: Decimal
    applied_discounts: List[AppliedDiscountOut]
    last_updated: datetime
    expires_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PromotionPreviewOut(BaseModel):
    promotion_id: int
    type: str
    discounts: List[DiscountLineOut]
    original_total: Decimal
    total_discount: Decimal
    final_total: Decimal


class ApplicablePromotionOut(BaseModel):
    promotion_id: int
    name: str
    code: Optional[str] = None
    type: str
    auto_apply: bool
    already_applied: bool
    estimated_discount: Decimal


# =====================================================
# PROMOCJE (katalog)
# =====================================================
class _AmountOrPercent(BaseModel):
    discount_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    discount_amount: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="after")
    def _has_discount(self):
        if self.discount_percent is None and self.discount_amount is None:
            raise ValueError("discount_percent or discount_amount is required")
        return self


class CartTotalRuleIn(_AmountOrPercent):
    type: Literal["cartTotal"]
    min_amount: Decimal = Field(Decimal("0"), ge=0)

    def to_rule(self) -> CartTotalRule:
        return CartTotalRule(
            min_amount=self.min_amount,
            discount_percent=self.discount_percent,
            discount_amount=self.discount_amount,
        )


class QuantityDiscountRuleIn(_AmountOrPercent):
    type: Literal["quantityDiscount"]
    min_quantity: int = Field(..., gt=0)

    def to_rule(self) -> QuantityDiscountRule:
        return QuantityDiscountRule(
            min_quantity=self.min_quantity,
            discount_percent=self.discount_percent,
            discount_amount=self.discount_amount,
        )


class BuyXGetYRuleIn(BaseModel):
    type: Literal["buyXGetY"]
    buy_quantity: int = Field(..., gt=0)
    get_quantity: int = Field(..., gt=0)
    same_item: bool = True
    free_product_id: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def _free_product(self):
        if not self.same_item and self.free_product_id is None:
            raise ValueError("free_product_id is required when same_item is false")
        return self

    def to_rule(self) -> BuyXGetYRule:
        return BuyXGetYRule(
            buy_quantity=self.buy_quantity,
            get_quantity=self.get_quantity,
            same_item=self.same_item,
            free_product_id=self.free_product_id,
        )


RuleIn = Annotated[
    Union[CartTotalRuleIn, QuantityDiscountRuleIn, BuyXGetYRuleIn],
    Field(discriminator="type"),
]


class PromotionCreate(BaseModel):
    """Schema dla tworzenia promocji."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    code: Optional[str] = Field(None, min_length=1, max_length=64)
    store_id: int = Field(..., gt=0)
    rule: RuleIn
    applicable_products: List[int] = Field(default_factory=list)
    applicable_categories: List[str] = Field(default_factory=list)
    excluded_products: List[int] = Field(default_factory=list)
    excluded_categories: List[str] = Field(default_factory=list)
    start_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    end_date: datetime
    max_usage: int = Field(0, ge=0, description="0 = bez limitu")
    max_usage_per_user: int = Field(1, ge=0, description="0 = promocja zablokowana dla kazdego uzytkownika")
    min_order_amount: Decimal = Field(Decimal("0"), ge=0)
    priority: int = 1
    is_active: bool = True
    auto_apply: bool = False
    requires_code: bool = True

    @model_validator(mode="after")
    def _window(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class UsageEntryOut(BaseModel):
    user_id: int
    order_id: Optional[int] = None
    used_at: datetime
    discount_amount: Decimal


class PromotionOut(BaseModel):
    """Schema dla promocji (response)."""

    id: int
    name: str
    description: Optional[str] = None
    code: Optional[str] = None
    store_id: int
    type: str
    rule: dict
    applicable_products: List[int]
    applicable_categories: List[str]
    excluded_products: List[int]
    excluded_categories: List[str]
    start_date: datetime
    end_date: datetime
    max_usage: int
    current_usage: int
    max_usage_per_user: int
    min_order_amount: Decimal
    priority: int
    is_active: bool
    auto_apply: bool
    requires_code: bool
    usage_history: List[UsageEntryOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
