# app/domain/orchestrator.py
"""
Petla uzgadniania promocji, odpalana po kazdej zmianie koszyka.

1. ponowna walidacja promocji recznych
2. zdjecie niewaznych recznych (zwolnienie uzycia)
3. reset stanu z promocji (darmowe sztuki, automatyczne rekordy)
4. wybor kandydatow do auto-naliczenia
5. naliczenie: najpierw zachowane reczne, potem automatyczne wg priorytetu

Wszystko liczone od czystej bazy platnych ilosci, wiec dwa wywolania pod
rzad na niezmienionym koszyku daja identyczny stan.
"""
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Tuple

from app.domain.discounts import PriceLookup, compute_discounts
from app.domain.eligibility import check_eligibility
from app.domain.free_items import apply_free_quantity, revert_free_quantity
from app.domain.models import (
    ZERO,
    AppliedPromotion,
    Cart,
    Discount,
    Promotion,
    PromotionType,
    money,
    utcnow,
)
from app.domain.usage_ledger import UsageLedger
from app.utils.logging import get_logger

logger = get_logger(__name__)

# tylko promocje produktowe naliczaja sie same
AUTO_APPLY_TYPES = frozenset({PromotionType.BUY_X_GET_Y, PromotionType.QUANTITY_DISCOUNT})


class PromotionCatalog(Protocol):
    def get_promotion(self, promotion_id: int) -> Optional[Promotion]: ...

    def find_active_promotions(self, store_id: int, now: datetime) -> List[Promotion]: ...


def is_auto_applicable(promotion: Promotion) -> bool:
    return promotion.auto_apply and not promotion.requires_code and promotion.type in AUTO_APPLY_TYPES


def attach_promotion(
    cart: Cart,
    promotion: Promotion,
    discounts: List[Discount],
    applied_at: datetime,
    is_auto_applied: bool,
    code: Optional[str] = None,
) -> AppliedPromotion:
    for discount in discounts:
        if discount.is_free_goods:
            apply_free_quantity(cart, discount.product_id, discount.free_quantity, discount.unit_price)

    applied = AppliedPromotion(
        promotion_id=promotion.id,
        applied_at=applied_at,
        discount_amount=money(sum((d.discount_amount for d in discounts), ZERO)),
        code=code if code is not None else promotion.code,
        is_auto_applied=is_auto_applied,
        discounts=list(discounts),
    )
    cart.applied_promotions.append(applied)
    return applied


@dataclass
class ReconcileResult:
    released: List[int] = field(default_factory=list)
    manual: List[int] = field(default_factory=list)
    kept: List[int] = field(default_factory=list)
    auto_applied: List[int] = field(default_factory=list)


class AutoApplyOrchestrator:
    def __init__(
        self,
        catalog: PromotionCatalog,
        ledger: UsageLedger,
        price_lookup: Optional[PriceLookup] = None,
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.price_lookup = price_lookup

    def _revalidate_manual(self, cart: Cart, user_id: int, now: datetime) -> Tuple[list, list, List[AppliedPromotion]]:
        """
        Zwraca (valid, invalid, kept). kept - rekordy, ktorych promocji nie dalo
        sie wczytac; zostaja na koszyku bez zmian, rezerwacja nietknieta.
        """
        valid, invalid, kept = [], [], []

        for applied in cart.applied_promotions:
            if applied.is_auto_applied:
                continue

            try:
                promotion = self.catalog.get_promotion(applied.promotion_id)
            except Exception:
                logger.exception(f"Failed to load promotion {applied.promotion_id}, keeping it on cart {cart.id}")
                kept.append(deepcopy(applied))
                continue
            if promotion is None:
                invalid.append((applied, None))
                continue

            result = check_eligibility(promotion, cart, user_id, now, own_reservation=True)
            if not result.eligible:
                logger.info(
                    f"Manual promotion {promotion.id} no longer eligible: {result.first_failure.check.value}"
                )
                invalid.append((applied, promotion))
                continue

            if not compute_discounts(promotion, cart, self.price_lookup):
                logger.info(f"Manual promotion {promotion.id} no longer yields a discount")
                invalid.append((applied, promotion))
                continue

            valid.append((applied, promotion))

        return valid, invalid, kept

    def _release(self, promotion: Optional[Promotion], promotion_id: int, user_id: int) -> None:
        if promotion is None:
            logger.warning(f"Promotion {promotion_id} not found in catalog, dropping without usage release")
            return
        try:
            self.ledger.release(promotion, user_id)
        except Exception:
            # nie blokujemy zmiany koszyka, licznik naprawi zadanie reconcile_usage_counters
            logger.exception(f"Failed to release usage of promotion {promotion_id} for user {user_id}")

    def _candidates(self, cart: Cart, user_id: int, now: datetime, skip: set) -> List[Promotion]:
        try:
            active = self.catalog.find_active_promotions(cart.store_id, now)
        except Exception:
            logger.exception(f"Failed to load active promotions for store {cart.store_id}")
            return []

        candidates = [
            p
            for p in active
            if p.id not in skip and is_auto_applicable(p) and check_eligibility(p, cart, user_id, now).eligible
        ]
        return sorted(candidates, key=lambda p: (-p.priority, p.id))

    def reconcile(self, cart: Cart, user_id: int, now: Optional[datetime] = None) -> ReconcileResult:
        now = now or utcnow()
        result = ReconcileResult()
        previous: Dict[int, AppliedPromotion] = {a.promotion_id: a for a in cart.applied_promotions}

        # 1 + 2
        valid, invalid, kept = self._revalidate_manual(cart, user_id, now)
        for applied, promotion in invalid:
            self._release(promotion, applied.promotion_id, user_id)
            result.released.append(applied.promotion_id)

        # 3
        revert_free_quantity(cart)
        cart.applied_promotions = []

        # 5a - zachowane reczne, od nowa na czystej bazie
        for applied, promotion in valid:
            discounts = compute_discounts(promotion, cart, self.price_lookup)
            attach_promotion(cart, promotion, discounts, applied.applied_at, is_auto_applied=False, code=applied.code)
            result.manual.append(promotion.id)

        # 5a - niewczytane reczne wracaja z zapisanymi rabatami
        for applied in kept:
            for discount in applied.discounts:
                if discount.is_free_goods:
                    apply_free_quantity(cart, discount.product_id, discount.free_quantity, discount.unit_price)
            cart.applied_promotions.append(applied)
            result.kept.append(applied.promotion_id)

        # 4 + 5b
        for promotion in self._candidates(cart, user_id, now, skip={p.id for _, p in valid} | set(result.kept)):
            discounts = compute_discounts(promotion, cart, self.price_lookup)
            if not discounts:
                continue
            before = previous.get(promotion.id)
            applied_at = before.applied_at if before is not None and before.is_auto_applied else now
            attach_promotion(cart, promotion, discounts, applied_at, is_auto_applied=True)
            result.auto_applied.append(promotion.id)

        if result.released or result.kept or result.auto_applied:
            logger.info(
                f"Cart {cart.id} reconciled: released={result.released} "
                f"manual={result.manual} kept={result.kept} auto={result.auto_applied}"
            )
        return result
