# app/services/promotion_service.py
from copy import deepcopy
from typing import Any, Dict, List, Union

from app.domain.discounts import compute_discounts, describe_lines
from app.domain.eligibility import check_eligibility
from app.domain.errors import AlreadyApplied, EmptyCart, InvalidInput, NoApplicableDiscount, NotEligible, NotFound
from app.domain.free_items import revert_free_quantity
from app.domain.models import ZERO, Cart, Promotion, money, utcnow
from app.domain.orchestrator import attach_promotion, is_auto_applicable
from app.domain.pricing import compute_totals
from app.services.cart_service import CartService
from app.utils.logging import get_logger

logger = get_logger(__name__)


class PromotionService:
    """
    Promocje na koszyku: nalozenie (po ID albo kodzie), zdjecie, podglad,
    lista dostepnych. Korzysta z tej samej transakcji i locka co CartService.
    """

    def __init__(self, carts: CartService):
        self.carts = carts
        self.promotions = carts.promotions
        self.ledger = carts.ledger

    def _resolve(self, reference: Union[int, str], store_id: int) -> Promotion:
        if isinstance(reference, bool) or reference is None:
            raise InvalidInput("Promotion id or code is required")

        if isinstance(reference, int):
            promotion_id = int(reference)
            if promotion_id <= 0:
                raise InvalidInput("promotion_id must be a positive integer")
            promotion = self.promotions.get_promotion(promotion_id)
            if promotion is None or promotion.store_id != store_id:
                raise NotFound(f"Promotion {promotion_id} not found")
            return promotion

        code = reference.strip().upper()
        if not code:
            raise InvalidInput("Promotion code must not be empty")
        promotion = self.promotions.get_by_code(code, store_id)
        if promotion is None:
            raise NotFound(f"Promotion code {code} not found")
        return promotion

    def _validate(self, promotion: Promotion, cart: Cart, user_id: int, now) -> list:
        if not cart.items:
            raise EmptyCart("Cannot apply a promotion to an empty cart")
        if cart.find_applied(promotion.id) is not None:
            raise AlreadyApplied(f"Promotion {promotion.id} is already applied to this cart")

        result = check_eligibility(promotion, cart, user_id, now)
        if not result.eligible:
            raise NotEligible(result.failures)

        discounts = compute_discounts(promotion, cart, self.carts.price_lookup)
        if not discounts:
            raise NoApplicableDiscount(promotion.type.value, describe_lines(cart))
        return discounts

    # ---------- commands ----------
    def apply_promotion(self, user_id: int, store_id: int, reference: Union[int, str]) -> Dict[str, Any]:
        now = utcnow()
        with self.carts.locked_cart(user_id, store_id) as cart:
            if not cart.items:
                raise EmptyCart("Cannot apply a promotion to an empty cart")
            promotion = self._resolve(reference, store_id)
            discounts = self._validate(promotion, cart, user_id, now)

            amount = money(sum((d.discount_amount for d in discounts), ZERO))
            self.ledger.reserve(promotion, user_id, amount, now)
            attach_promotion(cart, promotion, discounts, now, is_auto_applied=False)
            logger.info(f"Promotion {promotion.id} applied to cart {cart.id}, discount {amount}")

            # kolejne promocje automatyczne moga sie teraz zalapac
            return self.carts.reconcile_and_save(cart, user_id, now)

    def _drop(self, cart: Cart, promotion_id: int, user_id: int) -> None:
        applied = cart.find_applied(promotion_id)
        if not applied.is_auto_applied:
            promotion = self.promotions.get_promotion(promotion_id)
            if promotion is not None:
                self.ledger.release(promotion, user_id)
            else:
                logger.warning(f"Promotion {promotion_id} not in catalog, dropping without usage release")
        revert_free_quantity(cart, promotion_id)
        cart.applied_promotions.remove(applied)

    def remove_promotion(self, user_id: int, store_id: int, promotion_id: int) -> Dict[str, Any]:
        with self.carts.locked_cart(user_id, store_id) as cart:
            if cart.find_applied(promotion_id) is None:
                raise NotFound(f"Promotion {promotion_id} is not applied to this cart")
            self._drop(cart, promotion_id, user_id)
            logger.info(f"Promotion {promotion_id} removed from cart {cart.id}")
            return self.carts.save(cart)

    def remove_all_promotions(self, user_id: int, store_id: int) -> Dict[str, Any]:
        with self.carts.locked_cart(user_id, store_id) as cart:
            for applied in list(cart.applied_promotions):
                self._drop(cart, applied.promotion_id, user_id)
            revert_free_quantity(cart)
            logger.info(f"All promotions removed from cart {cart.id}")
            return self.carts.save(cart)

    # ---------- query ----------
    def get_applicable_promotions(self, user_id: int, store_id: int) -> List[Dict[str, Any]]:
        """Skan bez zmian w koszyku - kazda promocja liczona na kopii."""
        now = utcnow()
        cart = self.carts.repo.get_active_cart(user_id, store_id)
        if cart is None or not cart.items:
            return []

        found = []
        for promotion in self.promotions.find_active_promotions(store_id, now):
            already = cart.find_applied(promotion.id) is not None
            if not already and not check_eligibility(promotion, cart, user_id, now).eligible:
                continue
            probe = deepcopy(cart)
            revert_free_quantity(probe)
            discounts = compute_discounts(promotion, probe, self.carts.price_lookup)
            if not discounts and not already:
                continue
            found.append(
                {
                    "promotion_id": promotion.id,
                    "name": promotion.name,
                    "code": promotion.code,
                    "type": promotion.type.value,
                    "auto_apply": is_auto_applicable(promotion),
                    "already_applied": already,
                    "estimated_discount": money(sum((d.discount_amount for d in discounts), ZERO)),
                }
            )
        return found

    def preview_promotion(self, user_id: int, store_id: int, reference: Union[int, str]) -> Dict[str, Any]:
        """Walidacja kodu i wyliczenie rabatu bez zapisu."""
        now = utcnow()
        cart = self.carts.repo.get_active_cart(user_id, store_id)
        if cart is None:
            cart = Cart(user_id=user_id, store_id=store_id)
        promotion = self._resolve(reference, store_id)

        probe = deepcopy(cart)
        discounts = self._validate(promotion, probe, user_id, now)
        attach_promotion(probe, promotion, discounts, now, is_auto_applied=False)

        promotions = self.promotions.get_promotions(a.promotion_id for a in probe.applied_promotions)
        totals = compute_totals(probe, promotions, self.carts.price_lookup)
        return {
            "promotion_id": promotion.id,
            "type": promotion.type.value,
            "discounts": [
                {
                    "product_id": d.product_id,
                    "free_quantity": d.free_quantity,
                    "discount_amount": d.discount_amount,
                    "description": d.description,
                }
                for d in discounts
            ],
            "original_total": totals.original_total,
            "total_discount": totals.total_discount,
            "final_total": totals.final_total,
        }

