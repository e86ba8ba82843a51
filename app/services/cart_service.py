from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterator, Optional
from uuid import uuid4

import requests
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from app.domain.errors import CartError, ConflictError, EmptyCart, InvalidInput, NotEligible, NotFound, UpstreamError
from app.domain.models import ZERO, Cart, CartItem, CartStatus, utcnow
from app.domain.orchestrator import AutoApplyOrchestrator
from app.domain.pricing import compute_totals, resolve_price, totals_to_dict
from app.domain.usage_ledger import UsageLedger
from app.repos.cart_repo import CartRepo
from app.repos.promotion_repo import PromotionRepo
from app.services.lock_service import LockService
from app.services.product_client import ProductClient
from app.utils.settings import CART_LOCK_TTL_SECONDS, CART_RETENTION_DAYS, DEFAULT_PRICE_LIST
from app.utils.logging import get_logger

logger = get_logger(__name__)


def _category_code(product: dict) -> Optional[str]:
    code = product.get("ItemsGroupCode")
    return str(code) if code is not None else None


def _product_name(product: dict) -> Optional[str]:
    return product.get("ItemName") or product.get("name")


class CartService:
    """
    Use case'y koszyka.
    commands (add, remove, update, clear, checkout) - pod lockiem koszyka,
    po kazdej zmianie orkiestrator promocji i zapis z optimistic locking
    query (get) tylko odczyt
    """

    def __init__(
        self,
        db: Session,
        product_client: ProductClient,
        lock_service: LockService,
    ):
        self.repo = CartRepo(db)
        self.promotions = PromotionRepo(db)
        self.product_client = product_client
        self.lock_service = lock_service
        self.ledger = UsageLedger(self.promotions)
        self.orchestrator = AutoApplyOrchestrator(self.promotions, self.ledger, self.price_lookup)
        self.retention = timedelta(days=CART_RETENTION_DAYS)
        self._prices: Dict[int, Decimal] = {}

    # ---------- produkty ----------
    def _fetch_product(self, product_id: int) -> dict:
        logger.info(f"Pobieranie danych produktu {product_id} z product-service")
        try:
            return self.product_client.fetch_product(product_id)
        except requests.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                raise NotFound(f"Product {product_id} not found")
            raise UpstreamError(f"Product service error for product {product_id}: {e}")
        except requests.RequestException as e:
            raise UpstreamError(f"Product service unavailable: {e}")

    def price_lookup(self, product_id: int) -> Decimal:
        """Cena produktu spoza koszyka (darmowy produkt z buyXGetY)."""
        if product_id not in self._prices:
            try:
                self._prices[product_id] = resolve_price(self._fetch_product(product_id), DEFAULT_PRICE_LIST)
            except CartError:
                logger.exception(f"Could not resolve price of product {product_id}, using 0")
                self._prices[product_id] = ZERO
        return self._prices[product_id]

    # ---------- lock + transakcja ----------
    @contextmanager
    def locked_cart(self, user_id: int, store_id: int) -> Iterator[Cart]:
        """
        Lock redis na (user, store), aktywny koszyk (tworzony leniwie) i jedna
        transakcja - commit na koncu bloku, rollback przy bledzie.
        """
        token = uuid4().hex
        try:
            acquired = self.lock_service.acquire_cart_lock(user_id, store_id, token, CART_LOCK_TTL_SECONDS)
        except RedisError as e:
            raise UpstreamError(f"Cart lock unavailable: {e}")
        if not acquired:
            raise ConflictError("Cart is being modified by another request, retry shortly")

        try:
            cart = self.repo.get_active_cart(user_id, store_id)
            if cart is None:
                cart = self.repo.create_cart(user_id, store_id, utcnow(), self.retention)
            yield cart
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise
        finally:
            try:
                self.lock_service.release_cart_lock(user_id, store_id, token)
            except RedisError:
                # lock i tak wygasnie po TTL
                logger.exception(f"Failed to release lock of cart ({user_id}, {store_id})")

    def reconcile_and_save(self, cart: Cart, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        self.orchestrator.reconcile(cart, user_id, now)
        return self.save(cart, now)

    def save(self, cart: Cart, now: Optional[datetime] = None) -> Dict[str, Any]:
        cart.touch(now or utcnow(), self.retention)
        self.repo.save_cart(cart)
        return self.to_response(cart)

    def to_response(self, cart: Cart) -> Dict[str, Any]:
        promotions = self.promotions.get_promotions(a.promotion_id for a in cart.applied_promotions)
        totals = compute_totals(cart, promotions, self.price_lookup)

        #dict przeksztalcany w jsona
        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "store_id": cart.store_id,
            "status": cart.status.value,
            "version": cart.version,
            "items": [
                {
                    "product_id": i.product_id,
                    "name": i.name,
                    "quantity": i.quantity,
                    "price": i.price,
                    "is_free_item": i.is_free_item,
                    "free_quantity": i.free_quantity,
                    "chargeable_quantity": i.chargeable_quantity,
                }
                for i in cart.items
            ],
            "applied_promotions": [
                {
                    "promotion_id": a.promotion_id,
                    "code": a.code,
                    "applied_at": a.applied_at,
                    "discount_amount": a.discount_amount,
                    "is_auto_applied": a.is_auto_applied,
                }
                for a in cart.applied_promotions
            ],
            **totals_to_dict(totals),
            "last_updated": cart.last_updated,
            "expires_at": cart.expires_at,
        }

    # ---------- query ----------
    def get_cart(self, user_id: int, store_id: int) -> Dict[str, Any]:
        cart = self.repo.get_active_cart(user_id, store_id)
        if cart is not None:
            return self.to_response(cart)

        # pierwszy dostep - tworzymy pod lockiem
        with self.locked_cart(user_id, store_id) as cart:
            return self.to_response(cart)

    # ---------- commands ----------
    def add_item(self, user_id: int, store_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if product_id is None or product_id <= 0:
            raise InvalidInput("product_id must be a positive integer")
        if quantity is None or quantity < 1:
            raise InvalidInput("quantity must be at least 1")

        product = self._fetch_product(product_id)
        price = resolve_price(product, DEFAULT_PRICE_LIST)
        if price <= 0:
            logger.warning(f"Product {product_id} has no price in list {DEFAULT_PRICE_LIST}, using 0")

        with self.locked_cart(user_id, store_id) as cart:
            line = cart.find_item(product_id)
            if line is not None:
                logger.info(
                    f"Produkt {product_id} juz jest w koszyku {cart.id}, zwiekszam ilosc "
                    f"z {line.chargeable_quantity} o {quantity}"
                )
                # darmowe sztuki przeliczy orkiestrator
                line.quantity = line.chargeable_quantity + quantity
                line.free_quantity = 0
                line.is_free_item = False
                line.price = price
                # linia darmowa nie miala danych produktu
                line.category_code = _category_code(product)
                line.name = _product_name(product)
            else:
                logger.info(f"Dodaje nowy produkt {product_id} do koszyka {cart.id}")
                cart.items.append(
                    CartItem(
                        product_id=product_id,
                        quantity=quantity,
                        price=price,
                        category_code=_category_code(product),
                        name=_product_name(product),
                    )
                )
            return self.reconcile_and_save(cart, user_id)

    def remove_item(self, user_id: int, store_id: int, product_id: int) -> Dict[str, Any]:
        with self.locked_cart(user_id, store_id) as cart:
            line = cart.find_item(product_id)
            if line is None:
                raise NotFound(f"Product {product_id} is not in the cart")
            cart.items.remove(line)
            logger.info(f"Usunieto produkt {product_id} z koszyka {cart.id}")
            return self.reconcile_and_save(cart, user_id)

    def update_item(self, user_id: int, store_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity is None or quantity < 0:
            raise InvalidInput("quantity must be zero or positive")
        if quantity == 0:
            return self.remove_item(user_id, store_id, product_id)

        with self.locked_cart(user_id, store_id) as cart:
            line = cart.find_item(product_id)
            if line is None:
                raise NotFound(f"Product {product_id} is not in the cart")
            line.quantity = quantity
            line.free_quantity = 0
            line.is_free_item = False
            logger.info(f"Produkt {product_id} w koszyku {cart.id}: platna ilosc {quantity}")
            return self.reconcile_and_save(cart, user_id)

    def clear_cart(self, user_id: int, store_id: int) -> Dict[str, Any]:
        """Bez zwalniania uzyc - wyczyszczenie traktujemy jak porzucenie."""
        with self.locked_cart(user_id, store_id) as cart:
            cart.items = []
            cart.applied_promotions = []
            logger.info(f"Wyczyszczono koszyk {cart.id}")
            return self.save(cart)

    def checkout(self, user_id: int, store_id: int, order_id: int) -> Dict[str, Any]:
        with self.locked_cart(user_id, store_id) as cart:
            if not cart.items:
                raise EmptyCart("Cannot check out an empty cart")

            now = utcnow()
            self.orchestrator.reconcile(cart, user_id, now)

            for applied in cart.applied_promotions:
                promotion = self.promotions.get_promotion(applied.promotion_id)
                if promotion is None:
                    logger.warning(f"Promotion {applied.promotion_id} vanished before checkout of cart {cart.id}")
                    continue
                if applied.is_auto_applied:
                    try:
                        self.ledger.record(promotion, user_id, order_id, applied.discount_amount, now)
                    except NotEligible as e:
                        # limit wyczerpany w miedzyczasie, zamowienie idzie dalej
                        logger.warning(f"Auto promotion {promotion.id} not recorded for order {order_id}: {e.message}")
                else:
                    self.ledger.finalize(promotion, user_id, order_id)

            cart.status = CartStatus.CHECKED_OUT
            logger.info(f"Koszyk {cart.id} sfinalizowany, zamowienie {order_id}")
            return self.save(cart, now)
