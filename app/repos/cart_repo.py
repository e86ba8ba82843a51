# app/repos/cart_repo.py
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.data.models.applied_promotion import AppliedPromotionModel
from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.domain.errors import ConflictError
from app.domain.models import (
    AppliedPromotion,
    Cart,
    CartItem,
    CartStatus,
    Discount,
    as_utc,
    utcnow,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)


class CartRepo:
    """
    Mapowanie CartModel <-> Cart (domena).
    Zapis z optimistic locking na polu version.
    """

    def __init__(self, db: Session):
        self.db = db

    # ---------- mapowanie ----------
    @staticmethod
    def to_domain(model: CartModel) -> Cart:
        return Cart(
            id=model.id,
            user_id=model.user_id,
            store_id=model.store_id,
            status=CartStatus(model.status),
            version=model.version,
            last_updated=as_utc(model.last_updated),
            expires_at=as_utc(model.expires_at),
            items=[
                CartItem(
                    product_id=i.product_id,
                    quantity=i.quantity,
                    price=Decimal(str(i.price)),
                    is_free_item=i.is_free_item,
                    free_quantity=i.free_quantity,
                    category_code=i.category_code,
                    name=i.name,
                )
                for i in model.items
            ],
            applied_promotions=[
                AppliedPromotion(
                    promotion_id=a.promotion_id,
                    applied_at=as_utc(a.applied_at),
                    discount_amount=Decimal(str(a.discount_amount)),
                    code=a.code,
                    is_auto_applied=a.is_auto_applied,
                    discounts=[Discount.from_dict(d) for d in (a.discounts or [])],
                )
                for a in model.applied_promotions
            ],
        )

    # ---------- odczyt ----------
    def get_cart(self, cart_id: int) -> Optional[Cart]:
        model = self.db.get(CartModel, cart_id)
        return self.to_domain(model) if model else None

    def get_active_cart(self, user_id: int, store_id: int) -> Optional[Cart]:
        model = (
            self.db.query(CartModel)
            .filter(
                CartModel.user_id == user_id,
                CartModel.store_id == store_id,
                CartModel.status == CartStatus.ACTIVE.value,
            )
            .order_by(CartModel.id.desc())
            .first()
        )
        return self.to_domain(model) if model else None

    # ---------- zapis ----------
    def create_cart(
        self,
        user_id: int,
        store_id: int,
        now: Optional[datetime] = None,
        retention: Optional[timedelta] = None,
    ) -> Cart:
        now = now or utcnow()
        model = CartModel(
            user_id=user_id,
            store_id=store_id,
            status=CartStatus.ACTIVE.value,
            version=1,
            last_updated=now,
            expires_at=now + retention if retention is not None else None,
            created_at=now,
        )
        self.db.add(model)
        self.db.flush()
        logger.info(f"Created cart {model.id} for user {user_id} in store {store_id}")
        return self.to_domain(model)

    def save_cart(self, cart: Cart) -> Cart:
        """
        update carts set version = v+1 where id = ? and version = v
        0 wierszy = ktos zapisal koszyk w miedzyczasie.
        """
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart.id, CartModel.version == cart.version)
            .values(
                version=cart.version + 1,
                status=cart.status.value,
                last_updated=cart.last_updated,
                expires_at=cart.expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(f"Version conflict on cart {cart.id} (version {cart.version})")
            raise ConflictError(f"Cart {cart.id} was modified concurrently, retry the operation")

        model = self.db.get(CartModel, cart.id, populate_existing=True)

        model.items = [
            CartItemModel(
                position=pos,
                product_id=i.product_id,
                name=i.name,
                category_code=i.category_code,
                quantity=i.quantity,
                price=i.price,
                is_free_item=i.is_free_item,
                free_quantity=i.free_quantity,
            )
            for pos, i in enumerate(cart.items)
        ]
        model.applied_promotions = [
            AppliedPromotionModel(
                position=pos,
                promotion_id=a.promotion_id,
                code=a.code,
                applied_at=a.applied_at,
                discount_amount=a.discount_amount,
                is_auto_applied=a.is_auto_applied,
                discounts=[d.to_dict() for d in a.discounts],
            )
            for pos, a in enumerate(cart.applied_promotions)
        ]
        self.db.flush()

        cart.version += 1
        return cart

    # ---------- utrzymanie (celery) ----------
    def expire_carts(self, now: Optional[datetime] = None) -> List[int]:
        now = now or utcnow()
        carts = (
            self.db.query(CartModel)
            .filter(
                CartModel.status == CartStatus.ACTIVE.value,
                CartModel.expires_at.is_not(None),
                CartModel.expires_at < now,
            )
            .all()
        )
        for cart in carts:
            cart.status = CartStatus.EXPIRED.value
            cart.version += 1
        self.db.flush()
        return [c.id for c in carts]

    def mark_abandoned(self, idle_since: datetime) -> List[int]:
        carts = (
            self.db.query(CartModel)
            .filter(
                CartModel.status == CartStatus.ACTIVE.value,
                CartModel.last_updated < idle_since,
                CartModel.items.any(),
            )
            .all()
        )
        for cart in carts:
            cart.status = CartStatus.ABANDONED.value
            cart.version += 1
        self.db.flush()
        return [c.id for c in carts]

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
