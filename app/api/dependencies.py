# app/api/dependencies.py
from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.errors import CartError
from app.services.cart_service import CartService
from app.services.lock_service import LockService
from app.services.product_client import ProductClient
from app.services.promotion_service import PromotionService
from app.utils.logging import get_logger

logger = get_logger(__name__)


def get_product_client() -> ProductClient:
    return ProductClient()


def get_lock_service() -> LockService:
    return LockService()


def get_cart_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
    lock_service: LockService = Depends(get_lock_service),
) -> CartService:
    return CartService(db=db, product_client=product_client, lock_service=lock_service)


def get_promotion_service(carts: CartService = Depends(get_cart_service)) -> PromotionService:
    return PromotionService(carts)


def to_http(e: CartError) -> HTTPException:
    """Blad domeny -> ustrukturyzowany blad HTTP {kind, message}."""
    logger.info(f"{e.kind}: {e.message}")
    return HTTPException(status_code=e.status_code, detail=e.to_dict())
