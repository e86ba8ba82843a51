#app/api/routers/carts.py
from typing import List

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_cart_service, get_promotion_service, to_http
from app.domain.errors import CartError
from app.domain.schemas import (
    ApplicablePromotionOut,
    ApplyPromotionIn,
    CartOut,
    CheckoutIn,
    ItemIn,
    ItemUpdateIn,
    PromotionPreviewOut,
)
from app.services.cart_service import CartService
from app.services.promotion_service import PromotionService

router = APIRouter(prefix="/carts", tags=["carts"])


@router.get("", response_model=CartOut)
def get_cart(
    user_id: int = Query(..., gt=0),
    store_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.get_cart(user_id, store_id)
    except CartError as e:
        raise to_http(e)


@router.delete("", response_model=CartOut)
def clear_cart(
    user_id: int = Query(..., gt=0),
    store_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.clear_cart(user_id, store_id)
    except CartError as e:
        raise to_http(e)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    user_id: int = Query(..., gt=0),
    store_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.add_item(user_id, store_id, payload.product_id, payload.quantity)
    except CartError as e:
        raise to_http(e)


@router.put("/items/{product_id}", response_model=CartOut)
def update_item(
    product_id: int,
    payload: ItemUpdateIn,
    user_id: int = Query(..., gt=0),
    store_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.update_item(user_id, store_id, product_id, payload.quantity)
    except CartError as e:
        raise to_http(e)


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: int,
    user_id: int = Query(..., gt=0),
    store_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.remove_item(user_id, store_id, product_id)
    except CartError as e:
        raise to_http(e)


@router.post("/checkout", response_model=CartOut)
def checkout(
    payload: CheckoutIn,
    user_id: int = Query(..., gt=0),
    store_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.checkout(user_id, store_id, payload.order_id)
    except CartError as e:
        raise to_http(e)


# =====================================================
# PROMOCJE NA KOSZYKU
# =====================================================
@router.post("/promotions", response_model=CartOut)
def apply_promotion(
    payload: ApplyPromotionIn,
    user_id: int = Query(..., gt=0),
    store_id: int = Query(..., gt=0),
    svc: PromotionService = Depends(get_promotion_service),
):
    try:
        return svc.apply_promotion(user_id, store_id, payload.reference)
    except CartError as e:
        raise to_http(e)


@router.get("/promotions/applicable", response_model=List[ApplicablePromotionOut])
def get_applicable_promotions(
    user_id: int = Query(..., gt=0),
    store_id: int = Query(..., gt=0),
    svc: PromotionService = Depends(get_promotion_service),
):
    try:
        return svc.get_applicable_promotions(user_id, store_id)
    except CartError as e:
        raise to_http(e)


@router.post("/promotions/preview", response_model=PromotionPreviewOut)
def preview_promotion(
    payload: ApplyPromotionIn,
    user_id: int = Query(..., gt=0),
    store_id: int = Query(..., gt=0),
    svc: PromotionService = Depends(get_promotion_service),
):
    try:
        return svc.preview_promotion(user_id, store_id, payload.reference)
    except CartError as e:
        raise to_http(e)


@router.delete("/promotions", response_model=CartOut)
def remove_all_promotions(
    user_id: int = Query(..., gt=0),
    store_id: int = Query(..., gt=0),
    svc: PromotionService = Depends(get_promotion_service),
):
    try:
        return svc.remove_all_promotions(user_id, store_id)
    except CartError as e:
        raise to_http(e)


@router.delete("/promotions/{promotion_id}", response_model=CartOut)
def remove_promotion(
    promotion_id: int,
    user_id: int = Query(..., gt=0),
    store_id: int = Query(..., gt=0),
    svc: PromotionService = Depends(get_promotion_service),
):
    try:
        return svc.remove_promotion(user_id, store_id, promotion_id)
    except CartError as e:
        raise to_http(e)
