#app/api/routers/promotions.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.dependencies import to_http
from app.data.database import get_db
from app.domain.errors import CartError
from app.domain.models import PromotionType
from app.domain.schemas import PromotionCreate, PromotionOut
from app.services.promotion_catalog_service import PromotionCatalogService

router = APIRouter(prefix="/promotions", tags=["promotions"])


def get_service(db: Session):
    return PromotionCatalogService(db)


@router.post("", response_model=PromotionOut, status_code=201)
def create_promotion(payload: PromotionCreate, db: Session = Depends(get_db)):
    svc = get_service(db)
    try:
        return svc.create_promotion(payload)
    except CartError as e:
        raise to_http(e)


@router.get("", response_model=List[PromotionOut])
def list_promotions(
    store_id: Optional[int] = Query(None, gt=0),
    is_active: Optional[bool] = Query(None),
    type: Optional[PromotionType] = Query(None),
    db: Session = Depends(get_db),
):
    return get_service(db).list_promotions(store_id, is_active, type)


@router.get("/{promotion_id}", response_model=PromotionOut)
def get_promotion(promotion_id: int, db: Session = Depends(get_db)):
    svc = get_service(db)
    try:
        return svc.get_promotion(promotion_id)
    except CartError as e:
        raise to_http(e)


@router.post("/{promotion_id}/deactivate", response_model=PromotionOut)
def deactivate_promotion(promotion_id: int, db: Session = Depends(get_db)):
    svc = get_service(db)
    try:
        return svc.deactivate_promotion(promotion_id)
    except CartError as e:
        raise to_http(e)
