from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.domain.errors import InvalidInput, NotFound
from app.domain.models import Promotion, PromotionType, rule_to_dict
from app.domain.schemas import PromotionCreate
from app.repos.promotion_repo import PromotionRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


def promotion_to_dict(promotion: Promotion) -> Dict[str, Any]:
    return {
        "id": promotion.id,
        "name": promotion.name,
        "description": promotion.description,
        "code": promotion.code,
        "store_id": promotion.store_id,
        "type": promotion.type.value,
        "rule": rule_to_dict(promotion.rule),
        "applicable_products": promotion.applicable_products,
        "applicable_categories": promotion.applicable_categories,
        "excluded_products": promotion.excluded_products,
        "excluded_categories": promotion.excluded_categories,
        "start_date": promotion.start_date,
        "end_date": promotion.end_date,
        "max_usage": promotion.max_usage,
        "current_usage": promotion.current_usage,
        "max_usage_per_user": promotion.max_usage_per_user,
        "min_order_amount": promotion.min_order_amount,
        "priority": promotion.priority,
        "is_active": promotion.is_active,
        "auto_apply": promotion.auto_apply,
        "requires_code": promotion.requires_code,
        "usage_history": [
            {
                "user_id": u.user_id,
                "order_id": u.order_id,
                "used_at": u.used_at,
                "discount_amount": u.discount_amount,
            }
            for u in promotion.usage_history
        ],
    }


class PromotionCatalogService:
    """Zarzadzanie katalogiem promocji (tworzenie, odczyt, wylaczanie)."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PromotionRepo(db)

    def create_promotion(self, payload: PromotionCreate) -> Dict[str, Any]:
        if payload.code and self.repo.code_exists(payload.code):
            raise InvalidInput(f"Promotion code {payload.code.strip().upper()} already exists")
        if payload.requires_code and not payload.code:
            raise InvalidInput("A promotion that requires a code must define one")

        created = self.repo.create(
            Promotion(
                id=0,
                name=payload.name,
                description=payload.description,
                code=payload.code,
                store_id=payload.store_id,
                rule=payload.rule.to_rule(),
                start_date=payload.start_date,
                end_date=payload.end_date,
                is_active=payload.is_active,
                max_usage=payload.max_usage,
                max_usage_per_user=payload.max_usage_per_user,
                min_order_amount=payload.min_order_amount,
                priority=payload.priority,
                auto_apply=payload.auto_apply,
                requires_code=payload.requires_code,
                applicable_products=payload.applicable_products,
                applicable_categories=payload.applicable_categories,
                excluded_products=payload.excluded_products,
                excluded_categories=payload.excluded_categories,
            )
        )
        self.db.commit()
        return promotion_to_dict(created)

    def get_promotion(self, promotion_id: int) -> Dict[str, Any]:
        promotion = self.repo.get_promotion(promotion_id)
        if promotion is None:
            raise NotFound(f"Promotion {promotion_id} not found")
        return promotion_to_dict(promotion)

    def list_promotions(
        self,
        store_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        promotion_type: Optional[PromotionType] = None,
    ) -> List[Dict[str, Any]]:
        return [promotion_to_dict(p) for p in self.repo.list_promotions(store_id, is_active, promotion_type)]

    def deactivate_promotion(self, promotion_id: int) -> Dict[str, Any]:
        promotion = self.repo.set_active(promotion_id, False)
        if promotion is None:
            raise NotFound(f"Promotion {promotion_id} not found")
        self.db.commit()
        logger.info(f"Promotion {promotion_id} deactivated")
        return promotion_to_dict(promotion)
