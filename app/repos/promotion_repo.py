# app/repos/promotion_repo.py
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from app.data.models.promotion import PromotionModel
from app.data.models.promotion_usage import PromotionUsageModel
from app.domain.models import Promotion, PromotionType, UsageEntry, as_utc, rule_from_dict, rule_to_dict
from app.utils.logging import get_logger

logger = get_logger(__name__)


class PromotionRepo:
    """
    Katalog promocji (dla orkiestratora) + store licznika uzyc (dla UsageLedger).
    Licznik zmieniany warunkowym UPDATE, nigdy read-modify-write.
    """

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def to_domain(model: PromotionModel) -> Promotion:
        return Promotion(
            id=model.id,
            name=model.name,
            description=model.description,
            code=model.code,
            store_id=model.store_id,
            rule=rule_from_dict(model.type, model.rule),
            start_date=as_utc(model.start_date),
            end_date=as_utc(model.end_date),
            is_active=model.is_active,
            max_usage=model.max_usage,
            current_usage=model.current_usage,
            max_usage_per_user=model.max_usage_per_user,
            min_order_amount=Decimal(str(model.min_order_amount)),
            priority=model.priority,
            auto_apply=model.auto_apply,
            requires_code=model.requires_code,
            applicable_products=list(model.applicable_products or []),
            applicable_categories=list(model.applicable_categories or []),
            excluded_products=list(model.excluded_products or []),
            excluded_categories=list(model.excluded_categories or []),
            usage_history=[
                UsageEntry(
                    user_id=u.user_id,
                    order_id=u.order_id,
                    used_at=as_utc(u.used_at),
                    discount_amount=Decimal(str(u.discount_amount)),
                )
                for u in model.usages
            ],
        )

    # ---------- katalog ----------
    def get_promotion(self, promotion_id: int) -> Optional[Promotion]:
        model = self.db.get(PromotionModel, promotion_id)
        return self.to_domain(model) if model else None

    def get_promotions(self, promotion_ids: Iterable[int]) -> Dict[int, Promotion]:
        ids = list(set(promotion_ids))
        if not ids:
            return {}
        models = self.db.query(PromotionModel).filter(PromotionModel.id.in_(ids)).all()
        return {m.id: self.to_domain(m) for m in models}

    def get_by_code(self, code: str, store_id: int) -> Optional[Promotion]:
        model = (
            self.db.query(PromotionModel)
            .filter(PromotionModel.code == code.strip().upper(), PromotionModel.store_id == store_id)
            .first()
        )
        return self.to_domain(model) if model else None

    def find_active_promotions(self, store_id: int, now: datetime) -> List[Promotion]:
        models = (
            self.db.query(PromotionModel)
            .filter(
                PromotionModel.store_id == store_id,
                PromotionModel.is_active.is_(True),
                PromotionModel.start_date <= now,
                PromotionModel.end_date >= now,
            )
            .order_by(PromotionModel.priority.desc(), PromotionModel.id)
            .all()
        )
        return [self.to_domain(m) for m in models]

    def list_promotions(
        self,
        store_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        promotion_type: Optional[PromotionType] = None,
    ) -> List[Promotion]:
        query = self.db.query(PromotionModel)
        if store_id is not None:
            query = query.filter(PromotionModel.store_id == store_id)
        if is_active is not None:
            query = query.filter(PromotionModel.is_active.is_(is_active))
        if promotion_type is not None:
            query = query.filter(PromotionModel.type == PromotionType(promotion_type).value)
        return [self.to_domain(m) for m in query.order_by(PromotionModel.id).all()]

    def code_exists(self, code: str) -> bool:
        return (
            self.db.query(PromotionModel.id).filter(PromotionModel.code == code.strip().upper()).first()
            is not None
        )

    def create(self, promotion: Promotion) -> Promotion:
        model = PromotionModel(
            store_id=promotion.store_id,
            name=promotion.name,
            description=promotion.description,
            code=promotion.code.strip().upper() if promotion.code else None,
            type=promotion.type.value,
            rule=rule_to_dict(promotion.rule),
            applicable_products=list(promotion.applicable_products),
            applicable_categories=[str(c) for c in promotion.applicable_categories],
            excluded_products=list(promotion.excluded_products),
            excluded_categories=[str(c) for c in promotion.excluded_categories],
            start_date=promotion.start_date,
            end_date=promotion.end_date,
            max_usage=promotion.max_usage,
            current_usage=0,
            max_usage_per_user=promotion.max_usage_per_user,
            min_order_amount=promotion.min_order_amount,
            priority=promotion.priority,
            is_active=promotion.is_active,
            auto_apply=promotion.auto_apply,
            requires_code=promotion.requires_code,
        )
        self.db.add(model)
        self.db.flush()
        logger.info(f"Created promotion {model.id} ({model.type}) for store {model.store_id}")
        return self.to_domain(model)

    def set_active(self, promotion_id: int, is_active: bool) -> Optional[Promotion]:
        model = self.db.get(PromotionModel, promotion_id)
        if model is None:
            return None
        model.is_active = is_active
        self.db.flush()
        return self.to_domain(model)

    # ---------- licznik uzyc (UsageStore) ----------
    def try_increment_usage(self, promotion_id: int) -> bool:
        # update ... set current_usage = current_usage + 1
        # where id = ? and (max_usage = 0 or current_usage < max_usage)
        result = self.db.execute(
            update(PromotionModel)
            .where(
                PromotionModel.id == promotion_id,
                or_(PromotionModel.max_usage == 0, PromotionModel.current_usage < PromotionModel.max_usage),
            )
            .values(current_usage=PromotionModel.current_usage + 1)
            .execution_options(synchronize_session=False)
        )
        self._expire_counter(promotion_id)
        return result.rowcount == 1

    def decrement_usage(self, promotion_id: int) -> None:
        self.db.execute(
            update(PromotionModel)
            .where(PromotionModel.id == promotion_id, PromotionModel.current_usage > 0)
            .values(current_usage=PromotionModel.current_usage - 1)
            .execution_options(synchronize_session=False)
        )
        self._expire_counter(promotion_id)

    def _expire_counter(self, promotion_id: int) -> None:
        model = self.db.identity_map.get(self.db.identity_key(PromotionModel, promotion_id))
        if model is not None:
            self.db.expire(model, ["current_usage"])

    def add_usage(self, promotion_id: int, entry: UsageEntry) -> None:
        self.db.add(
            PromotionUsageModel(
                promotion_id=promotion_id,
                user_id=entry.user_id,
                order_id=entry.order_id,
                used_at=entry.used_at,
                discount_amount=entry.discount_amount,
            )
        )
        self.db.flush()
        self._expire_usages(promotion_id)

    def _pending_usage(self, promotion_id: int, user_id: int) -> Optional[PromotionUsageModel]:
        return (
            self.db.query(PromotionUsageModel)
            .filter(
                PromotionUsageModel.promotion_id == promotion_id,
                PromotionUsageModel.user_id == user_id,
                PromotionUsageModel.order_id.is_(None),
            )
            .order_by(PromotionUsageModel.used_at.desc(), PromotionUsageModel.id.desc())
            .first()
        )

    def delete_pending_usage(self, promotion_id: int, user_id: int) -> bool:
        usage = self._pending_usage(promotion_id, user_id)
        if usage is None:
            return False
        self.db.delete(usage)
        self.db.flush()
        self._expire_usages(promotion_id)
        return True

    def finalize_pending_usage(self, promotion_id: int, user_id: int, order_id: int) -> bool:
        usage = self._pending_usage(promotion_id, user_id)
        if usage is None:
            return False
        usage.order_id = order_id
        self.db.flush()
        return True

    def _expire_usages(self, promotion_id: int) -> None:
        model = self.db.identity_map.get(self.db.identity_key(PromotionModel, promotion_id))
        if model is not None:
            self.db.expire(model, ["usages"])

    def reconcile_usage_counters(self) -> Dict[int, int]:
        """current_usage := liczba wierszy historii. Zwraca poprawione {id: nowa wartosc}."""
        counts = dict(
            self.db.query(PromotionUsageModel.promotion_id, func.count(PromotionUsageModel.id))
            .group_by(PromotionUsageModel.promotion_id)
            .all()
        )
        fixed = {}
        for model in self.db.query(PromotionModel).all():
            expected = counts.get(model.id, 0)
            if model.current_usage != expected:
                logger.warning(
                    f"Promotion {model.id}: current_usage {model.current_usage} != {expected} usage rows, fixing"
                )
                model.current_usage = expected
                fixed[model.id] = expected
        self.db.flush()
        return fixed
