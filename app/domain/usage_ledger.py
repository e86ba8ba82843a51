# app/domain/usage_ledger.py
"""
Licznik uzyc promocji.

Reczna promocja rezerwuje uzycie przy nalozeniu (wpis bez order_id) i zwalnia
je przy zdjeciu. Checkout podbija rezerwacje numerem zamowienia.
Uzycie zmniejszamy TYLKO gdy usuwamy wpis bez zamowienia - w kazdej sciezce.

Store (repozytorium) robi to samo atomowo w bazie, obiekt Promotion w pamieci
jest aktualizowany rownolegle zeby dalsze sprawdzenia w tym samym requescie
widzialy nowy stan.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol

from app.domain.eligibility import EligibilityCheck, EligibilityFailure
from app.domain.errors import NotEligible
from app.domain.models import Promotion, UsageEntry, money, utcnow
from app.utils.logging import get_logger

logger = get_logger(__name__)


class UsageStore(Protocol):
    def try_increment_usage(self, promotion_id: int) -> bool: ...

    def decrement_usage(self, promotion_id: int) -> None: ...

    def add_usage(self, promotion_id: int, entry: UsageEntry) -> None: ...

    def delete_pending_usage(self, promotion_id: int, user_id: int) -> bool: ...

    def finalize_pending_usage(self, promotion_id: int, user_id: int, order_id: int) -> bool: ...


class UsageLedger:
    def __init__(self, store: Optional[UsageStore] = None):
        self.store = store

    def reserve(
        self,
        promotion: Promotion,
        user_id: int,
        discount_amount: Decimal,
        now: Optional[datetime] = None,
    ) -> UsageEntry:
        if self.store is not None:
            # warunkowy UPDATE, nie read-modify-write
            reserved = self.store.try_increment_usage(promotion.id)
        else:
            reserved = not promotion.max_usage or promotion.current_usage < promotion.max_usage

        if not reserved:
            raise NotEligible([
                EligibilityFailure(
                    EligibilityCheck.USAGE_LIMIT_EXCEEDED,
                    f"Promotion usage limit of {promotion.max_usage} reached",
                )
            ])

        entry = UsageEntry(user_id=user_id, order_id=None, used_at=now or utcnow(), discount_amount=money(discount_amount))
        if self.store is not None:
            self.store.add_usage(promotion.id, entry)

        promotion.current_usage += 1
        promotion.usage_history.append(entry)
        logger.info(f"Reserved usage of promotion {promotion.id} for user {user_id} ({promotion.current_usage} used)")
        return entry

    def release(self, promotion: Promotion, user_id: int) -> bool:
        entry = promotion.latest_pending_entry(user_id)
        if entry is None:
            logger.warning(f"No pending usage of promotion {promotion.id} for user {user_id}, nothing to release")
            return False

        if self.store is not None:
            self.store.delete_pending_usage(promotion.id, user_id)
            self.store.decrement_usage(promotion.id)

        promotion.usage_history.remove(entry)
        promotion.current_usage = max(0, promotion.current_usage - 1)
        logger.info(f"Released usage of promotion {promotion.id} for user {user_id} ({promotion.current_usage} used)")
        return True

    def finalize(self, promotion: Promotion, user_id: int, order_id: int) -> bool:
        entry = promotion.latest_pending_entry(user_id)
        if entry is None:
            logger.warning(f"No pending usage of promotion {promotion.id} for user {user_id} to finalize")
            return False

        if self.store is not None:
            self.store.finalize_pending_usage(promotion.id, user_id, order_id)

        entry.order_id = order_id
        logger.info(f"Promotion {promotion.id} usage finalized with order {order_id}")
        return True

    def record(
        self,
        promotion: Promotion,
        user_id: int,
        order_id: int,
        discount_amount: Decimal,
        now: Optional[datetime] = None,
    ) -> UsageEntry:
        """Rezerwacja + finalizacja naraz (promocje automatyczne przy checkout)."""
        entry = self.reserve(promotion, user_id, discount_amount, now)
        self.finalize(promotion, user_id, order_id)
        return entry
