# app/domain/eligibility.py
"""
Czy promocja moze byc teraz naliczona na koszyk.

Kazdy warunek sprawdzany osobno, wynik mowi DLACZEGO promocja nie przeszla.
Kolejnosc bledow: inactive -> not started -> expired -> usage limit ->
per-user limit -> minimum order -> brak pasujacych produktow.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from app.domain.discounts import applicable_paid_lines
from app.domain.models import Cart, Promotion, utcnow


class EligibilityCheck(str, Enum):
    INACTIVE = "inactive"
    NOT_STARTED = "not_started"
    EXPIRED = "expired"
    USAGE_LIMIT_EXCEEDED = "usage_limit_exceeded"
    PER_USER_LIMIT_EXCEEDED = "per_user_limit_exceeded"
    MINIMUM_ORDER_NOT_MET = "minimum_order_not_met"
    NO_APPLICABLE_PRODUCTS = "no_applicable_products"


@dataclass(frozen=True)
class EligibilityFailure:
    check: EligibilityCheck
    message: str


@dataclass
class EligibilityResult:
    promotion_id: int
    failures: List[EligibilityFailure] = field(default_factory=list)

    @property
    def eligible(self) -> bool:
        return not self.failures

    @property
    def first_failure(self) -> Optional[EligibilityFailure]:
        return self.failures[0] if self.failures else None


def check_eligibility(
    promotion: Promotion,
    cart: Cart,
    user_id: int,
    now: Optional[datetime] = None,
    own_reservation: bool = False,
) -> EligibilityResult:
    """
    own_reservation=True przy ponownej walidacji promocji recznej juz
    nalozonej na ten koszyk - jej wlasna rezerwacja nie liczy sie do limitow.
    """
    now = now or utcnow()
    failures = []

    def fail(check: EligibilityCheck, message: str) -> None:
        failures.append(EligibilityFailure(check, message))

    # okno czasowe i aktywnosc
    if not promotion.is_active:
        fail(EligibilityCheck.INACTIVE, "Promotion is not active")
    if promotion.start_date > now:
        fail(EligibilityCheck.NOT_STARTED, f"Promotion has not started yet (starts {promotion.start_date.isoformat()})")
    if promotion.end_date < now:
        fail(EligibilityCheck.EXPIRED, f"Promotion has expired (ended {promotion.end_date.isoformat()})")

    own = 1 if own_reservation and promotion.latest_pending_entry(user_id) is not None else 0

    # limit globalny, 0 = bez limitu
    if promotion.max_usage and promotion.current_usage - own >= promotion.max_usage:
        fail(EligibilityCheck.USAGE_LIMIT_EXCEEDED, f"Promotion usage limit of {promotion.max_usage} reached")

    # limit na uzytkownika, 0 blokuje promocje
    if promotion.user_usage_count(user_id) - own >= promotion.max_usage_per_user:
        fail(
            EligibilityCheck.PER_USER_LIMIT_EXCEEDED,
            f"You have already used this promotion the maximum of {promotion.max_usage_per_user} time(s)",
        )

    # minimalna wartosc zamowienia - tylko platne sztuki
    total = cart.chargeable_total
    minimum = promotion.effective_min_order
    if total < minimum:
        fail(
            EligibilityCheck.MINIMUM_ORDER_NOT_MET,
            f"Minimum order amount of {minimum} not met (cart total {total})",
        )

    if not applicable_paid_lines(promotion, cart):
        fail(EligibilityCheck.NO_APPLICABLE_PRODUCTS, "No product in the cart qualifies for this promotion")

    return EligibilityResult(promotion_id=promotion.id, failures=failures)


def can_apply(
    promotion: Promotion,
    cart: Cart,
    user_id: int,
    now: Optional[datetime] = None,
    own_reservation: bool = False,
) -> bool:
    return check_eligibility(promotion, cart, user_id, now, own_reservation).eligible
