# app/domain/errors.py
from typing import Any, Dict, List, Sequence


class CartError(Exception):
    """
    Bazowy blad domeny koszyka.
    kind + message trafiaja do klienta jako ustrukturyzowany blad (nie 500).
    """

    kind = "CartError"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class InvalidInput(CartError):
    kind = "InvalidInput"
    status_code = 400


class NotFound(CartError):
    kind = "NotFound"
    status_code = 404


class EmptyCart(CartError):
    kind = "EmptyCart"
    status_code = 400

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class AlreadyApplied(CartError):
    kind = "AlreadyApplied"
    status_code = 409


class NotEligible(CartError):
    """
    Promocja nie przeszla sprawdzenia. failures sa w kolejnosci priorytetu,
    message opisuje pierwszy z nich.
    """

    kind = "NotEligible"
    status_code = 422

    def __init__(self, failures: Sequence[Any]):
        self.failures = list(failures)
        first = self.failures[0].message if self.failures else "Promotion cannot be applied"
        super().__init__(first)

    @property
    def checks(self) -> List[str]:
        return [f.check.value for f in self.failures]

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["checks"] = self.checks
        return data


class NoApplicableDiscount(CartError):
    kind = "NoApplicableDiscount"
    status_code = 422

    def __init__(self, rule_type: str, inspected_lines: Sequence[str]):
        self.rule_type = rule_type
        self.inspected_lines = list(inspected_lines)
        lines = "; ".join(self.inspected_lines) if self.inspected_lines else "none"
        super().__init__(
            f"{rule_type} promotion produced no discount for this cart (inspected lines: {lines})"
        )


class ConflictError(CartError):
    kind = "Conflict"
    status_code = 409


class UpstreamError(CartError):
    kind = "UpstreamError"
    status_code = 502
