# backend/services/errors.py
from dataclasses import dataclass
from typing import List, Optional


class StorefrontError(Exception):
    """Base class for every error raised by the cart/checkout core."""

    def __init__(self, message: str, code: str = "storefront_error") -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ValidationError(StorefrontError):
    """Missing/invalid product id, quantity or address field. State is not mutated."""

    def __init__(self, message: str, fields: Optional[List[str]] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message, code="validation_error")
        self.fields = fields or []
        self.status_code = status_code


class InvalidLineError(ValidationError):
    """Raw cart line without a resolvable product identifier."""


class CapabilityConflictError(StorefrontError):
    def __init__(self, message: str, requested=None, selected=None) -> None:
        super().__init__(message, code="capability_conflict")
        self.requested = requested
        self.selected = selected


@dataclass(frozen=True)
class StockViolation:
    line_id: str
    product_id: str
    name: str
    reason: str  # below_minimum | above_maximum | out_of_stock | insufficient_stock | unavailable
    quantity: int
    limit: Optional[int] = None

    def describe(self) -> str:
        if self.reason == "below_minimum":
            return f'Minimum order quantity for "{self.name}" is {self.limit}. Current quantity: {self.quantity}'
        if self.reason == "above_maximum":
            return f'Maximum order quantity for "{self.name}" is {self.limit}. Current quantity: {self.quantity}'
        if self.reason == "insufficient_stock":
            return f'Only {self.limit} units of "{self.name}" are available in stock. Current quantity: {self.quantity}'
        if self.reason == "unavailable":
            return f'"{self.name}" is no longer available'
        return f'"{self.name}" is currently out of stock'


class StockViolationError(StorefrontError):
    def __init__(self, violations: List[StockViolation]) -> None:
        message = "; ".join(v.describe() for v in violations) or "Stock validation failed"
        super().__init__(message, code="stock_violation")
        self.violations = list(violations)

    @property
    def line_ids(self) -> List[str]:
        return [v.line_id for v in self.violations]


class SessionExpiredError(StorefrontError):
    def __init__(self, message: str = "Session expired. Please log in again.") -> None:
        super().__init__(message, code="session_expired")


class TransientNetworkError(StorefrontError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message, code="transient_network_error")
        self.status_code = status_code


class CheckoutStateError(StorefrontError):
    """Operation not allowed in the current checkout state."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="checkout_state")
