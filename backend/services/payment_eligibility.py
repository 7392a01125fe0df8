# backend/services/payment_eligibility.py
"""
Payment methods a checkout may use, intersected across every line.

Two advance signals are reported. ``allow_advance`` is the strict one (every
line allows advance); ``advance_any`` is the loose one (at least one line
does). The loose signal decides whether ADVANCE is offered, which is what the
storefront has always shown customers.
"""
import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from services.cart_line import AdvanceType, CartLine, PaymentCapabilities

logger = logging.getLogger(__name__)


class PaymentMethod(str, Enum):
    COD = "COD"
    ADVANCE = "ADVANCE_UPI_BALANCE_COD"
    CARD = "CARD"
    UPI = "UPI"

    @property
    def requires_redirect(self) -> bool:
        return self is not PaymentMethod.COD

    @classmethod
    def parse(cls, value: Any) -> Optional["PaymentMethod"]:
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().upper()
        for method in cls:
            if text in (method.name, method.value):
                return method
        return None


# Preference order used when a default has to be (re)selected
PREFERENCE = (PaymentMethod.COD, PaymentMethod.ADVANCE, PaymentMethod.CARD, PaymentMethod.UPI)


class PaymentSettings(BaseModel):
    """Store-wide method switches. Advance is derived from the lines only."""
    model_config = ConfigDict(frozen=True)

    cod: bool = True
    credit_card: bool = True
    upi: bool = True

    @classmethod
    def from_payload(cls, data: Optional[Mapping[str, Any]]) -> "PaymentSettings":
        if not isinstance(data, Mapping):
            return cls()

        def flag(*keys):
            for key in keys:
                if data.get(key) is not None:
                    return bool(data[key])
            return True

        return cls(
            cod=flag("cod", "COD"),
            credit_card=flag("creditCard", "credit_card", "card"),
            upi=flag("upi", "UPI"),
        )

    def to_payload(self) -> Dict[str, bool]:
        return {"cod": self.cod, "creditCard": self.credit_card, "upi": self.upi}


class PaymentEligibility(BaseModel):
    model_config = ConfigDict(frozen=True)

    allow_cod: bool = False
    allow_card: bool = False
    allow_upi: bool = False
    allow_advance: bool = False
    advance_any: bool = False
    upi_forced: bool = False
    advance_eligible: bool = False
    advance_amount: float = 0.0

    def methods(self) -> List[PaymentMethod]:
        flags = {
            PaymentMethod.COD: self.allow_cod,
            PaymentMethod.ADVANCE: self.advance_eligible,
            PaymentMethod.CARD: self.allow_card,
            PaymentMethod.UPI: self.allow_upi,
        }
        return [method for method in PREFERENCE if flags[method]]

    def allows(self, method: Any) -> bool:
        parsed = PaymentMethod.parse(method)
        return parsed is not None and parsed in self.methods()

    def restrict(self, settings: Optional[PaymentSettings]) -> "PaymentEligibility":
        if settings is None:
            return self
        return self.model_copy(update={
            "allow_cod": self.allow_cod and settings.cod,
            "allow_card": self.allow_card and settings.credit_card,
            "allow_upi": self.allow_upi and settings.upi,
        })


def line_advance(line: CartLine, capabilities: PaymentCapabilities) -> float:
    """Advance due for one line (all units). Missing or non-positive values give 0."""
    value = capabilities.advance_value
    if not capabilities.allow_advance or value is None or value <= 0:
        return 0.0
    if capabilities.advance_type is AdvanceType.PERCENT:
        per_unit = line.quote.final_price * value / 100
    elif capabilities.advance_type is AdvanceType.AMOUNT:
        per_unit = value
    else:
        return 0.0
    return per_unit * line.quantity


def resolve(
    lines: Iterable[CartLine],
    capabilities: Optional[Mapping[str, PaymentCapabilities]] = None,
) -> PaymentEligibility:
    lines = list(lines)
    if not lines:
        return PaymentEligibility()

    capabilities = capabilities or {}
    allow_cod = allow_card = allow_upi = allow_advance = True
    advance_any = False
    upi_forced = False
    per_line = []

    for line in lines:
        caps = capabilities.get(line.product_id) or line.payment_capabilities
        per_line.append((line, caps))
        allow_cod = allow_cod and caps.allow_cod
        allow_card = allow_card and caps.allow_card
        allow_upi = allow_upi and caps.allow_upi
        allow_advance = allow_advance and caps.allow_advance
        advance_any = advance_any or caps.allow_advance

    # Checked against each line's own flags, not the running intersection
    if any(caps.upi_only for _, caps in per_line):
        upi_forced = True
        allow_cod = allow_card = allow_advance = advance_any = False
        allow_upi = True
        advance_total = 0.0
    else:
        advance_total = sum(line_advance(line, caps) for line, caps in per_line)

    advance_amount = round(advance_total, 2)
    eligibility = PaymentEligibility(
        allow_cod=allow_cod,
        allow_card=allow_card,
        allow_upi=allow_upi,
        allow_advance=allow_advance,
        advance_any=advance_any,
        upi_forced=upi_forced,
        advance_eligible=(allow_advance or advance_any) and advance_amount > 0,
        advance_amount=advance_amount,
    )
    logger.debug("Resolved payment eligibility for %s lines: %s", len(lines), eligibility.methods())
    return eligibility
