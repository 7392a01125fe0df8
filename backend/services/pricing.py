# backend/services/pricing.py
import math
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict


class TaxMode(str, Enum):
    INCLUSIVE = "inclusive"
    EXCLUSIVE = "exclusive"

    @classmethod
    def parse(cls, value: Any) -> "TaxMode":
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().lower() == "inclusive":
            return cls.INCLUSIVE
        return cls.EXCLUSIVE


class PriceQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    price_before_tax: float
    tax_amount: float
    final_price: float
    mrp: float
    discount_percent: int = 0


def to_amount(value: Any) -> float:
    """Coerce any input to a non-negative finite float; anything else becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def round_money(value: float) -> float:
    return round(value, 2)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def quote(
    base_price: Any,
    mrp: Any = None,
    tax_rate: Any = 0,
    tax_mode: Union[TaxMode, str, None] = TaxMode.EXCLUSIVE,
) -> PriceQuote:
    base = to_amount(base_price)
    rate = to_amount(tax_rate)
    list_price: Optional[float] = to_amount(mrp)
    if not list_price:
        list_price = base

    if TaxMode.parse(tax_mode) is TaxMode.INCLUSIVE:
        before_tax = base / (1 + rate / 100)
        tax = base - before_tax
        final = base
    else:
        before_tax = base
        tax = base * rate / 100
        final = base * (1 + rate / 100)

    final_price = round_money(final)
    discount = 0
    if list_price > final_price:
        discount = _round_half_up(100 * (list_price - final_price) / list_price)

    return PriceQuote(
        price_before_tax=round_money(before_tax),
        tax_amount=round_money(tax),
        final_price=final_price,
        mrp=round_money(list_price),
        discount_percent=discount,
    )
