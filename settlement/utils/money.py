"""Fixed-point money helpers"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from settlement.config import settings

Number = Union[Decimal, int, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Optional[Number]) -> Decimal:
    """Coerce DB/JSON values to Decimal; None counts as zero. Floats are rejected."""
    if value is None:
        return ZERO
    if isinstance(value, float):
        raise TypeError("Monetary values must not be floats")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def quantize(value: Number) -> Decimal:
    """Round to the configured currency unit (CLP: whole pesos), half up"""
    return to_decimal(value).quantize(settings.money_quantum, rounding=ROUND_HALF_UP)


def percentage_of(amount: Number, rate: Number) -> Decimal:
    """amount x rate / 100, rounded once"""
    return quantize(to_decimal(amount) * to_decimal(rate) / HUNDRED)


def compute_tax(subtotal: Number, tax_rate: Number) -> Decimal:
    return percentage_of(subtotal, tax_rate)


def money_sum(values: Iterable[Optional[Number]]) -> Decimal:
    return sum((to_decimal(v) for v in values), ZERO)
