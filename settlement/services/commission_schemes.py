"""Operator commission schemes (percentage, fixed, mixed, tiered)"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple

from settlement.models.enums import CommissionType
from settlement.models.lookups import Operator
from settlement.utils.money import ZERO, percentage_of, quantize, to_decimal


@dataclass(frozen=True)
class CommissionScheme:
    commission_type: Optional[CommissionType]
    percentage: Decimal = ZERO
    fixed_amount: Decimal = ZERO
    # (threshold, percentage) sorted by threshold
    tiers: Tuple[Tuple[Decimal, Decimal], ...] = field(default_factory=tuple)

    @classmethod
    def from_operator(cls, operator: Operator) -> "CommissionScheme":
        tiers: List[Tuple[Decimal, Decimal]] = [
            (to_decimal(t["threshold"]), to_decimal(t["percentage"]))
            for t in (operator.commission_tiers or [])
        ]
        return cls(
            commission_type=operator.commission_type,
            percentage=to_decimal(operator.commission_percentage),
            fixed_amount=to_decimal(operator.commission_fixed_amount),
            tiers=tuple(sorted(tiers)),
        )

    def tier_rate(self, service_value: Decimal) -> Decimal:
        """Rate of the highest tier whose threshold the value reaches"""
        rate = ZERO
        for threshold, percentage in self.tiers:
            if service_value >= threshold:
                rate = percentage
        return rate

    def compute(self, service_value) -> Decimal:
        value = to_decimal(service_value)
        if self.commission_type == CommissionType.PERCENTAGE:
            return percentage_of(value, self.percentage)
        if self.commission_type == CommissionType.FIXED:
            return quantize(self.fixed_amount)
        if self.commission_type == CommissionType.MIXED:
            return percentage_of(value, self.percentage) + quantize(self.fixed_amount)
        if self.commission_type == CommissionType.TIERED:
            return percentage_of(value, self.tier_rate(value))
        # Operator without a scheme earns nothing unless a manual amount is set
        return ZERO
