"""Unit tests for operator commission schemes."""

from decimal import Decimal

from settlement.models.enums import CommissionType
from settlement.models.lookups import Operator
from settlement.services.commission_schemes import CommissionScheme


def test_percentage_scheme():
    scheme = CommissionScheme(CommissionType.PERCENTAGE, percentage=Decimal("10"))
    assert scheme.compute(Decimal("178500")) == Decimal("17850")


def test_fixed_scheme_ignores_value():
    scheme = CommissionScheme(CommissionType.FIXED, fixed_amount=Decimal("25000"))
    assert scheme.compute(Decimal("1")) == Decimal("25000")
    assert scheme.compute(Decimal("1000000")) == Decimal("25000")


def test_mixed_scheme_adds_percentage_and_fixed():
    scheme = CommissionScheme(CommissionType.MIXED, percentage=Decimal("5"), fixed_amount=Decimal("10000"))
    assert scheme.compute(Decimal("200000")) == Decimal("20000")


def test_tiered_scheme_uses_highest_reached_tier():
    scheme = CommissionScheme(
        CommissionType.TIERED,
        tiers=((Decimal("0"), Decimal("5")), (Decimal("100000"), Decimal("8")), (Decimal("500000"), Decimal("10"))),
    )
    assert scheme.compute(Decimal("50000")) == Decimal("2500")
    assert scheme.compute(Decimal("100000")) == Decimal("8000")
    assert scheme.compute(Decimal("600000")) == Decimal("60000")


def test_operator_without_scheme_earns_nothing():
    assert CommissionScheme(None).compute(Decimal("150000")) == Decimal("0")


def test_from_operator_sorts_tiers():
    operator = Operator(
        full_name="Ana",
        commission_type=CommissionType.TIERED,
        commission_tiers=[{"threshold": "500000", "percentage": "10"}, {"threshold": "0", "percentage": "4"}],
    )
    scheme = CommissionScheme.from_operator(operator)
    assert scheme.tiers == ((Decimal("0"), Decimal("4")), (Decimal("500000"), Decimal("10")))
    assert scheme.compute(Decimal("100000")) == Decimal("4000")
