"""Tests for the closed-form installment and tenure formulas."""
from decimal import Decimal

import pytest

from loan_planner.engine import calculate_installment, calculate_tenure, monthly_rate


def test_monthly_rate_from_annual_percent():
    assert monthly_rate(Decimal("12")) == Decimal("0.01")


# --- Installment ---


def test_installment_known_value():
    # 500k at 8.5% over 20 years
    emi = calculate_installment(Decimal("500000"), Decimal("8.5"), 240)
    assert float(emi) == pytest.approx(4339.12, abs=0.05)


def test_installment_zero_rate_is_simple_division():
    assert calculate_installment(Decimal("12000"), Decimal("0"), 12) == Decimal("1000")


def test_installment_zero_principal_or_months():
    assert calculate_installment(Decimal("0"), Decimal("8.5"), 240) == 0
    assert calculate_installment(Decimal("1000"), Decimal("8.5"), 0) == 0


def test_installment_repays_exactly_over_term():
    principal = Decimal("100000")
    rate = monthly_rate(Decimal("6"))
    emi = calculate_installment(principal, Decimal("6"), 36)
    balance = principal
    for _ in range(36):
        balance = balance * (1 + rate) - emi
    assert abs(balance) < Decimal("0.000001")


# --- Tenure ---


def test_tenure_for_slightly_higher_installment():
    assert calculate_tenure(Decimal("500000"), Decimal("8.5"), Decimal("4340")) == 240


def test_tenure_zero_rate_rounds_up():
    assert calculate_tenure(Decimal("1000"), Decimal("0"), Decimal("300")) == 4


def test_tenure_zero_principal():
    assert calculate_tenure(Decimal("0"), Decimal("8.5"), Decimal("100")) == 0


def test_tenure_never_converges_when_interest_not_covered():
    # 1% a month on 100k is exactly 1000 of interest
    assert calculate_tenure(Decimal("100000"), Decimal("12"), Decimal("1000")) is None
    assert calculate_tenure(Decimal("100000"), Decimal("12"), Decimal("999")) is None


def test_tenure_non_positive_installment():
    assert calculate_tenure(Decimal("1000"), Decimal("0"), Decimal("0")) is None
