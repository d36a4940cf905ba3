"""Tests for the schedule simulator: deferment, prepayments and edge cases."""
import logging
from datetime import date
from decimal import Decimal

import pytest

import loan_planner.engine as engine
from loan_planner.data_models import (
    IntervalPrepayment,
    LoanInput,
    MonthlyPrepayment,
    OncePrepayment,
    Phase,
    Strategy,
)
from loan_planner.engine import (
    baseline_for,
    build_schedule,
    calculate_installment,
    compare_schedules,
    monthly_rate,
)

EPS = Decimal("0.01")


def _make_loan(**overrides) -> LoanInput:
    defaults = dict(
        principal=Decimal("500000"),
        annual_rate=Decimal("8.5"),
        tenure_months=240,
    )
    defaults.update(overrides)
    return LoanInput(**defaults)


# --- Plain amortization ---


def test_reference_loan_without_prepayments():
    result = build_schedule(_make_loan())
    emi = calculate_installment(Decimal("500000"), Decimal("8.5"), 240)
    assert result.converged
    assert result.total_months == 240
    assert result.repayment_months_used == 240
    assert float(result.post_deferment_installment) == pytest.approx(4339.12, abs=0.05)
    assert float(result.total_interest) == pytest.approx(float(emi * 240 - 500000), abs=0.05)
    assert float(result.total_interest) == pytest.approx(541388, abs=5)
    assert result.rows[-1].closing_balance < EPS


@pytest.mark.parametrize(
    "principal,rate,tenure",
    [("500000", "8.5", 240), ("1000", "0", 7), ("25000", "19.99", 36), ("750000", "3.1", 360)],
)
def test_principal_paid_sums_to_principal(principal, rate, tenure):
    result = build_schedule(_make_loan(principal=Decimal(principal), annual_rate=Decimal(rate), tenure_months=tenure))
    paid = sum(row.principal_paid for row in result.rows)
    assert float(paid) == pytest.approx(float(principal), abs=0.01)
    assert result.rows[-1].closing_balance < EPS
    assert result.total_months == tenure


def test_zero_rate_loan():
    result = build_schedule(_make_loan(principal=Decimal("12000"), annual_rate=Decimal("0"), tenure_months=12))
    assert result.post_deferment_installment == Decimal("1000")
    assert result.total_interest == 0
    assert result.total_months == 12
    assert all(row.installment_paid == Decimal("1000") for row in result.rows)


def test_simulation_is_deterministic():
    loan = _make_loan(start_date=date(2025, 1, 1), deferment_months=2)
    rules = [OncePrepayment(12, Decimal("50000")), MonthlyPrepayment(Decimal("250"), Strategy.REDUCE_INSTALLMENT)]
    assert build_schedule(loan, rules) == build_schedule(loan, rules)


# --- Deferment ---


def test_deferment_capitalizes_interest():
    loan = _make_loan(deferment_months=3)
    result = build_schedule(loan)
    baseline = build_schedule(baseline_for(loan))
    rate = monthly_rate(Decimal("8.5"))

    deferred = result.rows[:3]
    assert [row.phase for row in deferred] == [Phase.DEFERMENT] * 3
    assert all(row.installment_paid == 0 and row.principal_paid == 0 for row in deferred)
    assert all(row.repayment_month == 0 for row in deferred)
    expected = Decimal("500000") * (1 + rate) ** 3
    assert abs(deferred[-1].closing_balance - expected) < EPS
    assert abs(result.deferment_interest - (expected - Decimal("500000"))) < EPS

    assert result.rows[3].phase is Phase.REPAYMENT
    assert result.rows[3].repayment_month == 1
    assert result.rows[3].month_index == 4
    assert result.post_deferment_installment > baseline.post_deferment_installment
    assert result.total_months == 243
    assert result.total_interest > baseline.total_interest


def test_deferment_interest_counts_towards_total():
    result = build_schedule(_make_loan(deferment_months=2))
    repayment_interest = sum(r.interest for r in result.rows if r.phase is Phase.REPAYMENT)
    assert abs(result.total_interest - (result.deferment_interest + repayment_interest)) < EPS


# --- Prepayments ---


def test_reduce_tenure_prepayment_shortens_loan():
    loan = _make_loan()
    baseline = build_schedule(loan)
    result = build_schedule(loan, [OncePrepayment(12, Decimal("50000"), Strategy.REDUCE_TENURE)])

    assert result.converged
    assert result.total_months < 240
    assert result.total_interest < baseline.total_interest
    assert result.final_installment == baseline.post_deferment_installment
    row = result.rows[11]
    assert row.prepayment_paid == Decimal("50000")
    assert row.note.startswith("Prepay M12")


def test_reduce_installment_prepayment_lowers_emi():
    loan = _make_loan()
    baseline = build_schedule(loan)
    result = build_schedule(loan, [OncePrepayment(12, Decimal("50000"), Strategy.REDUCE_INSTALLMENT)])

    assert result.converged
    assert result.final_installment < baseline.post_deferment_installment
    assert all(row.current_installment <= baseline.post_deferment_installment for row in result.rows)
    assert result.total_months <= 240
    assert result.total_interest < baseline.total_interest
    assert "EMI reduced" in result.rows[11].note


def test_recurring_prepayments_never_lengthen_loan():
    loan = _make_loan()
    baseline = build_schedule(loan)
    rules = [
        MonthlyPrepayment(Decimal("500"), Strategy.REDUCE_TENURE, start=6, end=60),
        IntervalPrepayment(Decimal("10000"), Strategy.REDUCE_TENURE, every_n_months=12, start=12),
    ]
    result = build_schedule(loan, rules)
    assert result.converged
    assert result.total_months < baseline.total_months
    assert result.total_prepaid > 0


def test_over_prepayment_is_clamped():
    result = build_schedule(_make_loan(), [OncePrepayment(1, Decimal("1000000000"))])
    row = result.rows[0]
    assert len(result.rows) == 1
    assert row.prepayment_paid == row.opening_balance - row.principal_paid
    assert row.closing_balance == 0
    assert result.total_prepaid == row.prepayment_paid
    assert result.converged


def test_prepayment_after_payoff_is_not_applied():
    loan = _make_loan(principal=Decimal("12000"), annual_rate=Decimal("0"), tenure_months=12)
    result = build_schedule(loan, [OncePrepayment(24, Decimal("500"))])
    assert result.total_months == 12
    assert result.total_prepaid == 0


def test_calendar_anchor_and_row_dates():
    loan = _make_loan(start_date=date(2025, 1, 1), deferment_months=2)
    result = build_schedule(loan, [OncePrepayment(date(2025, 6, 1), Decimal("20000"))])
    assert result.rows[0].label == "Jan 2025"
    assert result.rows[2].label == "Mar 2025"
    prepaid = [row for row in result.rows if row.prepayment_paid > 0]
    assert len(prepaid) == 1
    assert prepaid[0].repayment_month == 4
    assert prepaid[0].date == date(2025, 6, 1)


def test_rows_without_start_date_are_labelled_by_month():
    result = build_schedule(_make_loan(tenure_months=12, deferment_months=1))
    assert result.rows[0].label == "M1"
    assert result.rows[-1].label == "M13"


def test_failed_tenure_inversion_keeps_schedule_going(monkeypatch):
    monkeypatch.setattr(engine, "calculate_tenure", lambda *args: None)
    loan = _make_loan()
    result = build_schedule(loan, [OncePrepayment(12, Decimal("50000"), Strategy.REDUCE_TENURE)])
    assert result.converged
    assert result.total_months < 240


# --- Degenerate inputs ---


def test_zero_principal_gives_empty_schedule():
    result = build_schedule(_make_loan(principal=Decimal("0")))
    assert result.rows == ()
    assert result.converged
    assert result.total_interest == 0


def test_zero_tenure_is_flagged_as_not_converged():
    result = build_schedule(_make_loan(tenure_months=0, deferment_months=2))
    assert len(result.rows) == 2
    assert not result.converged
    assert result.repayment_months_used == 0


def test_iteration_cap_is_reported():
    result = build_schedule(_make_loan(tenure_months=12), extra_months=5)
    assert result.iteration_cap == 17


def test_schedule_hitting_iteration_cap_is_not_converged(caplog):
    loan = LoanInput(Decimal("1000"), Decimal("5"), 12)
    with caplog.at_level(logging.WARNING, logger="loan_planner.engine"):
        result = build_schedule(loan, extra_months=-6)
    assert not result.converged
    assert result.iteration_cap == 6
    assert len(result.rows) == 6
    assert result.repayment_months_used == 6
    assert result.rows[-1].closing_balance > EPS
    assert "did not converge" in caplog.text


def test_negative_inputs_are_rejected():
    with pytest.raises(ValueError):
        _make_loan(principal=Decimal("-1"))
    with pytest.raises(ValueError):
        _make_loan(deferment_months=-1)


@pytest.mark.parametrize(
    "overrides",
    [
        {"principal": Decimal("NaN")},
        {"principal": Decimal("Infinity")},
        {"annual_rate": Decimal("NaN")},
        {"annual_rate": Decimal("-Infinity")},
    ],
)
def test_non_finite_inputs_are_rejected(overrides):
    with pytest.raises(ValueError, match="finite"):
        _make_loan(**overrides)


# --- Comparison ---


def test_compare_schedules_reports_savings():
    loan = _make_loan()
    result = build_schedule(loan, [OncePrepayment(12, Decimal("50000"))])
    baseline = build_schedule(baseline_for(loan))
    comparison = compare_schedules(result, baseline)
    assert comparison.months_saved == 240 - result.total_months
    assert comparison.months_saved > 0
    assert comparison.interest_saved == baseline.total_interest - result.total_interest
    assert comparison.baseline_total_months == 240


def test_baseline_drops_deferment_only():
    loan = _make_loan(start_date=date(2025, 1, 1), deferment_months=6)
    base = baseline_for(loan)
    assert base.deferment_months == 0
    assert base.start_date == loan.start_date
    assert base.principal == loan.principal
