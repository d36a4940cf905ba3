"""Core calculation engine for the loan planner.

This module implements the financial logic required to build reducing-balance
amortization schedules. It supports an initial deferment (moratorium) period
during which interest is capitalized, and prepayments that either shorten the
remaining tenure or lower the installment. Results are returned as an
immutable ``ScheduleResult``.

The engine is a pure function of its inputs. Comparing a configured loan with
its plain counterpart means running it twice, see ``baseline_for`` and
``compare_schedules``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import ROUND_CEILING, Decimal, getcontext
from typing import List, Optional, Sequence

from .config import BALANCE_EPSILON, SAFETY_MARGIN_MONTHS
from .data_models import (
    LedgerRow,
    LoanInput,
    Phase,
    PrepaymentRule,
    ScheduleComparison,
    ScheduleResult,
    Strategy,
)
from .prepayments import expand_prepayments
from .utils import add_months

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def monthly_rate(annual_rate: Decimal) -> Decimal:
    """Convert an annual percentage rate into a monthly decimal rate."""
    return Decimal(annual_rate) / Decimal(12) / Decimal(100)


def calculate_installment(principal: Decimal, annual_rate: Decimal, months: int) -> Decimal:
    """Return the equal monthly installment (EMI) for a loan.

    The formula is:

        payment = P * (i * (1 + i)^n) / ((1 + i)^n - 1)

    where ``P`` is the principal, ``i`` is the monthly interest rate and
    ``n`` is the number of payments. When the interest rate is zero, the
    payment simplifies to ``P / n``. A zero principal or a non-positive
    number of months yields zero.
    """
    if not principal or months <= 0:
        return ZERO
    rate = monthly_rate(annual_rate)
    if rate == 0:
        return principal / Decimal(months)
    factor = (1 + rate) ** months
    return principal * rate * factor / (factor - 1)


def calculate_tenure(principal: Decimal, annual_rate: Decimal, installment: Decimal) -> Optional[int]:
    """Return the number of months ``installment`` needs to repay ``principal``.

    Inverse of :func:`calculate_installment`:

        n = ceil(-ln(1 - P * i / E) / ln(1 + i))

    Returns ``None`` when the installment never repays the balance, i.e. it
    does not even cover one month of interest.
    """
    if principal <= 0:
        return 0
    if installment <= 0:
        return None
    rate = monthly_rate(annual_rate)
    if rate == 0:
        return int((principal / installment).to_integral_value(rounding=ROUND_CEILING))
    ratio = principal * rate / installment
    if ratio >= 1:
        return None
    months = -(1 - ratio).ln() / (1 + rate).ln()
    return int(months.to_integral_value(rounding=ROUND_CEILING))


def build_schedule(
    loan: LoanInput,
    prepayments: Sequence[PrepaymentRule] = (),
    *,
    extra_months: int = SAFETY_MARGIN_MONTHS,
) -> ScheduleResult:
    """Simulate the loan month by month.

    Parameters
    ----------
    loan: LoanInput
        Principal, rate, tenure, optional start date and deferment length.
    prepayments: Sequence[PrepaymentRule]
        Prepayment rules in evaluation order. Later rules win when two of
        them target the same repayment month.
    extra_months: int
        Repayment months allowed beyond the planned tenure before the
        simulation stops and reports that it did not converge.

    Returns
    -------
    ScheduleResult
        Deferment rows followed by repayment rows, plus totals. The function
        never raises on numeric edge cases; degenerate loans produce short or
        empty schedules.
    """
    rate = monthly_rate(loan.annual_rate)
    balance = Decimal(loan.principal)
    rows: List[LedgerRow] = []

    def row_date(month_index: int):
        if loan.start_date is None:
            return None
        return add_months(loan.start_date, month_index - 1)

    # Deferment: no payment, interest is capitalized
    deferment_interest = ZERO
    for month in range(1, loan.deferment_months + 1):
        opening = balance
        interest = balance * rate
        deferment_interest += interest
        balance += interest
        rows.append(
            LedgerRow(
                month_index=month,
                repayment_month=0,
                phase=Phase.DEFERMENT,
                opening_balance=opening,
                interest=interest,
                installment_paid=ZERO,
                principal_paid=ZERO,
                prepayment_paid=ZERO,
                closing_balance=balance,
                current_installment=ZERO,
                date=row_date(month),
            )
        )

    installment = calculate_installment(balance, loan.annual_rate, loan.tenure_months)
    post_deferment_installment = installment
    planned_tenure = loan.tenure_months
    iteration_cap = loan.tenure_months + extra_months
    table = expand_prepayments(prepayments, iteration_cap, loan.start_date, loan.deferment_months)

    total_interest = deferment_interest
    total_prepaid = ZERO
    repayment_months = 0

    # Without a tenure there is no installment to simulate with
    if loan.tenure_months > 0:
        repay_month = 1
        while balance > BALANCE_EPSILON and repay_month <= iteration_cap:
            month_index = loan.deferment_months + repay_month
            opening = balance
            interest = balance * rate
            principal_paid = min(installment - interest, balance)
            installment_paid = min(installment, balance + interest)
            balance -= principal_paid

            entry = table.get(repay_month)
            prepaid = ZERO
            if entry is not None and balance > BALANCE_EPSILON:
                prepaid = min(entry.amount, balance)
                balance -= prepaid
                if balance > BALANCE_EPSILON:
                    months_left = planned_tenure - repay_month
                    if months_left > 0:
                        if entry.strategy is Strategy.REDUCE_INSTALLMENT:
                            installment = calculate_installment(balance, loan.annual_rate, months_left)
                        else:
                            remaining = calculate_tenure(balance, loan.annual_rate, installment)
                            if remaining is None:
                                logger.debug(
                                    "Installment %s cannot repay %s; keeping tenure at month %d",
                                    installment, balance, repay_month,
                                )
                            else:
                                planned_tenure = repay_month + remaining

            closing = max(balance, ZERO)
            total_interest += interest
            total_prepaid += prepaid
            note = ""
            if prepaid > 0:
                note = f"Prepay {entry.label} - {entry.strategy.description}"
            rows.append(
                LedgerRow(
                    month_index=month_index,
                    repayment_month=repay_month,
                    phase=Phase.REPAYMENT,
                    opening_balance=opening,
                    interest=interest,
                    installment_paid=installment_paid,
                    principal_paid=principal_paid,
                    prepayment_paid=prepaid,
                    closing_balance=closing,
                    current_installment=installment,
                    note=note,
                    date=row_date(month_index),
                )
            )
            repayment_months = repay_month
            if closing < BALANCE_EPSILON:
                break
            repay_month += 1

    converged = balance < BALANCE_EPSILON
    if not converged:
        logger.warning(
            "Schedule did not converge: balance %.2f left after %d repayment months (cap %d)",
            balance, repayment_months, iteration_cap,
        )

    return ScheduleResult(
        rows=tuple(rows),
        deferment_months=loan.deferment_months,
        deferment_interest=deferment_interest,
        total_interest=total_interest,
        total_months=len(rows),
        repayment_months_used=repayment_months,
        post_deferment_installment=post_deferment_installment,
        final_installment=installment,
        total_prepaid=total_prepaid,
        iteration_cap=iteration_cap,
        converged=converged,
    )


def baseline_for(loan: LoanInput) -> LoanInput:
    """Return the same loan without deferment, for comparison runs."""
    return replace(loan, deferment_months=0)


def compare_schedules(result: ScheduleResult, baseline: ScheduleResult) -> ScheduleComparison:
    """Compute what a configured schedule saves against its baseline run."""
    return ScheduleComparison(
        interest_saved=baseline.total_interest - result.total_interest,
        months_saved=baseline.total_months - result.total_months,
        baseline_total_interest=baseline.total_interest,
        baseline_total_months=baseline.total_months,
        baseline_installment=baseline.post_deferment_installment,
    )
