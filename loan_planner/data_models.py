"""Data models for the loan planner.

This module defines dataclasses representing the entities the amortization
engine works with: the loan itself, the prepayment rules a user configures,
the expanded per-month prepayment entries, the ledger rows of a simulated
schedule and the schedule result. All of them are frozen; a simulation
creates fresh instances on every call.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple, Union

from .config import MONTH_ABBREVIATIONS


class Strategy(Enum):
    """How a prepayment is absorbed into the rest of the schedule."""

    REDUCE_TENURE = "tenure"
    REDUCE_INSTALLMENT = "emi"

    @classmethod
    def parse(cls, value: str) -> "Strategy":
        """Parse user text (``"tenure"``, ``"emi"`` or ``"installment"``)."""
        text = value.strip().lower()
        if text in ("tenure", "term"):
            return cls.REDUCE_TENURE
        if text in ("emi", "installment"):
            return cls.REDUCE_INSTALLMENT
        raise ValueError(
            f"Prepayment strategy must be 'tenure' or 'emi'; got {value}"
        )

    @property
    def description(self) -> str:
        return "EMI reduced" if self is Strategy.REDUCE_INSTALLMENT else "Tenure reduced"


class Phase(Enum):
    DEFERMENT = "deferment"
    REPAYMENT = "repay"


# A calendar month (first day of the month) or a literal repayment-month index
Anchor = Union[date, int]


@dataclass(frozen=True)
class LoanInput:
    """Loan parameters for one simulation.

    Attributes
    ----------
    principal: Decimal
        Outstanding amount at the start of the loan.
    annual_rate: Decimal
        Annual nominal interest rate in percent (``Decimal("8.5")``).
    tenure_months: int
        Planned number of repayment months after any deferment.
    start_date: Optional[date]
        First month of the loan (deferment included). Only needed when
        prepayment rules are anchored to calendar months.
    deferment_months: int
        Months at the start of the loan during which nothing is paid and
        interest is capitalized.
    """

    principal: Decimal
    annual_rate: Decimal
    tenure_months: int
    start_date: Optional[date] = None
    deferment_months: int = 0

    def __post_init__(self) -> None:
        if not Decimal(self.principal).is_finite():
            raise ValueError("Principal must be a finite number")
        if not Decimal(self.annual_rate).is_finite():
            raise ValueError("Interest rate must be a finite number")
        if self.principal < 0:
            raise ValueError("Principal cannot be negative")
        if self.annual_rate < 0:
            raise ValueError("Interest rate cannot be negative")
        if self.tenure_months < 0:
            raise ValueError("Tenure cannot be negative")
        if self.deferment_months < 0:
            raise ValueError("Deferment months cannot be negative")


@dataclass(frozen=True)
class OncePrepayment:
    """A single prepayment in one repayment month."""

    anchor: Anchor
    amount: Decimal
    strategy: Strategy = Strategy.REDUCE_TENURE


@dataclass(frozen=True)
class MonthlyPrepayment:
    """A prepayment repeated every repayment month from ``start`` to ``end``.

    Missing anchors default to the first repayment month and the end of the
    simulation horizon respectively.
    """

    amount: Decimal
    strategy: Strategy = Strategy.REDUCE_TENURE
    start: Optional[Anchor] = None
    end: Optional[Anchor] = None


@dataclass(frozen=True)
class IntervalPrepayment:
    """A prepayment repeated every ``every_n_months`` repayment months."""

    amount: Decimal
    strategy: Strategy = Strategy.REDUCE_TENURE
    every_n_months: int = 3
    start: Optional[Anchor] = None
    end: Optional[Anchor] = None


PrepaymentRule = Union[OncePrepayment, MonthlyPrepayment, IntervalPrepayment]


@dataclass(frozen=True)
class PrepaymentEntry:
    """The prepayment that applies in one repayment month."""

    amount: Decimal
    strategy: Strategy
    label: str


@dataclass(frozen=True)
class LedgerRow:
    """One simulated month.

    ``repayment_month`` is 0 for deferment rows. ``installment_paid`` and
    ``principal_paid`` are zero during deferment, where the whole interest
    charge is added to the balance instead.
    """

    month_index: int
    repayment_month: int
    phase: Phase
    opening_balance: Decimal
    interest: Decimal
    installment_paid: Decimal
    principal_paid: Decimal
    prepayment_paid: Decimal
    closing_balance: Decimal
    current_installment: Decimal
    note: str = ""
    date: Optional[date] = None

    @property
    def label(self) -> str:
        if self.date is None:
            return f"M{self.month_index}"
        return f"{MONTH_ABBREVIATIONS[self.date.month - 1]} {self.date.year}"


@dataclass(frozen=True)
class ScheduleResult:
    """Outcome of one simulation.

    ``converged`` is False when the iteration cap was reached (or no
    repayment could be planned) while a balance was still owed.
    """

    rows: Tuple[LedgerRow, ...]
    deferment_months: int
    deferment_interest: Decimal
    total_interest: Decimal
    total_months: int
    repayment_months_used: int
    post_deferment_installment: Decimal
    final_installment: Decimal
    total_prepaid: Decimal
    iteration_cap: int
    converged: bool


@dataclass(frozen=True)
class ScheduleComparison:
    """Savings of a configured schedule against its baseline run."""

    interest_saved: Decimal
    months_saved: int
    baseline_total_interest: Decimal
    baseline_total_months: int
    baseline_installment: Decimal
