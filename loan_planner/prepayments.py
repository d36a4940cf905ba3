"""Expansion of prepayment rules into a per-month lookup table.

Users describe prepayments as rules (one-off, every month, every N months)
anchored either to calendar months or to repayment-month numbers. The
simulator only understands repayment-month indices, so the rules are expanded
here into a mapping ``{repayment_month: PrepaymentEntry}``.

Rules are applied in the order given. When two rules target the same month the
later one replaces the earlier one entirely; amounts are not summed.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, Optional

from .data_models import (
    Anchor,
    IntervalPrepayment,
    MonthlyPrepayment,
    OncePrepayment,
    PrepaymentEntry,
    PrepaymentRule,
)
from .utils import format_year_month, month_index_of

logger = logging.getLogger(__name__)

PrepaymentTable = Dict[int, PrepaymentEntry]


def _resolve(anchor: Optional[Anchor], loan_start: Optional[date], deferment_months: int) -> Optional[int]:
    """Return the repayment-month index of ``anchor``.

    ``None`` means the anchor is absent or is a calendar month that cannot be
    resolved because the loan has no start date.
    """
    if anchor is None:
        return None
    if isinstance(anchor, date):
        if loan_start is None:
            return None
        return month_index_of(anchor, loan_start, deferment_months)
    return int(anchor)


def _range_bounds(
    rule, horizon: int, loan_start: Optional[date], deferment_months: int
) -> tuple:
    start_index = _resolve(rule.start, loan_start, deferment_months)
    end_index = _resolve(rule.end, loan_start, deferment_months)
    start_index = 1 if start_index is None else max(1, start_index)
    end_index = horizon if end_index is None else min(horizon, end_index)
    return start_index, end_index


def expand_prepayments(
    rules: Iterable[PrepaymentRule],
    horizon: int,
    loan_start: Optional[date] = None,
    deferment_months: int = 0,
) -> PrepaymentTable:
    """Build the prepayment lookup table for a simulation.

    Parameters
    ----------
    rules: Iterable[PrepaymentRule]
        Prepayment rules in evaluation order.
    horizon: int
        Last repayment month the simulator may reach. Open-ended rules stop
        here.
    loan_start: Optional[date]
        First month of the loan. Without it calendar anchors are ignored.
    deferment_months: int
        Length of the deferment phase, used to shift calendar anchors.

    Returns
    -------
    PrepaymentTable
        At most one entry per repayment month.
    """
    table: PrepaymentTable = {}
    for rule in rules:
        if rule.amount is None or rule.amount <= 0:
            logger.debug("Ignoring prepayment rule with non-positive amount: %r", rule)
            continue

        if isinstance(rule, OncePrepayment):
            index = _resolve(rule.anchor, loan_start, deferment_months)
            if not index or index <= 0:
                logger.debug("Ignoring one-time prepayment with unresolved anchor: %r", rule)
                continue
            if isinstance(rule.anchor, date):
                label = format_year_month(rule.anchor)
            else:
                label = f"M{index}"
            table[index] = PrepaymentEntry(rule.amount, rule.strategy, label)

        elif isinstance(rule, MonthlyPrepayment):
            start_index, end_index = _range_bounds(rule, horizon, loan_start, deferment_months)
            for index in range(start_index, end_index + 1):
                table[index] = PrepaymentEntry(rule.amount, rule.strategy, "Every month")

        elif isinstance(rule, IntervalPrepayment):
            every = max(1, int(rule.every_n_months or 1))
            start_index, end_index = _range_bounds(rule, horizon, loan_start, deferment_months)
            for index in range(start_index, end_index + 1, every):
                table[index] = PrepaymentEntry(rule.amount, rule.strategy, f"Every {every}mo")

        else:
            raise TypeError(f"Unknown prepayment rule: {rule!r}")
    return table
