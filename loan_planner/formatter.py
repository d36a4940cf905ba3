"""Output helpers for the loan planner.

This module provides simple functions to render amortization schedules and
summaries in a tabular text format. We rely only on built‑in printing and
string formatting. Amounts are rendered through a ``money`` callable so the
caller decides on currency symbol and display conversion.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable

from .data_models import LedgerRow, Phase


def _plain(amount) -> str:
    return f"{amount:,.2f}"


def print_summary(summary: Dict[str, object], money: Callable = _plain) -> None:
    """Print a summary of loan metrics in a human‑readable format."""
    print("Summary")
    print("-" * 72)
    print(f"Installment (EMI)  : {money(summary['installment'])}")
    if summary["final_installment"] != summary["installment"]:
        print(f"Final installment  : {money(summary['final_installment'])}")
    print(f"Total interest     : {money(summary['total_interest'])}")
    if summary.get("deferment_months"):
        print(
            f"Deferment          : {summary['deferment_months']} months, "
            f"{money(summary['deferment_interest'])} capitalized"
        )
    if summary.get("total_prepaid"):
        print(f"Total prepaid      : {money(summary['total_prepaid'])}")
    print(f"Total months       : {summary['total_months']}")
    print(f"Repayment months   : {summary['repayment_months']}")
    if summary.get("end"):
        print(f"Ends               : {summary['end']}")
    if not summary.get("converged", True):
        print("WARNING            : schedule did not converge; balance still owed")
    comparison = summary.get("comparison")
    if comparison:
        print(f"Baseline interest  : {money(comparison['baseline_total_interest'])}")
        print(f"Interest saved     : {money(comparison['interest_saved'])}")
        if comparison.get("months_saved"):
            print(f"Tenure reduction   : {int(comparison['months_saved'])} months")
    print("-" * 72)


def print_schedule(rows: Iterable[LedgerRow], show_notes: bool = True) -> None:
    """Print the amortization schedule as a simple table.

    Parameters
    ----------
    rows: Iterable[LedgerRow]
        The ledger rows to print.
    show_notes: bool
        Whether to include the prepayment ``Note`` column.
    """
    headers = [
        "Month",
        "Date",
        "Phase",
        "Opening",
        "Interest",
        "EMI",
        "Principal",
        "Prepay",
        "Closing",
    ]
    if show_notes:
        headers.append("Note")
    print("\t".join(headers))
    for row in rows:
        cells = [
            str(row.month_index),
            row.label,
            "Defer" if row.phase is Phase.DEFERMENT else "Repay",
            f"{row.opening_balance:.2f}",
            f"{row.interest:.2f}",
            f"{row.installment_paid:.2f}",
            f"{row.principal_paid:.2f}",
            f"{row.prepayment_paid:.2f}",
            f"{row.closing_balance:.2f}",
        ]
        if show_notes:
            cells.append(row.note)
        print("\t".join(cells))


def print_comparison(s1: Dict[str, object], s2: Dict[str, object]) -> None:
    """Print a comparison of two loan summaries side by side.

    The difference column is scenario2 - scenario1; a negative difference
    means the second scenario is cheaper or shorter.
    """
    print("Comparison")
    print("=" * 72)
    keys = [
        "installment",
        "total_interest",
        "total_prepaid",
        "total_months",
    ]
    print(f"{'Metric':20s} {'Scenario1':>15s} {'Scenario2':>15s} {'Difference':>15s}")
    for key in keys:
        v1 = s1.get(key)
        v2 = s2.get(key)
        diff = v2 - v1
        print(f"{key:20s} {v1:15.2f} {v2:15.2f} {diff:15.2f}")
    print("=" * 72)
