"""Conversion of schedules and loan inputs to plain data.

Everything that leaves the engine for a file, a chart or the database goes
through here: JSON-safe dictionaries, CSV text with fixed two-decimal
formatting, downsampled chart series and the round trip of loan inputs and
prepayment rules used by the snapshot store.
"""

from __future__ import annotations

import csv
import io
import json
import math
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .config import CHART_MAX_POINTS
from .data_models import (
    IntervalPrepayment,
    LoanInput,
    MonthlyPrepayment,
    OncePrepayment,
    PrepaymentRule,
    ScheduleComparison,
    ScheduleResult,
    Strategy,
)
from .utils import format_year_month, parse_year_month

CSV_HEADER = [
    "Month",
    "Date",
    "Phase",
    "Opening",
    "Interest",
    "EMI",
    "Principal",
    "Prepay",
    "Closing",
    "Note",
]


def serialize_schedule(result: ScheduleResult) -> List[Dict[str, Any]]:
    """Convert ledger rows into JSON-serialisable dictionaries."""
    serialized = []
    for row in result.rows:
        serialized.append(
            {
                "month": row.month_index,
                "repayment_month": row.repayment_month,
                "date": row.label,
                "phase": row.phase.value,
                "opening": float(row.opening_balance),
                "interest": float(row.interest),
                "emi": float(row.installment_paid),
                "principal": float(row.principal_paid),
                "prepay": float(row.prepayment_paid),
                "closing": float(row.closing_balance),
                "current_emi": float(row.current_installment),
                "note": row.note,
            }
        )
    return serialized


def summarize(result: ScheduleResult, comparison: Optional[ScheduleComparison] = None) -> Dict[str, Any]:
    """Aggregate metrics of a schedule as a plain dictionary."""
    end_date = result.rows[-1].label if result.rows else None
    summary: Dict[str, Any] = {
        "installment": float(result.post_deferment_installment),
        "final_installment": float(result.final_installment),
        "total_interest": float(result.total_interest),
        "deferment_interest": float(result.deferment_interest),
        "deferment_months": result.deferment_months,
        "total_prepaid": float(result.total_prepaid),
        "total_months": result.total_months,
        "repayment_months": result.repayment_months_used,
        "end": end_date,
        "converged": result.converged,
    }
    if comparison is not None:
        summary["comparison"] = {
            "baseline_total_interest": float(comparison.baseline_total_interest),
            "baseline_total_months": comparison.baseline_total_months,
            "baseline_installment": float(comparison.baseline_installment),
            "interest_saved": float(comparison.interest_saved),
            "months_saved": comparison.months_saved,
        }
    return summary


def schedule_to_csv(result: ScheduleResult) -> str:
    """Render the schedule as CSV text with two-decimal amounts."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in result.rows:
        writer.writerow(
            [
                row.month_index,
                row.label,
                row.phase.value,
                f"{row.opening_balance:.2f}",
                f"{row.interest:.2f}",
                f"{row.installment_paid:.2f}",
                f"{row.principal_paid:.2f}",
                f"{row.prepayment_paid:.2f}",
                f"{row.closing_balance:.2f}",
                row.note,
            ]
        )
    return buffer.getvalue()


def export_to_csv(path: Path, result: ScheduleResult) -> None:
    """Export the schedule to a CSV file."""
    with path.open("w", newline="", encoding="utf-8") as f:
        f.write(schedule_to_csv(result))


def export_to_json(
    path: Path, result: ScheduleResult, comparison: Optional[ScheduleComparison] = None
) -> None:
    """Export schedule and summary to a JSON file."""
    data = {"summary": summarize(result, comparison), "schedule": serialize_schedule(result)}
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def chart_points(
    result: ScheduleResult, baseline: ScheduleResult, max_points: int = CHART_MAX_POINTS
) -> List[Dict[str, Any]]:
    """Downsample closing balances of a schedule and its baseline for a chart.

    At most ``max_points`` points are returned: evenly spaced rows of the
    configured schedule followed by its last row. Each point carries the
    baseline balance for the same global month (zero once the baseline is
    repaid).
    """
    rows = result.rows
    if not rows:
        return []
    max_points = max(1, max_points)
    last = len(rows) - 1
    if len(rows) <= max_points:
        indices = list(range(len(rows)))
    elif max_points == 1:
        indices = [last]
    else:
        step = math.ceil(last / (max_points - 1))
        indices = list(range(0, last, step)) + [last]
    points = []
    for i in indices:
        row = rows[i]
        baseline_row = baseline.rows[row.month_index - 1] if row.month_index <= len(baseline.rows) else None
        points.append(
            {
                "name": row.label,
                "optimised": round(float(row.closing_balance)),
                "original": round(float(baseline_row.closing_balance)) if baseline_row else 0,
            }
        )
    return points


def yearly_breakdown(result: ScheduleResult) -> List[Dict[str, Any]]:
    """Sum interest and principal per loan year (``Y1``, ``Y2``, ...)."""
    years: Dict[str, Dict[str, Any]] = {}
    for row in result.rows:
        key = f"Y{(row.month_index + 11) // 12}"
        bucket = years.setdefault(key, {"year": key, "interest": Decimal("0"), "principal": Decimal("0")})
        bucket["interest"] += row.interest
        bucket["principal"] += row.principal_paid
    return [
        {"year": b["year"], "interest": float(b["interest"]), "principal": float(b["principal"])}
        for b in years.values()
    ]


def _anchor_to_json(anchor):
    if anchor is None:
        return None
    if isinstance(anchor, date):
        return format_year_month(anchor)
    return int(anchor)


def _anchor_from_json(value):
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return parse_year_month(value) if "-" in value else int(value)
    return int(value)


def loan_to_dict(loan: LoanInput) -> Dict[str, Any]:
    return {
        "principal": str(loan.principal),
        "annual_rate": str(loan.annual_rate),
        "tenure_months": loan.tenure_months,
        "start_date": format_year_month(loan.start_date) if loan.start_date else None,
        "deferment_months": loan.deferment_months,
    }


def loan_from_dict(data: Dict[str, Any]) -> LoanInput:
    start = data.get("start_date")
    return LoanInput(
        principal=Decimal(str(data["principal"])),
        annual_rate=Decimal(str(data["annual_rate"])),
        tenure_months=int(data["tenure_months"]),
        start_date=parse_year_month(start) if start else None,
        deferment_months=int(data.get("deferment_months", 0)),
    )


def rule_to_dict(rule: PrepaymentRule) -> Dict[str, Any]:
    data: Dict[str, Any] = {"amount": str(rule.amount), "strategy": rule.strategy.value}
    if isinstance(rule, OncePrepayment):
        data.update(mode="once", anchor=_anchor_to_json(rule.anchor))
    elif isinstance(rule, MonthlyPrepayment):
        data.update(mode="monthly", start=_anchor_to_json(rule.start), end=_anchor_to_json(rule.end))
    elif isinstance(rule, IntervalPrepayment):
        data.update(
            mode="interval",
            every=rule.every_n_months,
            start=_anchor_to_json(rule.start),
            end=_anchor_to_json(rule.end),
        )
    else:
        raise TypeError(f"Unknown prepayment rule: {rule!r}")
    return data


def rule_from_dict(data: Dict[str, Any]) -> PrepaymentRule:
    amount = Decimal(str(data["amount"]))
    strategy = Strategy.parse(data.get("strategy", "tenure"))
    mode = data.get("mode", "once")
    if mode == "once":
        return OncePrepayment(anchor=_anchor_from_json(data["anchor"]), amount=amount, strategy=strategy)
    if mode == "monthly":
        return MonthlyPrepayment(
            amount=amount,
            strategy=strategy,
            start=_anchor_from_json(data.get("start")),
            end=_anchor_from_json(data.get("end")),
        )
    if mode == "interval":
        return IntervalPrepayment(
            amount=amount,
            strategy=strategy,
            every_n_months=int(data.get("every", 3)),
            start=_anchor_from_json(data.get("start")),
            end=_anchor_from_json(data.get("end")),
        )
    raise ValueError(f"Unknown prepayment mode: {mode}")


def snapshot_to_dict(loan: LoanInput, rules: Sequence[PrepaymentRule]) -> Dict[str, Any]:
    return {"loan": loan_to_dict(loan), "prepayments": [rule_to_dict(r) for r in rules]}


def snapshot_from_dict(data: Dict[str, Any]):
    """Return ``(LoanInput, [PrepaymentRule, ...])`` from a stored snapshot."""
    loan = loan_from_dict(data["loan"])
    rules = [rule_from_dict(r) for r in data.get("prepayments", [])]
    return loan, rules
