"""Command‑line interface for the loan planner.

This module uses the ``click`` library to implement a multi‑command
interface. Users can compute full amortization schedules, view summaries
(including the savings against a plain baseline run) or compare two loan
scenarios. Results can be printed to the terminal or exported to JSON/CSV
files.
"""

from __future__ import annotations

import json
import logging
import shlex
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import click

from .config import DEFAULT_CURRENCY, PREVIEW_ROWS
from .currency import CURRENCY_OPTIONS, money_formatter
from .data_models import (
    IntervalPrepayment,
    LoanInput,
    MonthlyPrepayment,
    OncePrepayment,
    PrepaymentRule,
    Strategy,
)
from .engine import baseline_for, build_schedule, compare_schedules
from .formatter import print_comparison, print_schedule, print_summary
from .serialization import export_to_csv, export_to_json, summarize
from .utils import decimal_from_str, parse_anchor, parse_year_month


def parse_amount(value: str) -> float:
    """Parse a numeric string with optional suffixes.

    Accepts plain floats ("500000") and shorthand with ``k``/``m`` suffixes
    (e.g., "500k" meaning 500_000). Returns a float.
    """
    value = value.strip().lower()
    value = value.replace(",", "")
    factor = 1.0
    if value.endswith("k"):
        factor = 1_000.0
        value = value[:-1]
    elif value.endswith("m"):
        factor = 1_000_000.0
        value = value[:-1]
    try:
        return float(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def _amount(value: str):
    try:
        return decimal_from_str(str(parse_amount(value)))
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def _strategy(value: str) -> Strategy:
    try:
        return Strategy.parse(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def _optional_anchor(value: str):
    if not value.strip():
        return None
    try:
        return parse_anchor(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def parse_prepay_strings(values: Tuple[str, ...]) -> List[PrepaymentRule]:
    rules: List[PrepaymentRule] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 3:
            raise click.BadParameter(
                f"Prepayment must be in ANCHOR:AMOUNT:STRATEGY format; got {item}"
            )
        anchor_str, amt_str, typ = parts
        anchor = _optional_anchor(anchor_str)
        if anchor is None:
            raise click.BadParameter(f"Prepayment anchor missing in {item}")
        rules.append(OncePrepayment(anchor=anchor, amount=_amount(amt_str), strategy=_strategy(typ)))
    return rules


def parse_monthly_prepay_strings(values: Tuple[str, ...]) -> List[PrepaymentRule]:
    rules: List[PrepaymentRule] = []
    for item in values:
        parts = item.split(":")
        if not 2 <= len(parts) <= 4:
            raise click.BadParameter(
                f"Monthly prepayment must be in AMOUNT:STRATEGY[:START[:END]] format; got {item}"
            )
        parts += [""] * (4 - len(parts))
        amt_str, typ, start, end = parts
        rules.append(
            MonthlyPrepayment(
                amount=_amount(amt_str),
                strategy=_strategy(typ),
                start=_optional_anchor(start),
                end=_optional_anchor(end),
            )
        )
    return rules


def parse_interval_prepay_strings(values: Tuple[str, ...]) -> List[PrepaymentRule]:
    rules: List[PrepaymentRule] = []
    for item in values:
        parts = item.split(":")
        if not 3 <= len(parts) <= 5:
            raise click.BadParameter(
                f"Interval prepayment must be in EVERY:AMOUNT:STRATEGY[:START[:END]] format; got {item}"
            )
        parts += [""] * (5 - len(parts))
        every_str, amt_str, typ, start, end = parts
        try:
            every = int(every_str)
        except ValueError:
            raise click.BadParameter(f"Interval must be a whole number of months; got {every_str}")
        if every < 1:
            raise click.BadParameter("Interval must be at least one month")
        rules.append(
            IntervalPrepayment(
                amount=_amount(amt_str),
                strategy=_strategy(typ),
                every_n_months=every,
                start=_optional_anchor(start),
                end=_optional_anchor(end),
            )
        )
    return rules


def build_inputs_from_options(
    principal: str,
    rate: float,
    tenure: int,
    start_date: Optional[str] = None,
    deferment: int = 0,
    prepay: Tuple[str, ...] = (),
    monthly_prepay: Tuple[str, ...] = (),
    interval_prepay: Tuple[str, ...] = (),
) -> Tuple[LoanInput, List[PrepaymentRule]]:
    """Turn raw option values into a ``LoanInput`` and its prepayment rules.

    Rules keep the order one-time, monthly, interval; within each kind the
    order in which they were given is preserved.
    """
    start_dt = None
    if start_date:
        try:
            start_dt = parse_year_month(start_date)
        except ValueError as exc:
            raise click.BadParameter(str(exc))
    try:
        loan = LoanInput(
            principal=_amount(principal),
            annual_rate=decimal_from_str(str(rate)),
            tenure_months=tenure,
            start_date=start_dt,
            deferment_months=deferment or 0,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    rules = (
        parse_prepay_strings(prepay)
        + parse_monthly_prepay_strings(monthly_prepay)
        + parse_interval_prepay_strings(interval_prepay)
    )
    return loan, rules


def run_with_baseline(loan: LoanInput, rules: List[PrepaymentRule]):
    """Simulate the configured loan and its plain baseline."""
    result = build_schedule(loan, rules)
    baseline = build_schedule(baseline_for(loan))
    return result, baseline, compare_schedules(result, baseline)


def loan_options(func: Callable) -> Callable:
    """Attach the loan and prepayment options shared by the commands."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Outstanding principal (e.g. 500k)"),
        click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)"),
        click.option("--tenure", "-t", "tenure", required=True, type=int, help="Tenure in months"),
        click.option("--start-date", "-s", "start_date", help="First month of the loan (YYYY-MM)"),
        click.option("--deferment", "-d", "deferment", type=click.IntRange(min=0), default=0,
                     help="Deferment months with capitalized interest"),
        click.option("--prepay", "prepay", multiple=True,
                     help="One-time prepayment in ANCHOR:AMOUNT:STRATEGY format, anchor YYYY-MM or month number"),
        click.option("--monthly-prepay", "monthly_prepay", multiple=True,
                     help="Monthly prepayment in AMOUNT:STRATEGY[:START[:END]] format"),
        click.option("--interval-prepay", "interval_prepay", multiple=True,
                     help="Prepayment every N months in EVERY:AMOUNT:STRATEGY[:START[:END]] format"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


currency_option = click.option(
    "--currency", "currency", type=click.Choice(sorted(CURRENCY_OPTIONS)), default=DEFAULT_CURRENCY,
    help="Currency of the entered amounts",
)
display_currency_option = click.option(
    "--display-currency", "display_currency", type=click.Choice(sorted(CURRENCY_OPTIONS)),
    help="Convert amounts to this currency for display",
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log engine decisions")
def cli(verbose: bool) -> None:
    """A command‑line loan planner with deferment and prepayments."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.option("--all-rows", "all_rows", is_flag=True, help="Print every row instead of a preview")
def schedule(output: Optional[str], all_rows: bool, **options: Any) -> None:
    """Compute and print the full amortization schedule."""
    loan, rules = build_inputs_from_options(**options)
    result, _, comparison = run_with_baseline(loan, rules)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, result, comparison)
            click.echo(f"Schedule exported to {path}")
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, result)
            click.echo(f"Schedule exported to {path}")
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        return
    print_summary(summarize(result, comparison))
    rows = result.rows
    # Limit schedule length printed to avoid flooding the terminal
    if not all_rows and len(rows) > PREVIEW_ROWS:
        click.echo(f"Schedule has {len(rows)} rows; showing first {PREVIEW_ROWS} rows.")
        rows = rows[:PREVIEW_ROWS]
    print_schedule(rows)


@cli.command()
@loan_options
@currency_option
@display_currency_option
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(
    currency: str, display_currency: Optional[str], output: Optional[str], **options: Any
) -> None:
    """Compute and print the summary and the savings against the baseline."""
    loan, rules = build_inputs_from_options(**options)
    result, _, comparison = run_with_baseline(loan, rules)
    summary_data = summarize(result, comparison)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        with path.open("w", encoding="utf-8") as f:
            json.dump({"summary": summary_data}, f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(summary_data, money=money_formatter(currency, display_currency))


@click.command()
@loan_options
def _scenario(**options: Any) -> Dict[str, Any]:
    return options


def parse_scenario_opts(opts: str) -> Dict[str, Any]:
    """Parse a quoted scenario option string with the shared loan options."""
    tokens = shlex.split(opts)
    try:
        ctx = _scenario.make_context("scenario", tokens)
    except click.UsageError as exc:
        raise click.BadParameter(f"Invalid scenario '{opts}': {exc.format_message()}")
    return dict(ctx.params)


@cli.command()
@click.option("--scenario1", "scenario1", required=True, help="First scenario options quoted string")
@click.option("--scenario2", "scenario2", required=True, help="Second scenario options quoted string")
def compare(scenario1: str, scenario2: str) -> None:
    """Compare two loan scenarios.

    Scenarios are provided as quoted option strings, for example:

        loan-planner compare --scenario1 "-p 500k -r 8.5 -t 240" --scenario2 "-p 500k -r 8.5 -t 240 --prepay 12:50k:tenure"
    """
    summaries = []
    for opts in (scenario1, scenario2):
        loan, rules = build_inputs_from_options(**parse_scenario_opts(opts))
        summaries.append(summarize(build_schedule(loan, rules)))
    for label, data in zip(("Scenario1", "Scenario2"), summaries):
        if not data["converged"]:
            click.echo(f"Warning: {label} did not converge", err=True)
    print_comparison(summaries[0], summaries[1])


if __name__ == "__main__":
    cli()
