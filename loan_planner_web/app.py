import logging
import os
from uuid import uuid4

import click
from flask import Flask, Response, abort, jsonify, render_template, request, session, redirect, url_for

from loan_planner.config import CHART_MAX_POINTS, DEFAULT_CURRENCY, PREVIEW_ROWS
from loan_planner.currency import CURRENCY_OPTIONS, CurrencyConverter
from loan_planner.main import build_inputs_from_options, run_with_baseline
from loan_planner.serialization import (
    chart_points,
    schedule_to_csv,
    snapshot_from_dict,
    snapshot_to_dict,
    summarize,
    yearly_breakdown,
)
from loan_planner_web.snapshot_store import create_store_from_env

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["ASSET_VERSION"] = os.environ.get("ASSET_VERSION", "1")
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
snapshot_store = create_store_from_env(os.environ.get("LOAN_SNAPSHOT_DATABASE_URL"))
converter = CurrencyConverter()

FORM_FIELDS = (
    "principal",
    "rate",
    "tenure",
    "start_date",
    "deferment",
    "prepayments",
    "monthly_prepayments",
    "interval_prepayments",
    "currency",
    "display_currency",
)


def _ensure_user_token() -> str:
    token = session.get("user_token")
    if not token:
        token = uuid4().hex
        session["user_token"] = token
        session.modified = True
    return token


def _normalized_currency(value: str | None, fallback: str = DEFAULT_CURRENCY) -> str:
    code = (value or fallback).upper()
    return code if code in CURRENCY_OPTIONS else fallback


def parse_form_list(value: str) -> list[str]:
    """Parse a newline separated list of entries from a form field.

    Commas stay inside entries so amounts may carry thousands separators
    (``12:50,000:tenure``). Returns a list of trimmed strings, skipping any
    empty entries.
    """
    if not value:
        return []
    parts = [p.strip() for p in value.splitlines()]
    return [p for p in parts if p]


def _form_to_inputs(form):
    principal = form.get("principal", "").strip()
    rate = float(form.get("rate", 0.0) or 0.0)
    tenure = int(form.get("tenure", 0) or 0)
    start_date = form.get("start_date", "").strip() or None
    deferment = int(form.get("deferment", 0) or 0)

    return build_inputs_from_options(
        principal,
        rate,
        tenure,
        start_date,
        deferment,
        tuple(parse_form_list(form.get("prepayments", ""))),
        tuple(parse_form_list(form.get("monthly_prepayments", ""))),
        tuple(parse_form_list(form.get("interval_prepayments", ""))),
    )


def _analysis(loan, rules, show_full_schedule: bool) -> dict:
    result, baseline, comparison = run_with_baseline(loan, rules)
    summary = summarize(result, comparison)
    rows = result.rows
    if not show_full_schedule and len(rows) > PREVIEW_ROWS:
        summary["truncated"] = len(rows) - PREVIEW_ROWS
        rows = rows[:PREVIEW_ROWS]
    return {
        "result": result,
        "summary": summary,
        "rows": rows,
        "chart": chart_points(result, baseline, CHART_MAX_POINTS),
        "yearly": yearly_breakdown(result),
    }


def _saved_inputs(user_token: str):
    snapshot = snapshot_store.load(user_token)
    if not snapshot:
        return None, {}
    loan, rules = snapshot_from_dict(snapshot)
    return (loan, rules), snapshot.get("form", {})


@app.template_filter("money")
def money_filter(amount, currency: str, display_currency: str) -> str:
    return converter.format_amount(converter.convert(amount, currency, display_currency), display_currency)


@app.route("/", methods=["GET", "POST"])
def index():
    analysis = None
    error = None
    form_values = {}
    show_full_schedule = False

    user_token = _ensure_user_token()

    if request.method == "POST":
        form_values = {name: request.form.get(name, "") for name in FORM_FIELDS}
        show_full_schedule = request.form.get("show_full_schedule") == "1"
        try:
            loan, rules = _form_to_inputs(request.form)
            analysis = _analysis(loan, rules, show_full_schedule)
            snapshot = snapshot_to_dict(loan, rules)
            snapshot["form"] = form_values
            snapshot_store.save(user_token, snapshot)
        except (ValueError, click.BadParameter) as exc:
            logger.info("Rejected loan form: %s", exc)
            error = exc.format_message() if isinstance(exc, click.BadParameter) else str(exc)
    else:
        saved, form_values = _saved_inputs(user_token)
        if saved:
            analysis = _analysis(*saved, show_full_schedule)

    currency = _normalized_currency(form_values.get("currency"))
    display_currency = _normalized_currency(form_values.get("display_currency"), currency)

    return render_template(
        "index.html",
        analysis=analysis,
        error=error,
        form=form_values,
        show_full_schedule=show_full_schedule,
        currency=currency,
        display_currency=display_currency,
        currency_options=CURRENCY_OPTIONS,
        asset_version=app.config["ASSET_VERSION"],
    )


@app.get("/export.csv")
def export_csv():
    saved, _ = _saved_inputs(session.get("user_token"))
    if not saved:
        abort(404)
    result, _, _ = run_with_baseline(*saved)
    return Response(
        schedule_to_csv(result),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=loan.csv"},
    )


@app.get("/api/schedule")
def schedule_api():
    saved, _ = _saved_inputs(session.get("user_token"))
    if not saved:
        abort(404)
    analysis = _analysis(*saved, show_full_schedule=True)
    return jsonify(summary=analysis["summary"], chart=analysis["chart"], yearly=analysis["yearly"])


@app.post("/snapshot/reset")
def reset_snapshot():
    snapshot_store.clear(session.get("user_token"))
    return redirect(url_for("index"))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    logger.info("Starting loan planner web app...")
    app.run(host="0.0.0.0", port=8710, debug=True)
