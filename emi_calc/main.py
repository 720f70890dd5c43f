"""Command-line interface for the EMI schedule planner.

This module uses the ``click`` library to implement a multi-command
interface. Users seed a loan from amount, rate and tenure, layer per-month
disbursements, prepayments and rate changes on top (on the command line or
from a saved scenario file) and print or export the recomputed schedule.
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import click

from .data_models import LoanTerms, Override, OverrideSet, ScheduleMetrics, ScheduleResult
from .formatter import print_schedule, print_summary, summary_report
from .scenario import ScenarioFormatError, read_scenario, write_scenario
from .session import LoanSession
from .utils import add_months, parse_amount, parse_month_value, parse_year_month, to_decimal

MAX_PRINTED_ROWS = 120


def _bad_parameter(exc: Exception) -> click.BadParameter:
    return click.BadParameter(str(exc))


def parse_override_strings(
    disburse: Tuple[str, ...],
    prepay: Tuple[str, ...],
    rate_change: Tuple[str, ...],
) -> OverrideSet:
    """Merge ``MONTH:AMOUNT`` / ``MONTH:RATE`` option values into an override set.

    Repeating a month for the same kind of override sums amounts; for rate
    changes the last value wins.
    """
    overrides: OverrideSet = {}
    try:
        for item in disburse:
            month, raw = parse_month_value(item)
            entry = overrides.setdefault(month, Override())
            entry.disbursement += parse_amount(raw)
        for item in prepay:
            month, raw = parse_month_value(item)
            entry = overrides.setdefault(month, Override())
            entry.prepayment += parse_amount(raw)
        for item in rate_change:
            month, raw = parse_month_value(item)
            entry = overrides.setdefault(month, Override())
            entry.rate_change = to_decimal(raw.rstrip("%"))
    except ValueError as exc:
        raise _bad_parameter(exc)
    for month, entry in overrides.items():
        if entry.disbursement < 0 or entry.prepayment < 0:
            raise click.BadParameter(f"Amounts for month {month} cannot be negative")
        if entry.rate_change is not None and entry.rate_change < 0:
            raise click.BadParameter(f"Rate change for month {month} cannot be negative")
    return overrides


def build_session_from_options(
    principal: Optional[str],
    rate: Optional[str],
    term: Optional[int],
    disburse: Tuple[str, ...] = (),
    prepay: Tuple[str, ...] = (),
    rate_change: Tuple[str, ...] = (),
    scenario: Optional[str] = None,
) -> LoanSession:
    """Build a recomputed session from CLI options.

    A scenario file supplies defaults for the terms and overrides; explicit
    options take precedence, and command-line overrides replace the file's
    entry for the same month.
    """
    overrides: OverrideSet = {}
    scenario_id = None
    if scenario:
        try:
            loaded = read_scenario(Path(scenario))
        except (OSError, ScenarioFormatError) as exc:
            raise _bad_parameter(exc)
        scenario_id = loaded.id
        overrides = loaded.overrides()
        principal = principal or str(loaded.loan_amount)
        rate = rate if rate is not None else str(loaded.roi_start)
        term = term if term is not None else loaded.tenure_months
    missing = [name for name, value in (("principal", principal), ("rate", rate), ("term", term)) if value is None]
    if missing:
        raise click.BadParameter(f"Missing required option(s): {', '.join(missing)}")
    overrides.update(parse_override_strings(disburse, prepay, rate_change))

    try:
        terms = LoanTerms(
            principal=parse_amount(principal),
            annual_rate_percent=to_decimal(rate.strip().rstrip("%")),
            tenure_months=term,
        )
        session = LoanSession(terms, scenario_id=scenario_id)
    except ValueError as exc:
        raise _bad_parameter(exc)
    if overrides:
        session.replace_overrides(overrides)
    return session


def _start_month(start_date: Optional[str]) -> date:
    if not start_date:
        return date.today()
    try:
        return parse_year_month(start_date)
    except ValueError as exc:
        raise _bad_parameter(exc)


def export_to_json(path: Path, result: ScheduleResult, metrics: ScheduleMetrics, start: date) -> None:
    """Export schedule and metrics to a JSON file."""
    rows = []
    for row in result.rows:
        rows.append(
            {
                "month_index": row.month_index,
                "month": add_months(start, row.month_index).strftime("%Y-%m"),
                "emi": float(row.emi),
                "interest": float(row.interest),
                "principal": float(row.principal),
                "disbursement": float(row.disbursement),
                "prepayment": float(row.prepayment),
                "rate_change": None if row.rate_change is None else float(row.rate_change),
                "balance": float(row.balance),
            }
        )
    data: Dict[str, Any] = {
        "summary": metrics.as_dict(),
        "termination": result.termination,
        "diagnostics": result.diagnostics,
        "schedule": rows,
    }
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, result: ScheduleResult, start: date) -> None:
    """Export the schedule to a CSV file."""
    header = [
        "Sr No",
        "Month",
        "EMI",
        "Interest",
        "Principal",
        "Disbursement",
        "Prepayment",
        "ROI Change",
        "Balance",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerow(header)
        for row in result.rows:
            writer.writerow(
                [
                    row.month_index,
                    add_months(start, row.month_index).strftime("%d %b %Y"),
                    f"{row.emi:.2f}",
                    f"{row.interest:.2f}",
                    f"{row.principal:.2f}",
                    f"{row.disbursement:.2f}",
                    f"{row.prepayment:.2f}",
                    "" if row.rate_change is None else str(row.rate_change),
                    f"{row.balance:.2f}",
                ]
            )


def loan_options(func: Callable) -> Callable:
    """Attach the loan and override options shared by every command."""
    options = [
        click.option("--principal", "-p", "principal", help="Loan amount, e.g. 1000000, 10l or 1cr"),
        click.option("--rate", "-r", "rate", help="Starting annual interest rate (percent)"),
        click.option("--term", "-t", "term", type=int, help="Tenure in months"),
        click.option("--disburse", "disburse", multiple=True, help="Extra disbursement in MONTH:AMOUNT format"),
        click.option("--prepay", "prepay", multiple=True, help="Prepayment in MONTH:AMOUNT format"),
        click.option("--rate-change", "rate_change", multiple=True, help="New annual rate in MONTH:RATE format"),
        click.option("--scenario", "scenario", type=str, help="Load terms and overrides from a scenario .json file"),
        click.option("--start-date", "-s", "start_date", help="Month before the first EMI (YYYY-MM); defaults to today"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log recomputation details")
def cli(verbose: bool) -> None:
    """An EMI planner supporting disbursements, prepayments and rate changes."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.option("--save-scenario", "save_scenario", type=str, help="Save terms and overrides to a scenario .json file")
def schedule(
    principal: Optional[str],
    rate: Optional[str],
    term: Optional[int],
    disburse: Tuple[str, ...],
    prepay: Tuple[str, ...],
    rate_change: Tuple[str, ...],
    scenario: Optional[str],
    start_date: Optional[str],
    output: Optional[str],
    save_scenario: Optional[str],
) -> None:
    """Compute and print the full recomputed schedule."""
    session = build_session_from_options(principal, rate, term, disburse, prepay, rate_change, scenario)
    start = _start_month(start_date)
    metrics = session.metrics()
    if save_scenario:
        saved = session.to_scenario()
        write_scenario(Path(save_scenario), saved)
        click.echo(f"Scenario {saved.id} saved to {save_scenario}")
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, session.current, metrics, start)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, session.current, start)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return

    print_summary(metrics, session.completion_date(start))
    rows = session.current.rows
    # Limit schedule length printed to avoid flooding the terminal
    if len(rows) > MAX_PRINTED_ROWS:
        click.echo(f"Schedule has {len(rows)} rows; showing first {MAX_PRINTED_ROWS} rows.")
        rows = rows[:MAX_PRINTED_ROWS]
    print_schedule(rows, baseline_emi=session.baseline.initial_emi)
    for message in session.current.diagnostics:
        click.echo(f"Note: {message}", err=True)


@cli.command()
@loan_options
def summary(
    principal: Optional[str],
    rate: Optional[str],
    term: Optional[int],
    disburse: Tuple[str, ...],
    prepay: Tuple[str, ...],
    rate_change: Tuple[str, ...],
    scenario: Optional[str],
    start_date: Optional[str],
) -> None:
    """Compute and print only the summary metrics."""
    session = build_session_from_options(principal, rate, term, disburse, prepay, rate_change, scenario)
    print_summary(session.metrics(), session.completion_date(_start_month(start_date)))


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Write the report to this .txt file")
def report(
    principal: Optional[str],
    rate: Optional[str],
    term: Optional[int],
    disburse: Tuple[str, ...],
    prepay: Tuple[str, ...],
    rate_change: Tuple[str, ...],
    scenario: Optional[str],
    start_date: Optional[str],
    output: Optional[str],
) -> None:
    """Print a plain-text summary report of the recomputed schedule."""
    session = build_session_from_options(principal, rate, term, disburse, prepay, rate_change, scenario)
    text = summary_report(
        session.terms,
        session.metrics(),
        session.completion_date(_start_month(start_date)),
        scenario_id=session.scenario_id,
    )
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        click.echo(f"Report written to {output}")
    else:
        click.echo(text)


if __name__ == "__main__":
    cli()
