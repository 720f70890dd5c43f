"""Output helpers for the EMI schedule planner.

This module renders schedules and metrics as text: a metrics summary, a
tab-separated schedule table and a plain-text summary report. Amounts use
Indian digit grouping (``12,34,567.89``) and can be spelled out in words
using lakh and crore.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

import click

from .data_models import LoanTerms, ScheduleMetrics, ScheduleRow

ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
]
TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

INDIAN_UNITS = (
    (10_000_000, "Crore"),
    (100_000, "Lakh"),
    (1_000, "Thousand"),
    (100, "Hundred"),
)


def format_inr(value: Optional[Decimal]) -> str:
    """Format an amount with Indian digit grouping and at most two decimals.

    Trailing fractional zeros are dropped, so ``100000`` renders as
    ``1,00,000`` and ``20038.054`` as ``20,038.05``. ``None`` renders as
    ``-``.
    """
    if value is None:
        return "-"
    amount = Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):.2f}".partition(".")
    fraction = fraction.rstrip("0")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups: List[str] = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}{whole}.{fraction}" if fraction else f"{sign}{whole}"


def _words_below_thousand(n: int) -> str:
    if n < 20:
        return ONES[n]
    if n < 100:
        return TENS[n // 10] + (" " + ONES[n % 10] if n % 10 else "")
    return ONES[n // 100] + " Hundred" + (" " + _words_below_thousand(n % 100) if n % 100 else "")


def amount_in_words(value: Decimal) -> str:
    """Spell out the whole part of an amount using crore, lakh and thousand."""
    n = int(Decimal(value).to_integral_value(rounding=ROUND_DOWN))
    if n <= 0:
        return "Zero"
    words: List[str] = []
    for size, unit in INDIAN_UNITS:
        count, n = divmod(n, size)
        if count >= 1000:
            # only crores can reach here
            words.append(f"{amount_in_words(Decimal(count))} {unit}")
        elif count:
            words.append(f"{_words_below_thousand(count)} {unit}")
    if n:
        words.append(_words_below_thousand(n))
    return " ".join(words)


def print_summary(metrics: ScheduleMetrics, completion: Optional[date] = None) -> None:
    """Print schedule metrics in a human-readable format."""
    click.echo("Summary")
    click.echo("-" * 72)
    click.echo(f"Current EMI        : {format_inr(metrics.current_emi)}")
    click.echo(f"Current rate       : {metrics.current_rate_percent}%")
    click.echo(f"Total interest     : {format_inr(metrics.total_interest)}")
    click.echo(f"Baseline interest  : {format_inr(metrics.baseline_total_interest)}")
    click.echo(
        f"Interest saved     : {format_inr(metrics.interest_saved)}"
        f" (+{metrics.interest_saved_percent:.1f}% vs original)"
    )
    if metrics.total_disbursements:
        click.echo(f"Total disbursed    : {format_inr(metrics.total_disbursements)}")
    if metrics.total_prepayments:
        click.echo(f"Total prepaid      : {format_inr(metrics.total_prepayments)}")
    click.echo(f"Completion month   : {metrics.completion_month}")
    if completion is not None:
        click.echo(f"Completion date    : {completion:%b %Y}")
    if metrics.tenure_change:
        label = "extended" if metrics.tenure_change > 0 else "reduced"
        click.echo(f"Tenure change      : {abs(metrics.tenure_change)} months ({label})")
    click.echo("-" * 72)


def print_schedule(rows: Iterable[ScheduleRow], baseline_emi: Optional[Decimal] = None) -> None:
    """Print the schedule as a tab-separated table.

    When ``baseline_emi`` is given, months whose EMI differs from it are
    marked with ``*``.
    """
    headers = ["Month", "EMI", "Interest", "Principal", "Disbursed", "Prepaid", "ROI", "Balance"]
    click.echo("\t".join(headers))
    for row in rows:
        emi = format_inr(row.emi)
        if baseline_emi is not None and row.emi != baseline_emi:
            emi += "*"
        click.echo(
            "\t".join(
                [
                    str(row.month_index),
                    emi,
                    format_inr(row.interest),
                    format_inr(row.principal),
                    format_inr(row.disbursement),
                    format_inr(row.prepayment),
                    "" if row.rate_change is None else f"{row.rate_change}",
                    format_inr(row.balance),
                ]
            )
        )


def summary_report(
    terms: LoanTerms,
    metrics: ScheduleMetrics,
    completion: date,
    scenario_id: Optional[str] = None,
    generated: Optional[datetime] = None,
) -> str:
    """Return a plain-text summary report for a recomputed schedule."""
    generated = generated or datetime.now()
    label = "(extended)" if metrics.completion_month > terms.tenure_months else "(reduced)"
    monthly_saving = metrics.interest_saved / terms.tenure_months if terms.tenure_months else Decimal("0")
    lines = [
        "LOAN AMORTIZATION SUMMARY REPORT",
        f"Generated: {generated:%Y-%m-%d %H:%M:%S}",
    ]
    if scenario_id:
        lines.append(f"Scenario ID: {scenario_id}")
    lines += [
        "",
        "LOAN DETAILS:",
        f"• Principal Amount: ₹{format_inr(terms.principal)} ({amount_in_words(terms.principal)} Rupees)",
        f"• Initial Interest Rate: {terms.annual_rate_percent}% per annum",
        f"• Original Tenure: {terms.tenure_months} months",
        "",
        "RESULTS:",
        f"• Actual Completion: {metrics.completion_month} months",
        f"• Total Interest Paid: ₹{format_inr(metrics.total_interest)}",
        f"• Total Disbursements: ₹{format_inr(metrics.total_disbursements)}",
        f"• Total Prepayments: ₹{format_inr(metrics.total_prepayments)}",
        f"• Interest Saved: ₹{format_inr(metrics.interest_saved)}",
        f"• Completion Date: {completion:%d %b %Y}",
        "",
        "STRATEGY IMPACT:",
        f"• Tenure Change: {metrics.tenure_change} months {label}",
        f"• Monthly Savings: ₹{format_inr(monthly_saving)} average",
    ]
    return "\n".join(lines)
