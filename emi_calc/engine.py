"""Core calculation engine for the EMI schedule planner.

This module builds month-by-month amortization schedules. ``run_baseline``
produces the plain schedule for a set of loan terms; ``run_with_overrides``
re-walks the loan from month 1 applying sparse disbursements, prepayments and
rate changes, re-deriving the EMI or the remaining tenure after each event:

* a net disbursement keeps the tenure and raises the EMI;
* a rate change keeps the EMI and moves the tenure;
* a net prepayment keeps the EMI and shortens the tenure.

Both functions are pure. They never raise for non-negative inputs; instead a
walk that cannot finish is truncated and the reason recorded on the result.
"""

from __future__ import annotations

import logging
from decimal import Decimal, getcontext
from typing import Optional, Tuple

from .annuity import ceil_months, compute_emi, compute_remaining_months
from .data_models import (
    LoanTerms,
    OverrideSet,
    ScheduleMetrics,
    ScheduleResult,
    ScheduleRow,
    annual_to_monthly_rate,
)

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

SAFE_MONTH_CAP = 5000
BALANCE_EPSILON = Decimal("0.0001")
STALL_EPSILON = Decimal("1e-12")

ZERO = Decimal("0")


def _amortize(balance: Decimal, monthly_rate: Decimal, emi: Decimal) -> Tuple[Decimal, Decimal, bool]:
    """Split one installment into interest and principal.

    Returns ``(interest, principal, shortfall)`` where ``shortfall`` is True
    when the installment did not cover the interest. Principal is clamped to
    ``[0, balance]``.
    """
    interest = balance * monthly_rate
    principal = emi - interest
    shortfall = principal < 0
    if shortfall:
        principal = ZERO
    if principal > balance:
        principal = balance
    return interest, principal, shortfall


def run_baseline(terms: LoanTerms) -> ScheduleResult:
    """Compute the schedule for ``terms`` with no overrides.

    The EMI is computed once over the full tenure and held for every month.
    The walk stops after ``tenure_months`` months or as soon as the balance
    is repaid.
    """
    result = ScheduleResult(target_months=max(terms.tenure_months, 0))
    monthly_rate = terms.monthly_rate
    emi = compute_emi(terms.principal, monthly_rate, terms.tenure_months)
    balance = terms.principal

    for month in range(1, terms.tenure_months + 1):
        if balance <= BALANCE_EPSILON:
            break
        opening = balance
        interest, principal, _ = _amortize(balance, monthly_rate, emi)
        balance -= principal
        result.total_interest += interest
        result.rows.append(
            ScheduleRow(
                month_index=month,
                opening_balance=opening,
                emi=emi,
                interest=interest,
                principal=principal,
                disbursement=ZERO,
                prepayment=ZERO,
                rate_change=None,
                balance=max(balance, ZERO),
            )
        )

    if result.rows:
        result.termination = "paid_off" if balance <= BALANCE_EPSILON else "tenure_end"
    return result


def _retarget(month: int, balance: Decimal, emi: Decimal, monthly_rate: Decimal) -> Optional[int]:
    """Return the new tenure target, or None when the loan can no longer amortize."""
    remaining = compute_remaining_months(balance, emi, monthly_rate)
    if not remaining.is_finite():
        return None
    return month + ceil_months(remaining)


def run_with_overrides(terms: LoanTerms, overrides: OverrideSet) -> ScheduleResult:
    """Compute the schedule for ``terms`` with per-month ``overrides`` applied.

    Parameters
    ----------
    terms: LoanTerms
        The loan being repaid. The starting EMI is the baseline EMI over the
        original tenure.
    overrides: OverrideSet
        The complete sparse override set, keyed by 1-based month index. Every
        call walks from month 1, so callers must always pass every override,
        not just the ones that changed.

    Returns
    -------
    ScheduleResult
        Rows in month order plus totals. ``termination`` is ``"paid_off"``
        unless the walk stalled or hit ``SAFE_MONTH_CAP``.
    """
    result = ScheduleResult(target_months=max(terms.tenure_months, 0))
    if terms.principal <= 0 or terms.tenure_months < 1:
        result.diagnostics.append("Nothing to amortize: principal and tenure must be positive")
        return result

    monthly_rate = terms.monthly_rate
    current_emi = compute_emi(terms.principal, monthly_rate, terms.tenure_months)
    target_months = terms.tenure_months
    balance = terms.principal
    month = 1

    while month <= SAFE_MONTH_CAP and balance > BALANCE_EPSILON:
        opening = balance
        interest, principal, shortfall = _amortize(balance, monthly_rate, current_emi)
        if shortfall:
            _diagnose(result, f"Month {month}: EMI does not cover interest")
        balance -= principal

        override = overrides.get(month)
        disbursement = override.disbursement if override else ZERO
        prepayment = override.prepayment if override else ZERO
        net_delta = disbursement - prepayment
        if net_delta > 0:
            balance += net_delta
            result.total_disbursements += disbursement
        elif net_delta < 0:
            balance = max(ZERO, balance + net_delta)
        result.total_prepayments += prepayment
        result.total_interest += interest

        # A rate change only affects interest from next month onward.
        old_rate = monthly_rate
        rate_change = override.rate_change if override else None
        if rate_change is not None:
            monthly_rate = annual_to_monthly_rate(rate_change)

        emi_changed = False
        if net_delta > 0 and balance > BALANCE_EPSILON:
            remaining = target_months - month
            if remaining > 0:
                new_emi = compute_emi(balance, old_rate, remaining)
                if new_emi > 0 and new_emi.is_finite():
                    logger.debug("Month %d: EMI %s -> %s after disbursement", month, current_emi, new_emi)
                    current_emi = new_emi
                    emi_changed = True

        if rate_change is not None:
            new_target = _retarget(month, balance, current_emi, monthly_rate)
            if new_target is None:
                _diagnose(result, f"Month {month}: EMI cannot amortize at {rate_change}%; tenure kept")
            else:
                logger.debug("Month %d: tenure target %d -> %d after rate change", month, target_months, new_target)
                target_months = new_target
        elif net_delta < 0 and not emi_changed:
            new_target = _retarget(month, balance, current_emi, monthly_rate)
            if new_target is not None:
                logger.debug("Month %d: tenure target %d -> %d after prepayment", month, target_months, new_target)
                target_months = new_target

        result.rows.append(
            ScheduleRow(
                month_index=month,
                opening_balance=opening,
                emi=current_emi,
                interest=interest,
                principal=principal,
                disbursement=disbursement,
                prepayment=prepayment,
                rate_change=rate_change,
                balance=max(balance, ZERO),
            )
        )

        if abs(principal) < STALL_EPSILON and disbursement == 0 and prepayment == 0 and balance > BALANCE_EPSILON:
            _diagnose(result, f"Stopping at month {month}: no progress in reducing balance")
            result.termination = "stalled"
            break
        month += 1

    result.target_months = target_months
    if result.termination != "stalled":
        result.termination = "paid_off" if balance <= BALANCE_EPSILON else "month_cap"
        if result.termination == "month_cap":
            _diagnose(result, f"Stopped after {SAFE_MONTH_CAP} months with balance {balance:.2f} outstanding")
    return result


def _diagnose(result: ScheduleResult, message: str) -> None:
    logger.warning(message)
    result.diagnostics.append(message)


def summarize(
    terms: LoanTerms,
    result: ScheduleResult,
    baseline: Optional[ScheduleResult] = None,
) -> ScheduleMetrics:
    """Compute aggregate metrics for ``result`` against the baseline schedule.

    When ``baseline`` is not supplied it is computed from ``terms``.
    """
    if baseline is None:
        baseline = run_baseline(terms)
    total_interest = sum((row.interest for row in result.rows), ZERO)
    baseline_interest = sum((row.interest for row in baseline.rows), ZERO)
    saved = max(ZERO, baseline_interest - total_interest)
    saved_percent = saved / baseline_interest * 100 if baseline_interest > 0 else ZERO

    current_rate = terms.annual_rate_percent
    for row in reversed(result.rows):
        if row.rate_change is not None:
            current_rate = row.rate_change
            break

    return ScheduleMetrics(
        total_interest=total_interest,
        baseline_total_interest=baseline_interest,
        interest_saved=saved,
        interest_saved_percent=saved_percent,
        total_disbursements=sum((row.disbursement for row in result.rows), ZERO),
        total_prepayments=sum((row.prepayment for row in result.rows), ZERO),
        completion_month=result.completion_month,
        baseline_completion_month=baseline.completion_month,
        tenure_change=result.completion_month - terms.tenure_months,
        current_emi=result.final_emi,
        current_rate_percent=current_rate,
    )
