"""Data models for the EMI schedule planner.

This module defines dataclasses representing the entities used by the
planner: the loan terms, sparse per-month overrides (disbursements,
prepayments and rate changes), individual schedule rows and the aggregate
results of a recomputation. Using dataclasses makes it easy to construct,
inspect and serialize these structures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

MIN_TENURE_MONTHS = 1
MAX_TENURE_MONTHS = 600
MAX_ANNUAL_RATE_PERCENT = Decimal("50")


@dataclass(frozen=True)
class LoanTerms:
    """Immutable inputs of a loan.

    Attributes
    ----------
    principal: Decimal
        The amount borrowed, in currency units.
    annual_rate_percent: Decimal
        Nominal annual interest rate in percent (``7.5`` means 7.5 %). May be
        zero.
    tenure_months: int
        The number of monthly installments the loan is originally repaid over.
    """

    principal: Decimal
    annual_rate_percent: Decimal
    tenure_months: int

    @property
    def monthly_rate(self) -> Decimal:
        return annual_to_monthly_rate(self.annual_rate_percent)

    def validate(self) -> "LoanTerms":
        """Raise ``ValueError`` when the terms fall outside the accepted ranges.

        The engine never calls this; it is used by the CLI, the session and
        the web layer before a schedule is computed.
        """
        if self.principal <= 0:
            raise ValueError("Loan amount must be positive")
        if self.annual_rate_percent < 0 or self.annual_rate_percent > MAX_ANNUAL_RATE_PERCENT:
            raise ValueError(
                f"Interest rate must be between 0 and {MAX_ANNUAL_RATE_PERCENT} percent"
            )
        if not MIN_TENURE_MONTHS <= self.tenure_months <= MAX_TENURE_MONTHS:
            raise ValueError(
                f"Tenure must be between {MIN_TENURE_MONTHS} and {MAX_TENURE_MONTHS} months"
            )
        return self


def annual_to_monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    """Convert an annual percentage into a monthly decimal rate."""
    return annual_rate_percent / Decimal(12) / Decimal(100)


@dataclass
class Override:
    """Changes applied to the loan in a single month.

    Attributes
    ----------
    disbursement: Decimal
        Additional principal released this month. Added to the balance.
    prepayment: Decimal
        Principal repaid ahead of schedule this month. Subtracted from the
        balance.
    rate_change: Optional[Decimal]
        New annual rate in percent, effective from the next interest
        computation onward. ``None`` leaves the rate unchanged.
    """

    disbursement: Decimal = Decimal("0")
    prepayment: Decimal = Decimal("0")
    rate_change: Optional[Decimal] = None

    @property
    def net_delta(self) -> Decimal:
        return self.disbursement - self.prepayment

    @property
    def is_empty(self) -> bool:
        return self.disbursement == 0 and self.prepayment == 0 and self.rate_change is None


# Sparse override set keyed by 1-based month index.
OverrideSet = Dict[int, Override]


@dataclass
class ScheduleRow:
    """One month of the amortization schedule."""

    month_index: int
    opening_balance: Decimal
    emi: Decimal
    interest: Decimal
    principal: Decimal
    disbursement: Decimal
    prepayment: Decimal
    rate_change: Optional[Decimal]
    balance: Decimal  # closing balance, floored at zero


@dataclass
class ScheduleResult:
    """The outcome of one pass of the schedule engine.

    ``termination`` records why the walk stopped: ``"paid_off"`` when the
    balance reached zero, ``"stalled"`` when a month made no progress,
    ``"month_cap"`` when the iteration ceiling was hit, ``"tenure_end"`` when
    a baseline ran out of months with a residual balance and ``"empty"`` when
    no month was walked at all. Only ``"paid_off"`` describes a complete
    schedule; the others are truncated but still usable.
    """

    rows: List[ScheduleRow] = field(default_factory=list)
    total_interest: Decimal = Decimal("0")
    total_disbursements: Decimal = Decimal("0")
    total_prepayments: Decimal = Decimal("0")
    target_months: int = 0
    termination: str = "empty"
    diagnostics: List[str] = field(default_factory=list)

    @property
    def completion_month(self) -> int:
        return len(self.rows)

    @property
    def initial_emi(self) -> Decimal:
        return self.rows[0].emi if self.rows else Decimal("0")

    @property
    def final_emi(self) -> Decimal:
        return self.rows[-1].emi if self.rows else Decimal("0")

    @property
    def final_balance(self) -> Decimal:
        return self.rows[-1].balance if self.rows else Decimal("0")


@dataclass
class ScheduleMetrics:
    """Aggregate metrics comparing a schedule against its baseline."""

    total_interest: Decimal
    baseline_total_interest: Decimal
    interest_saved: Decimal
    interest_saved_percent: Decimal
    total_disbursements: Decimal
    total_prepayments: Decimal
    completion_month: int
    baseline_completion_month: int
    tenure_change: int  # completion month minus the original tenure
    current_emi: Decimal
    current_rate_percent: Decimal

    def as_dict(self) -> Dict[str, object]:
        """Return the metrics as JSON-friendly floats and ints."""
        return {
            "total_interest": float(self.total_interest),
            "baseline_total_interest": float(self.baseline_total_interest),
            "interest_saved": float(self.interest_saved),
            "interest_saved_percent": float(self.interest_saved_percent),
            "total_disbursements": float(self.total_disbursements),
            "total_prepayments": float(self.total_prepayments),
            "completion_month": self.completion_month,
            "baseline_completion_month": self.baseline_completion_month,
            "tenure_change": self.tenure_change,
            "current_emi": float(self.current_emi),
            "current_rate_percent": float(self.current_rate_percent),
        }


@dataclass
class Scenario:
    """A saved loan scenario: terms plus the three sparse override maps.

    Map keys are 1-based month indices. ``version`` is the schema version of
    the persisted format.
    """

    id: str
    loan_amount: Decimal
    roi_start: Decimal
    tenure_months: int
    disbursements: Dict[int, Decimal] = field(default_factory=dict)
    prepayments: Dict[int, Decimal] = field(default_factory=dict)
    roi_changes: Dict[int, Decimal] = field(default_factory=dict)
    timestamp: Optional[str] = None
    version: str = "2.1"

    @property
    def terms(self) -> LoanTerms:
        return LoanTerms(
            principal=self.loan_amount,
            annual_rate_percent=self.roi_start,
            tenure_months=self.tenure_months,
        )

    def overrides(self) -> OverrideSet:
        """Merge the three maps by month index into an override set."""
        months = set(self.disbursements) | set(self.prepayments) | set(self.roi_changes)
        merged: OverrideSet = {}
        for month in sorted(months):
            merged[month] = Override(
                disbursement=self.disbursements.get(month, Decimal("0")),
                prepayment=self.prepayments.get(month, Decimal("0")),
                rate_change=self.roi_changes.get(month),
            )
        return merged
