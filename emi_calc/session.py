"""Interactive planning session over a single loan.

``LoanSession`` owns what a user interface needs between edits: the loan
terms, the baseline schedule kept for "interest saved" comparisons, the
complete override set, the current schedule and the id of the scenario it was
loaded from or saved as. The engine itself stays stateless; every change to
the override set triggers a full recomputation from month 1.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from .data_models import LoanTerms, Override, OverrideSet, Scenario, ScheduleMetrics, ScheduleResult
from .engine import run_baseline, run_with_overrides, summarize
from .scenario import SCHEMA_VERSION, generate_scenario_id
from .utils import Number, add_months, to_decimal

logger = logging.getLogger(__name__)


class LoanSession:
    """Baseline and current schedules for one set of loan terms.

    Not thread-safe; each caller owns its own session.
    """

    def __init__(self, terms: LoanTerms, scenario_id: Optional[str] = None) -> None:
        self.terms = terms.validate()
        self.scenario_id = scenario_id
        self.modified = False
        self.overrides: OverrideSet = {}
        self.baseline: ScheduleResult = run_baseline(terms)
        self.current: ScheduleResult = run_with_overrides(terms, self.overrides)

    @classmethod
    def from_scenario(cls, scenario: Scenario) -> "LoanSession":
        session = cls(scenario.terms, scenario_id=scenario.id)
        session.replace_overrides(scenario.overrides())
        session.modified = False
        return session

    def set_override(
        self,
        month: int,
        *,
        disbursement: Optional[Number] = None,
        prepayment: Optional[Number] = None,
        rate_change: Optional[Number] = None,
    ) -> ScheduleResult:
        """Set one or more override values for ``month`` and recompute.

        Only the values passed are changed; the others keep their previous
        setting. Use :meth:`clear_override` to remove a month entirely.
        """
        if month < 1:
            raise ValueError(f"Month index must be 1 or greater; got {month}")
        override = self.overrides.get(month) or Override()
        if disbursement is not None:
            override.disbursement = _non_negative(disbursement, "Disbursement")
        if prepayment is not None:
            override.prepayment = _non_negative(prepayment, "Prepayment")
        if rate_change is not None:
            override.rate_change = _non_negative(rate_change, "Rate change")
        if override.is_empty:
            self.overrides.pop(month, None)
        else:
            self.overrides[month] = override
        return self._changed()

    def clear_override(self, month: int) -> ScheduleResult:
        self.overrides.pop(month, None)
        return self._changed()

    def replace_overrides(self, overrides: OverrideSet) -> ScheduleResult:
        """Replace the whole override set and recompute."""
        self.overrides = {month: replace(o) for month, o in overrides.items() if not o.is_empty}
        return self._changed()

    def _changed(self) -> ScheduleResult:
        self.modified = True
        self.current = run_with_overrides(self.terms, self.overrides)
        logger.debug(
            "Recomputed %d overrides: %d months, termination=%s",
            len(self.overrides),
            self.current.completion_month,
            self.current.termination,
        )
        return self.current

    def metrics(self) -> ScheduleMetrics:
        return summarize(self.terms, self.current, self.baseline)

    def completion_date(self, start: Optional[date] = None) -> date:
        """Return the month the loan completes, counting from ``start`` (today by default)."""
        return add_months(start or date.today(), self.current.completion_month)

    def to_scenario(self, now: Optional[datetime] = None) -> Scenario:
        """Capture the session as a scenario, assigning an id if it has none."""
        now = now or datetime.now(timezone.utc)
        if not self.scenario_id:
            self.scenario_id = generate_scenario_id(now)
        self.modified = False
        return Scenario(
            id=self.scenario_id,
            loan_amount=self.terms.principal,
            roi_start=self.terms.annual_rate_percent,
            tenure_months=self.terms.tenure_months,
            disbursements={m: o.disbursement for m, o in self.overrides.items() if o.disbursement > 0},
            prepayments={m: o.prepayment for m, o in self.overrides.items() if o.prepayment > 0},
            roi_changes={m: o.rate_change for m, o in self.overrides.items() if o.rate_change is not None},
            timestamp=now.isoformat(timespec="seconds"),
            version=SCHEMA_VERSION,
        )


def _non_negative(value: Number, label: str) -> Decimal:
    amount = to_decimal(value)
    if amount < 0:
        raise ValueError(f"{label} cannot be negative")
    return amount
