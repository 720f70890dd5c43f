"""Tests for the schedule engine: baseline walks, override policies and metrics."""

from decimal import Decimal

import pytest

from emi_calc import engine
from emi_calc.annuity import ceil_months, compute_remaining_months
from emi_calc.data_models import LoanTerms, Override
from emi_calc.engine import run_baseline, run_with_overrides, summarize


def _assert_ledger_invariants(result):
    previous_close = None
    for row in result.rows:
        if previous_close is not None:
            assert row.opening_balance == previous_close
        assert row.interest >= 0
        assert 0 <= row.principal <= row.opening_balance
        assert row.balance >= 0
        previous_close = row.balance


class TestBaseline:
    def test_standard_loan(self, standard_terms, standard_baseline):
        rows = standard_baseline.rows
        assert len(rows) == 60
        assert abs(rows[0].emi - Decimal("20038")) < 1
        assert all(row.emi == rows[0].emi for row in rows)
        assert rows[-1].balance < Decimal("0.01")
        assert standard_baseline.termination == "paid_off"

    def test_principal_sums_to_loan_amount(self, standard_terms, standard_baseline):
        total_principal = sum(row.principal for row in standard_baseline.rows)
        assert abs(total_principal - standard_terms.principal) < Decimal("0.01")

    def test_first_month_interest(self, standard_baseline):
        assert standard_baseline.rows[0].interest == Decimal("6250")

    def test_zero_rate(self):
        terms = LoanTerms(Decimal("120000"), Decimal("0"), 12)
        result = run_baseline(terms)
        assert len(result.rows) == 12
        assert result.total_interest == 0
        assert all(row.emi == Decimal("10000") for row in result.rows)
        assert all(row.principal == Decimal("10000") for row in result.rows)
        assert result.final_balance == 0

    def test_zero_principal_has_no_rows(self):
        result = run_baseline(LoanTerms(Decimal("0"), Decimal("7.5"), 60))
        assert result.rows == []
        assert result.termination == "empty"

    def test_invariants(self, standard_baseline):
        _assert_ledger_invariants(standard_baseline)


class TestNoOverrides:
    def test_matches_baseline(self, standard_terms, standard_baseline):
        result = run_with_overrides(standard_terms, {})
        assert result.rows == standard_baseline.rows
        assert result.total_interest == standard_baseline.total_interest

    def test_idempotent(self, standard_terms):
        overrides = {
            5: Override(disbursement=Decimal("50000")),
            12: Override(prepayment=Decimal("100000")),
            24: Override(rate_change=Decimal("8.25")),
        }
        first = run_with_overrides(standard_terms, overrides)
        second = run_with_overrides(standard_terms, overrides)
        assert first == second

    def test_invalid_terms_produce_no_rows(self):
        assert run_with_overrides(LoanTerms(Decimal("1000"), Decimal("7.5"), 0), {}).rows == []
        result = run_with_overrides(LoanTerms(Decimal("-1000"), Decimal("7.5"), 12), {})
        assert result.rows == []
        assert result.diagnostics


class TestPrepayment:
    def test_shortens_tenure_and_saves_interest(self, standard_terms, standard_baseline):
        result = run_with_overrides(standard_terms, {12: Override(prepayment=Decimal("100000"))})
        assert result.completion_month < 60
        assert result.total_interest < standard_baseline.total_interest
        assert result.termination == "paid_off"

    def test_emi_held_fixed(self, standard_terms, standard_baseline):
        result = run_with_overrides(standard_terms, {12: Override(prepayment=Decimal("100000"))})
        baseline_emi = standard_baseline.rows[0].emi
        assert all(row.emi == baseline_emi for row in result.rows)

    def test_row_shows_gross_prepayment(self, standard_terms):
        result = run_with_overrides(standard_terms, {12: Override(prepayment=Decimal("100000"))})
        row = result.rows[11]
        assert row.prepayment == Decimal("100000")
        assert row.disbursement == 0
        assert row.rate_change is None

    @pytest.mark.parametrize("month", [1, 12, 30, 59])
    def test_never_worse_than_baseline(self, standard_terms, standard_baseline, month):
        result = run_with_overrides(standard_terms, {month: Override(prepayment=Decimal("25000"))})
        assert result.completion_month <= standard_baseline.completion_month
        assert result.total_interest <= standard_baseline.total_interest
        assert (
            result.completion_month < standard_baseline.completion_month
            or result.total_interest < standard_baseline.total_interest
        )

    def test_prepayment_larger_than_balance_closes_loan(self, standard_terms):
        result = run_with_overrides(standard_terms, {3: Override(prepayment=Decimal("2000000"))})
        assert result.completion_month == 3
        assert result.final_balance == 0
        assert result.termination == "paid_off"

    def test_invariants(self, standard_terms):
        _assert_ledger_invariants(
            run_with_overrides(standard_terms, {12: Override(prepayment=Decimal("100000"))})
        )


class TestDisbursement:
    def test_keeps_tenure_and_raises_emi(self, standard_terms, standard_baseline):
        result = run_with_overrides(standard_terms, {12: Override(disbursement=Decimal("100000"))})
        baseline_emi = standard_baseline.rows[0].emi
        assert result.completion_month == 60
        assert result.rows[10].emi == baseline_emi
        assert result.rows[11].emi > baseline_emi
        assert all(row.emi == result.rows[11].emi for row in result.rows[11:])
        assert result.final_balance < Decimal("0.01")

    def test_totals(self, standard_terms, standard_baseline):
        result = run_with_overrides(standard_terms, {12: Override(disbursement=Decimal("100000"))})
        assert result.total_disbursements == Decimal("100000")
        assert result.total_interest > standard_baseline.total_interest

    def test_net_of_prepayment_in_same_month(self, standard_terms):
        result = run_with_overrides(
            standard_terms,
            {12: Override(disbursement=Decimal("100000"), prepayment=Decimal("40000"))},
        )
        assert result.completion_month == 60
        assert result.rows[11].disbursement == Decimal("100000")
        assert result.rows[11].prepayment == Decimal("40000")

    def test_invariants(self, standard_terms):
        _assert_ledger_invariants(
            run_with_overrides(standard_terms, {12: Override(disbursement=Decimal("100000"))})
        )

    def test_no_months_left_in_target_keeps_emi(self, standard_terms, standard_baseline):
        """A disbursement in the target's last month has no months to spread over."""
        prepaid = {1: Override(prepayment=Decimal("900000"))}
        target = run_with_overrides(standard_terms, prepaid).target_months
        assert target < 60

        overrides = dict(prepaid)
        overrides[target] = Override(disbursement=Decimal("50000"))
        result = run_with_overrides(standard_terms, overrides)
        baseline_emi = standard_baseline.rows[0].emi
        assert result.target_months == target
        assert result.rows[target - 1].disbursement == Decimal("50000")
        assert all(row.emi == baseline_emi for row in result.rows)
        assert result.completion_month > target
        assert result.termination == "paid_off"


class TestRateChange:
    def test_increase_extends_tenure_with_fixed_emi(self, standard_terms, standard_baseline):
        result = run_with_overrides(standard_terms, {12: Override(rate_change=Decimal("9"))})
        baseline_emi = standard_baseline.rows[0].emi
        assert all(row.emi == baseline_emi for row in result.rows)
        assert result.completion_month > 60
        assert result.rows[11].rate_change == Decimal("9")

    def test_decrease_shortens_tenure(self, standard_terms):
        result = run_with_overrides(standard_terms, {12: Override(rate_change=Decimal("6"))})
        assert result.completion_month < 60

    def test_applies_from_next_month(self, standard_terms, standard_baseline):
        result = run_with_overrides(standard_terms, {12: Override(rate_change=Decimal("9"))})
        assert result.rows[11].interest == standard_baseline.rows[11].interest
        opening = result.rows[12].opening_balance
        assert result.rows[12].interest == opening * Decimal("0.0075")

    def test_same_month_disbursement_uses_old_rate_then_retargets(self, standard_terms, standard_baseline):
        with_rate = run_with_overrides(
            standard_terms,
            {12: Override(disbursement=Decimal("100000"), rate_change=Decimal("9"))},
        )
        without_rate = run_with_overrides(standard_terms, {12: Override(disbursement=Decimal("100000"))})
        # EMI is re-derived at the old rate, so it matches the disbursement-only case
        assert with_rate.rows[11].emi == without_rate.rows[11].emi
        assert with_rate.rows[11].emi > standard_baseline.rows[0].emi
        # and the higher rate is absorbed by a longer tenure
        assert with_rate.completion_month > 60

    def test_same_month_prepayment_keeps_emi_and_retargets_at_new_rate(self, standard_terms, standard_baseline):
        result = run_with_overrides(
            standard_terms,
            {12: Override(prepayment=Decimal("100000"), rate_change=Decimal("9"))},
        )
        prepay_only = run_with_overrides(standard_terms, {12: Override(prepayment=Decimal("100000"))})
        baseline_emi = standard_baseline.rows[0].emi
        assert all(row.emi == baseline_emi for row in result.rows)
        remaining = compute_remaining_months(result.rows[11].balance, baseline_emi, Decimal("0.0075"))
        assert result.target_months == 12 + ceil_months(remaining)
        assert result.target_months > prepay_only.target_months
        assert result.completion_month > prepay_only.completion_month

    def test_unaffordable_rate_stalls(self):
        terms = LoanTerms(Decimal("1000000"), Decimal("1"), 600)
        result = run_with_overrides(terms, {1: Override(rate_change=Decimal("50"))})
        assert result.termination == "stalled"
        assert len(result.rows) == 2
        assert result.rows[1].principal == 0
        assert any("cover interest" in message for message in result.diagnostics)
        assert any("no progress" in message for message in result.diagnostics)
        for row in result.rows:
            assert row.emi.is_finite()
            assert row.balance.is_finite()


def test_month_cap_truncates(standard_terms, monkeypatch):
    monkeypatch.setattr(engine, "SAFE_MONTH_CAP", 10)
    result = run_with_overrides(standard_terms, {})
    assert len(result.rows) == 10
    assert result.termination == "month_cap"
    assert result.diagnostics


class TestSummarize:
    def test_prepayment_metrics(self, standard_terms, standard_baseline):
        result = run_with_overrides(standard_terms, {12: Override(prepayment=Decimal("100000"))})
        metrics = summarize(standard_terms, result, standard_baseline)
        assert metrics.interest_saved == standard_baseline.total_interest - result.total_interest
        assert metrics.interest_saved > 0
        assert 0 < metrics.interest_saved_percent < 100
        assert metrics.total_prepayments == Decimal("100000")
        assert metrics.completion_month == result.completion_month
        assert metrics.baseline_completion_month == 60
        assert metrics.tenure_change < 0
        assert metrics.current_rate_percent == Decimal("7.5")

    def test_interest_saved_never_negative(self, standard_terms):
        result = run_with_overrides(standard_terms, {12: Override(disbursement=Decimal("100000"))})
        metrics = summarize(standard_terms, result)
        assert metrics.interest_saved == 0
        assert metrics.total_disbursements == Decimal("100000")

    def test_disbursements_are_gross(self, standard_terms):
        overrides = {12: Override(disbursement=Decimal("50000"), prepayment=Decimal("80000"))}
        result = run_with_overrides(standard_terms, overrides)
        metrics = summarize(standard_terms, result)
        assert metrics.total_disbursements == Decimal("50000")
        assert result.total_disbursements == 0

    def test_current_rate_and_emi(self, standard_terms):
        overrides = {6: Override(rate_change=Decimal("8")), 18: Override(rate_change=Decimal("8.5"))}
        result = run_with_overrides(standard_terms, overrides)
        metrics = summarize(standard_terms, result)
        assert metrics.current_rate_percent == Decimal("8.5")
        assert metrics.current_emi == result.rows[-1].emi

    def test_zero_rate_loan(self):
        terms = LoanTerms(Decimal("120000"), Decimal("0"), 12)
        metrics = summarize(terms, run_with_overrides(terms, {}))
        assert metrics.total_interest == 0
        assert metrics.interest_saved_percent == 0
        assert metrics.completion_month == 12
