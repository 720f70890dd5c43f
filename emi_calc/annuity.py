"""Annuity math used by the schedule engine.

Two pure functions relate principal, monthly rate, installment and term:
``compute_emi`` gives the installment for a term and
``compute_remaining_months`` inverts the annuity formula to give the term for
an installment. Neither raises for non-negative inputs.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, Decimal, getcontext

getcontext().prec = 28  # increase precision for financial calculations

INFINITY = Decimal("Infinity")

# An installment must beat the interest-only payment by more than this to
# amortize anything.
INTEREST_ONLY_TOLERANCE = Decimal("1e-12")

# Month counts this close to a whole number are treated as that number.
MONTH_SNAP_TOLERANCE = Decimal("1e-9")


def compute_emi(principal: Decimal, monthly_rate: Decimal, months: int) -> Decimal:
    """Return the equated monthly installment for a loan.

    The formula is:

        emi = P * (r * (1 + r)^n) / ((1 + r)^n - 1)

    where ``P`` is the principal, ``r`` is the monthly interest rate and
    ``n`` is the number of installments. When the interest rate is zero, the
    installment simplifies to ``P / n``. A non-positive term or principal
    leaves nothing to amortize and returns zero.
    """
    if months <= 0 or principal <= 0:
        return Decimal("0")
    if monthly_rate == 0:
        return principal / Decimal(months)
    factor = (1 + monthly_rate) ** months
    return principal * (monthly_rate * factor) / (factor - 1)


def compute_remaining_months(principal: Decimal, emi: Decimal, monthly_rate: Decimal) -> Decimal:
    """Return how many months ``emi`` needs to amortize ``principal``.

    The result is real-valued; use :func:`ceil_months` to turn it into a
    count of full installments. ``Decimal("Infinity")`` means the loan never
    completes, either because the installment is not positive or because it
    does not exceed the interest-only payment.

    The closed form is:

        n = ln(emi / (emi - P * r)) / ln(1 + r)
    """
    if principal <= 0:
        return Decimal("0")
    if emi <= 0:
        return INFINITY
    if monthly_rate == 0:
        return (principal / emi).to_integral_value(rounding=ROUND_CEILING)
    monthly_interest = principal * monthly_rate
    if emi <= monthly_interest + INTEREST_ONLY_TOLERANCE:
        return INFINITY
    return (emi / (emi - monthly_interest)).ln() / (1 + monthly_rate).ln()


def ceil_months(months: Decimal) -> int:
    """Round a finite real month count up to whole months.

    Counts within ``MONTH_SNAP_TOLERANCE`` of a whole number are taken as
    that number, so decimal noise never turns an exact n-month annuity into
    n + 1 months.
    """
    nearest = months.to_integral_value()
    if abs(months - nearest) < MONTH_SNAP_TOLERANCE:
        return int(nearest)
    return int(months.to_integral_value(rounding=ROUND_CEILING))
