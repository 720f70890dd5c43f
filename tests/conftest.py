from decimal import Decimal

import pytest

from emi_calc.data_models import LoanTerms
from emi_calc.engine import run_baseline


@pytest.fixture
def standard_terms():
    """10 lakh at 7.5 % over five years."""
    return LoanTerms(principal=Decimal("1000000"), annual_rate_percent=Decimal("7.5"), tenure_months=60)


@pytest.fixture
def standard_baseline(standard_terms):
    return run_baseline(standard_terms)
