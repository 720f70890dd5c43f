"""Load and save loan scenarios in their JSON format.

A scenario file stores the loan terms together with three sparse maps keyed
by 1-based month index (as strings): ``disbursements``, ``prepayments`` and
``roiChanges``. Files look like this::

    {
      "id": "LOAN_20261017_123456",
      "timestamp": "2026-10-17T10:00:00",
      "version": "2.1",
      "loanAmount": 1000000,
      "roiStart": 7.5,
      "tenureMonths": 60,
      "disbursements": {"3": 50000},
      "prepayments": {"12": 100000},
      "roiChanges": {"24": 8.25}
    }
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

from .data_models import Scenario
from .utils import to_decimal

SCHEMA_VERSION = "2.1"
REQUIRED_FIELDS = ("id", "loanAmount", "roiStart", "tenureMonths")


class ScenarioFormatError(ValueError):
    """Raised when scenario data does not match the expected format."""


def generate_scenario_id(now: Optional[datetime] = None) -> str:
    """Return an id of the form ``LOAN_<YYYYMMDD>_<NNNNNN>``.

    The suffix is the last six digits of the timestamp in milliseconds.
    """
    now = now or datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000)
    return f"LOAN_{now:%Y%m%d}_{str(millis)[-6:]}"


def _parse_month_map(data: Dict[str, Any], key: str, *, keep_zero: bool) -> Dict[int, Decimal]:
    raw = data.get(key) or {}
    if not isinstance(raw, dict):
        raise ScenarioFormatError(f"'{key}' must be an object keyed by month index")
    parsed: Dict[int, Decimal] = {}
    for month_key, value in raw.items():
        try:
            month = int(month_key)
        except (TypeError, ValueError) as exc:
            raise ScenarioFormatError(f"Invalid month index in '{key}': {month_key}") from exc
        if month < 1:
            raise ScenarioFormatError(f"Month index in '{key}' must be 1 or greater; got {month}")
        try:
            amount = to_decimal(value)
        except ValueError as exc:
            raise ScenarioFormatError(f"Invalid value in '{key}' for month {month}: {value}") from exc
        if amount < 0:
            raise ScenarioFormatError(f"Negative value in '{key}' for month {month}")
        if amount == 0 and not keep_zero:
            continue
        parsed[month] = amount
    return parsed


def scenario_from_dict(data: Dict[str, Any]) -> Scenario:
    """Build a :class:`Scenario` from decoded JSON data."""
    if not isinstance(data, dict):
        raise ScenarioFormatError("Scenario must be a JSON object")
    missing = [name for name in REQUIRED_FIELDS if data.get(name) in (None, "")]
    if missing:
        raise ScenarioFormatError(f"Invalid loan scenario: missing {', '.join(missing)}")
    try:
        loan_amount = to_decimal(data["loanAmount"])
        roi_start = to_decimal(data["roiStart"])
        tenure = to_decimal(data["tenureMonths"])
    except ValueError as exc:
        raise ScenarioFormatError(f"Invalid loan scenario: {exc}") from exc
    if tenure != tenure.to_integral_value():
        raise ScenarioFormatError(f"Tenure must be a whole number of months; got {tenure}")
    return Scenario(
        id=str(data["id"]),
        loan_amount=loan_amount,
        roi_start=roi_start,
        tenure_months=int(tenure),
        disbursements=_parse_month_map(data, "disbursements", keep_zero=False),
        prepayments=_parse_month_map(data, "prepayments", keep_zero=False),
        roi_changes=_parse_month_map(data, "roiChanges", keep_zero=True),
        timestamp=data.get("timestamp"),
        version=str(data.get("version") or SCHEMA_VERSION),
    )


def _json_number(value: Decimal):
    """Return an int for whole values and a float otherwise."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _dump_month_map(values: Dict[int, Decimal]) -> Dict[str, Any]:
    return {str(month): _json_number(values[month]) for month in sorted(values)}


def scenario_to_dict(scenario: Scenario) -> Dict[str, Any]:
    """Return the JSON-ready representation of ``scenario``."""
    return {
        "id": scenario.id,
        "timestamp": scenario.timestamp,
        "version": scenario.version,
        "loanAmount": _json_number(scenario.loan_amount),
        "roiStart": _json_number(scenario.roi_start),
        "tenureMonths": scenario.tenure_months,
        "disbursements": _dump_month_map(scenario.disbursements),
        "prepayments": _dump_month_map(scenario.prepayments),
        "roiChanges": _dump_month_map(scenario.roi_changes),
    }


def load_scenario(text: str) -> Scenario:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ScenarioFormatError(f"Scenario is not valid JSON: {exc}") from exc
    return scenario_from_dict(data)


def dump_scenario(scenario: Scenario) -> str:
    return json.dumps(scenario_to_dict(scenario), indent=2)


def read_scenario(path: Path) -> Scenario:
    """Read a scenario from a ``.json`` file."""
    with path.open("r", encoding="utf-8") as f:
        return load_scenario(f.read())


def write_scenario(path: Path, scenario: Scenario) -> None:
    """Write a scenario to a ``.json`` file."""
    with path.open("w", encoding="utf-8") as f:
        f.write(dump_scenario(scenario))
