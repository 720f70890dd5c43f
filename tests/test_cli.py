import csv
import json

import pytest
from click.testing import CliRunner

from emi_calc.main import cli, parse_override_strings
from emi_calc.scenario import read_scenario

LOAN = ["-p", "10l", "-r", "7.5", "-t", "60", "-s", "2026-01"]


@pytest.fixture
def runner():
    return CliRunner()


class TestSummaryCommand:
    def test_baseline(self, runner):
        result = runner.invoke(cli, ["summary", *LOAN])
        assert result.exit_code == 0, result.output
        assert "Completion month   : 60" in result.output
        assert "Completion date    : Jan 2031" in result.output

    def test_prepayment_saves_interest(self, runner):
        result = runner.invoke(cli, ["summary", *LOAN, "--prepay", "12:1l"])
        assert result.exit_code == 0, result.output
        assert "Total prepaid      : 1,00,000" in result.output
        assert "(reduced)" in result.output

    @pytest.mark.parametrize(
        "args",
        [
            ["-p", "10l", "-r", "abc", "-t", "60"],
            ["-p", "10l", "-r", "75", "-t", "60"],
            ["-p", "10l", "-t", "60"],
            [*LOAN, "--prepay", "twelve:100"],
            [*LOAN, "--rate-change", "12:-1"],
        ],
    )
    def test_bad_input(self, runner, args):
        result = runner.invoke(cli, ["summary", *args])
        assert result.exit_code == 2


class TestScheduleCommand:
    def test_prints_table(self, runner):
        result = runner.invoke(cli, ["schedule", *LOAN, "--disburse", "12:1l"])
        assert result.exit_code == 0, result.output
        assert "Month\tEMI\tInterest" in result.output
        # the recomputed EMI is flagged from the disbursement month on
        assert "\n12\t" in result.output
        line = next(l for l in result.output.splitlines() if l.startswith("12\t"))
        assert line.split("\t")[1].endswith("*")

    def test_csv_export(self, runner, tmp_path):
        path = tmp_path / "schedule.csv"
        result = runner.invoke(cli, ["schedule", *LOAN, "--output", str(path)])
        assert result.exit_code == 0, result.output
        with path.open(newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0][0] == "Sr No"
        assert len(rows) == 61
        assert rows[1][1] == "01 Feb 2026"

    def test_json_export(self, runner, tmp_path):
        path = tmp_path / "schedule.json"
        result = runner.invoke(cli, ["schedule", *LOAN, "--rate-change", "24:8.25", "--output", str(path)])
        assert result.exit_code == 0, result.output
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["termination"] == "paid_off"
        assert data["schedule"][23]["rate_change"] == 8.25
        assert data["summary"]["current_rate_percent"] == 8.25
        assert data["summary"]["completion_month"] == len(data["schedule"])

    def test_unsupported_export(self, runner, tmp_path):
        result = runner.invoke(cli, ["schedule", *LOAN, "--output", str(tmp_path / "out.xlsx")])
        assert result.exit_code == 2


class TestScenarioFiles:
    def test_save_then_load(self, runner, tmp_path):
        path = tmp_path / "scenario.json"
        result = runner.invoke(
            cli,
            ["schedule", *LOAN, "--prepay", "12:100000", "--save-scenario", str(path), "--output", str(tmp_path / "s.csv")],
        )
        assert result.exit_code == 0, result.output
        scenario = read_scenario(path)
        assert scenario.tenure_months == 60
        assert list(scenario.prepayments) == [12]

        loaded = runner.invoke(cli, ["summary", "--scenario", str(path), "-s", "2026-01"])
        direct = runner.invoke(cli, ["summary", *LOAN, "--prepay", "12:100000"])
        assert loaded.exit_code == 0, loaded.output
        assert loaded.output == direct.output

    def test_command_line_overrides_scenario_month(self, runner, tmp_path):
        path = tmp_path / "scenario.json"
        path.write_text(
            json.dumps(
                {
                    "id": "LOAN_20261017_000001",
                    "loanAmount": 1000000,
                    "roiStart": 7.5,
                    "tenureMonths": 60,
                    "prepayments": {"12": 500000},
                }
            ),
            encoding="utf-8",
        )
        replaced = runner.invoke(cli, ["summary", "--scenario", str(path), "--prepay", "12:1"])
        assert replaced.exit_code == 0, replaced.output
        assert "Total prepaid      : 1\n" in replaced.output

    def test_invalid_scenario_file(self, runner, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text('{"loanAmount": 1000}', encoding="utf-8")
        result = runner.invoke(cli, ["summary", "--scenario", str(path)])
        assert result.exit_code == 2
        assert "missing" in result.output


def test_report_command(runner):
    result = runner.invoke(cli, ["report", *LOAN, "--prepay", "12:100000"])
    assert result.exit_code == 0, result.output
    assert "LOAN AMORTIZATION SUMMARY REPORT" in result.output
    assert "Total Prepayments: ₹1,00,000" in result.output


def test_parse_override_strings_merges_months():
    overrides = parse_override_strings(("3:1000", "3:500"), ("3:200",), ("3:9%",))
    entry = overrides[3]
    assert entry.disbursement == 1500
    assert entry.prepayment == 200
    assert str(entry.rate_change) == "9"
