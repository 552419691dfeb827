"""Tests for report CLI commands."""

import json

import pytest

from finstate.cli.main import cli


def _invoke(cli_runner, temp_db, *args):
    return cli_runner.invoke(cli, ["--db-path", temp_db.database_path, *args])


@pytest.fixture
def previous_period(import_service, fixtures_dir):
    """Prior year stored from the mapped CSV fixture."""
    return import_service.import_csv(str(fixtures_dir / "mapped_trial_balance.csv"), name="FY2023")


def test_statements_text(cli_runner, temp_db, stored_trial_balance):
    result = _invoke(cli_runner, temp_db, "report", "statements", "FY2024")

    assert result.exit_code == 0
    assert "Statement of Financial Position" in result.output
    assert "Statement of Profit or Loss" in result.output
    assert "Cash and Cash Equivalents" in result.output
    assert "200,000.00" in result.output
    assert "Profit for the Year" in result.output
    assert "[PASS] balance-sheet-equation" in result.output


def test_statements_json(cli_runner, temp_db, stored_trial_balance):
    result = _invoke(cli_runner, temp_db, "report", "statements", "FY2024", "--format", "json")

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["standard"] == "full"
    assert payload["totals"]["total_assets"] == "200000.00"
    assert set(payload["balance_sheet"]) == {"assets", "liabilities", "equity"}


def test_statements_csv_with_precision(cli_runner, temp_db, stored_trial_balance):
    result = _invoke(
        cli_runner, temp_db, "report", "statements", "FY2024", "--format", "csv", "--precision", "0"
    )

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0] == "Statement,Section,Code,Line Item,Level,Value"
    assert any(line.endswith("Cash and Cash Equivalents,2,50000") for line in lines)


def test_statements_sme_standard(cli_runner, temp_db, stored_trial_balance):
    result = _invoke(cli_runner, temp_db, "report", "statements", "FY2024", "--standard", "sme", "--format", "json")

    assert result.exit_code == 0
    assert json.loads(result.output)["standard"] == "sme"


def test_statements_unknown_trial_balance(cli_runner, temp_db):
    result = _invoke(cli_runner, temp_db, "report", "statements", "missing")

    assert result.exit_code == 1
    assert "Error: Trial balance missing not found" in result.output


def test_ratios_text(cli_runner, temp_db, stored_trial_balance):
    result = _invoke(cli_runner, temp_db, "report", "ratios", "FY2024")

    assert result.exit_code == 0
    assert "Liquidity" in result.output
    assert "Current Ratio" in result.output
    assert "4.00" in result.output
    assert "Growth" not in result.output
    assert "Alerts:" not in result.output


def test_ratios_json_with_growth_and_market(cli_runner, temp_db, stored_trial_balance, previous_period):
    """Test a prior period and share data add growth and market ratios."""
    result = _invoke(
        cli_runner,
        temp_db,
        "report",
        "ratios",
        "FY2024",
        "--previous",
        "FY2023",
        "--shares",
        "1000",
        "--price",
        "20",
        "--format",
        "json",
    )

    assert result.exit_code == 0
    payload = json.loads(result.output)
    growth = {r["key"]: r["value"] for r in payload["ratios"]["growth"]}
    assert growth["revenue_growth"] == "33.3333"
    market = {r["key"]: r["value"] for r in payload["ratios"]["market"]}
    assert market["earnings_per_share"] == "40.0000"
    assert payload["alerts"] == []


def test_cash_flow_indirect(cli_runner, temp_db, stored_trial_balance, previous_period):
    result = _invoke(cli_runner, temp_db, "report", "cash-flow", "FY2024", "--previous", "FY2023")

    assert result.exit_code == 0
    assert "Statement of Cash Flows (indirect method)" in result.output
    assert "Opening cash" in result.output
    assert "40,000.00" in result.output
    assert "10,000.00" in result.output
    assert "[PASS] cash-flow-reconciliation" in result.output


def test_cash_flow_direct(cli_runner, temp_db, stored_trial_balance, previous_period):
    result = _invoke(
        cli_runner, temp_db, "report", "cash-flow", "FY2024", "--previous", "FY2023", "--method", "direct"
    )

    assert result.exit_code == 0
    assert "(direct method)" in result.output
    assert "205,000.00" in result.output


def test_cash_flow_without_previous(cli_runner, temp_db, stored_trial_balance):
    result = _invoke(cli_runner, temp_db, "report", "cash-flow", "FY2024")

    assert result.exit_code == 0
    assert "[PASS] cash-flow-reconciliation" in result.output
