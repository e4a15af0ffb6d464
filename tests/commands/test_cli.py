"""Tests for the command-line interface."""

import json
import sqlite3
from datetime import date
from pathlib import Path

import pytest
from typer.testing import CliRunner

from freeagent.api.resources import FreeAgent
from freeagent.cli import app
from freeagent.commands.auth import extract_code
from freeagent.commands.common import parse_filters, read_payload
from freeagent.commands.reports import compute_report_period
from freeagent.commands.resources import pick_columns

runner = CliRunner()

CONSISTENT_SHEET = {
    "as_at_date": "2025-03-31",
    "capital_assets": {"net_book_value": "500.00"},
    "current_assets": {"accounts": [{"nominal_code": "681", "name": "Debtors", "total_debit_value": "500.00"}]},
    "current_liabilities": {"accounts": []},
    "total_assets": "1000.00",
    "owners_equity": {"accounts": [], "retained_profit": "-1000.00"},
    "total_owners_equity": "-1000.00",
}


@pytest.fixture
def api(client, monkeypatch) -> FreeAgent:
    """Route every command through the fake transport."""
    fa = FreeAgent(client)
    monkeypatch.setattr("freeagent.commands.resources.open_api", lambda profile: fa)
    monkeypatch.setattr("freeagent.commands.reports.open_api", lambda profile: fa)
    return fa


class TestResourceCommands:
    """Tests for the generic collection commands."""

    def test_resources_lists_collections(self) -> None:
        result = runner.invoke(app, ["resources"])

        assert result.exit_code == 0
        assert "invoices" in result.output
        assert "contacts" in result.output

    def test_list_json(self, api, adapter) -> None:
        adapter.add("GET", "/v2/invoices", json_body={"invoices": [{"reference": "001", "total_value": 10.5}]})

        result = runner.invoke(app, ["list", "invoices", "--view", "open", "--json"])

        assert result.exit_code == 0
        assert '"reference": "001"' in result.output
        assert "view=open" in adapter.requests[0].url

    def test_list_csv(self, api, adapter, tmp_path: Path) -> None:
        """Should flatten nested records into CSV columns."""
        adapter.add(
            "GET",
            "/v2/contacts",
            json_body={"contacts": [{"first_name": "Ada", "address": {"town": "London"}}]},
        )
        csv_path = tmp_path / "contacts.csv"

        result = runner.invoke(app, ["list", "contacts", "--csv", str(csv_path)])

        assert result.exit_code == 0
        header = csv_path.read_text().splitlines()[0]
        assert "first_name" in header
        assert "address.town" in header

    def test_list_empty(self, api, adapter) -> None:
        adapter.add("GET", "/v2/projects", json_body={"projects": []})

        result = runner.invoke(app, ["list", "projects"])

        assert result.exit_code == 0
        assert "No projects found" in result.output

    def test_list_plain_string_items(self, api, adapter) -> None:
        """Should show reference lists whose items are bare strings."""
        adapter.add("GET", "/v2/email_addresses", json_body={"email_addresses": ["ada@example.com"]})

        result = runner.invoke(app, ["list", "email-addresses"])

        assert result.exit_code == 0
        assert "ada@example.com" in result.output

    def test_unknown_resource(self, api) -> None:
        result = runner.invoke(app, ["list", "widgets"])

        assert result.exit_code == 1
        assert "Unknown resource" in result.output

    def test_bad_filter(self, api) -> None:
        result = runner.invoke(app, ["list", "invoices", "--filter", "contact"])

        assert result.exit_code == 1

    def test_create_reports_validation_errors(self, api, adapter, tmp_path: Path) -> None:
        """Should print each validation message and exit 1."""
        payload = tmp_path / "contact.json"
        payload.write_text(json.dumps({"contact": {"first_name": ""}}))
        adapter.add(
            "POST",
            "/v2/contacts",
            status=422,
            json_body={"errors": {"error": {"message": "First name or organisation name is required"}}},
        )

        result = runner.invoke(app, ["create", "contacts", "--data", str(payload)])

        assert result.exit_code == 1
        assert "First name or organisation name is required" in result.output
        assert json.loads(adapter.requests[0].body) == {"contact": {"first_name": ""}}

    def test_delete_cancelled(self, api, adapter) -> None:
        result = runner.invoke(app, ["delete", "invoices", "5"], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert adapter.requests == []

    def test_delete_confirmed(self, api, adapter) -> None:
        adapter.add("DELETE", "/v2/invoices/5")

        result = runner.invoke(app, ["delete", "invoices", "5", "--yes"])

        assert result.exit_code == 0
        assert "Deleted invoices 5" in result.output

    def test_delete_unknown_resource_does_not_prompt(self, api, adapter) -> None:
        """Should reject the resource name before asking for confirmation."""
        result = runner.invoke(app, ["delete", "widgets", "5"])

        assert result.exit_code == 1
        assert "Unknown resource" in result.output
        assert "Delete widgets" not in result.output
        assert adapter.requests == []

    def test_delete_unsupported_resource_does_not_prompt(self, api, adapter) -> None:
        result = runner.invoke(app, ["delete", "transactions", "1"])

        assert result.exit_code == 1
        assert "does not support delete" in result.output
        assert "Delete transactions" not in result.output

    def test_token_store_error(self, monkeypatch) -> None:
        """Should report a broken token database and exit 1."""

        def locked(profile: str) -> FreeAgent:
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr("freeagent.commands.resources.open_api", locked)

        result = runner.invoke(app, ["list", "invoices"])

        assert result.exit_code == 1
        assert "Database error: database is locked" in result.output

    def test_action(self, api, adapter) -> None:
        adapter.add("PUT", "/v2/invoices/5/transitions/mark_as_sent")

        result = runner.invoke(app, ["action", "invoices", "5", "mark_as_sent"])

        assert result.exit_code == 0
        assert adapter.requests[0].method == "PUT"


class TestReportCommands:
    """Tests for report commands."""

    def test_balance_sheet_check_passes(self, api, adapter) -> None:
        adapter.add("GET", "/v2/accounting/balance_sheet", json_body={"balance_sheet": CONSISTENT_SHEET})

        result = runner.invoke(app, ["balance-sheet", "--date", "2025-03-31", "--check"])

        assert result.exit_code == 0
        assert "consistent" in result.output
        assert "as_at_date=2025-03-31" in adapter.requests[0].url

    def test_balance_sheet_check_fails(self, api, adapter) -> None:
        """Should exit 1 when the totals do not add up."""
        sheet = {**CONSISTENT_SHEET, "total_assets": "999.00"}
        adapter.add("GET", "/v2/accounting/balance_sheet", json_body={"balance_sheet": sheet})

        result = runner.invoke(app, ["balance-sheet", "--check"])

        assert result.exit_code == 1
        assert "inconsistent" in result.output

    def test_trial_balance(self, api, adapter) -> None:
        adapter.add(
            "GET",
            "/v2/accounting/trial_balance/summary",
            json_body={
                "trial_balance_summary": [
                    {"nominal_code": "001", "name": "Sales", "total": "-50.00"},
                    {"nominal_code": "250", "name": "Advertising", "total": "50.00"},
                ]
            },
        )

        result = runner.invoke(app, ["trial-balance", "--from", "2025-01-01", "--to", "2025-01-31"])

        assert result.exit_code == 0
        assert "Balanced" in result.output
        assert "from_date=2025-01-01" in adapter.requests[0].url

    def test_reversed_period(self, api) -> None:
        result = runner.invoke(app, ["trial-balance", "--from", "2025-02-01", "--to", "2025-01-01"])

        assert result.exit_code == 1

    def test_cashflow_requires_dates(self) -> None:
        result = runner.invoke(app, ["cashflow"])

        assert result.exit_code != 0


class TestHelpers:
    """Tests for command helper functions."""

    def test_extract_code_bare(self) -> None:
        assert extract_code("  abc123 ", "s") == "abc123"

    def test_extract_code_from_redirect_url(self) -> None:
        assert extract_code("https://example.com/cb?code=xyz&state=s1", "s1") == "xyz"

    def test_extract_code_state_mismatch(self) -> None:
        with pytest.raises(ValueError, match="State mismatch"):
            extract_code("https://example.com/cb?code=xyz&state=other", "s1")

    def test_compute_report_period_defaults_to_month(self) -> None:
        period = compute_report_period(None, None, today=date(2025, 2, 10))

        assert (period.start, period.end) == (date(2025, 2, 1), date(2025, 2, 28))

    def test_compute_report_period_explicit(self) -> None:
        period = compute_report_period("2024-04-06", "2025-04-05")

        assert (period.start, period.end) == (date(2024, 4, 6), date(2025, 4, 5))

    def test_parse_filters(self) -> None:
        assert parse_filters(["bank_account=1", "from_date = 2025-01-01"]) == {
            "bank_account": "1",
            "from_date": "2025-01-01",
        }

    def test_read_payload_rejects_arrays(self, tmp_path: Path) -> None:
        path = tmp_path / "items.json"
        path.write_text("[1, 2]")

        with pytest.raises(ValueError, match="JSON object"):
            read_payload(str(path))

    def test_pick_columns_skips_nested(self) -> None:
        items = [{"url": "u", "name": "A", "address": {"town": "X"}, "tags": [], "total": "1"}]

        assert pick_columns(items) == ["name", "total"]
