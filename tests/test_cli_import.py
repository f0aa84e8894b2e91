"""Tests for the import and restore commands."""

import json
from decimal import Decimal

from dealerbooks.cli.main import cli


def test_cli_help(cli_runner):
    """Test the group help lists the commands without opening a database."""
    result = cli_runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "import" in result.output
    assert "restore" in result.output


def test_import_chart_of_accounts(cli_runner, temp_db, fixtures_dir):
    """Test importing a chart of accounts prints the counters."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "import", "chart-of-accounts", str(fixtures_dir / "chart_of_accounts.csv")],
    )

    assert result.exit_code == 0
    assert "Chart of Accounts import complete:" in result.output
    assert "  Created: 11" in result.output
    assert "  Skipped: 1" in result.output
    assert temp_db.get_chart_account_by_number("1000").current_balance == Decimal("12500.00")


def test_import_items_as_parts(cli_runner, temp_db, fixtures_dir):
    """Test --import-as is passed through to the items import."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "import", "items", str(fixtures_dir / "items.csv"), "--import-as", "parts"],
    )

    assert result.exit_code == 0
    assert "  Parts imported: 2" in result.output
    assert "  Services imported: 0" in result.output


def test_import_reports_row_errors(cli_runner, temp_db, chart_of_accounts, fixtures_dir):
    """Test row errors are counted and listed."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "import", "general-ledger", str(fixtures_dir / "general_ledger.csv")],
    )

    assert result.exit_code == 0
    assert "  Errors: 1" in result.output
    assert "Skipped account total for 'Petty Cash'" in result.output


def test_import_dry_run(cli_runner, temp_db, fixtures_dir):
    """Test --dry-run reports counts and saves nothing."""
    result = cli_runner.invoke(
        cli,
        [
            "--db-path",
            temp_db.database_path,
            "import",
            "chart-of-accounts",
            str(fixtures_dir / "chart_of_accounts.csv"),
            "--dry-run",
        ],
    )

    assert result.exit_code == 0
    assert "(dry run, nothing saved)" in result.output
    assert temp_db.list_chart_accounts() == []


def test_import_rejects_extension(cli_runner, temp_db, tmp_path):
    """Test files with an unsupported extension are rejected before importing."""
    path = tmp_path / "accounts.pdf"
    path.write_text("Account,Type\n")

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "import", "chart-of-accounts", str(path)])

    assert result.exit_code == 1
    assert "Error (file): The file must be a file of type: csv, txt." in result.output


def test_import_failure(cli_runner, temp_db, write_csv):
    """Test an aborted import exits with failure."""
    path = write_csv("")

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "import", "customers", path])

    assert result.exit_code == 1
    assert "Import failed: The QuickBooks CSV file is missing a header row." in result.output


def test_import_unknown_type(cli_runner, temp_db, fixtures_dir):
    """Test unknown import types are rejected by the argument parser."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "import", "timesheets", str(fixtures_dir / "items.csv")]
    )

    assert result.exit_code == 2


def test_restore_json(cli_runner, temp_db, tmp_path):
    """Test restoring a single table from a row list."""
    path = tmp_path / "customers.json"
    path.write_text(json.dumps([{"id": 1, "name": "Jane Doe"}]))

    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "restore", str(path), "--table", "customers"]
    )

    assert result.exit_code == 0
    assert "JSON import complete:" in result.output
    assert "  Created: 1" in result.output


def test_restore_json_needs_table(cli_runner, temp_db, tmp_path):
    """Test a row list without --table is rejected."""
    path = tmp_path / "customers.json"
    path.write_text(json.dumps([{"id": 1, "name": "Jane Doe"}]))

    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "restore", str(path)])

    assert result.exit_code == 1
    assert "Error: A table name is required for this JSON payload." in result.output
