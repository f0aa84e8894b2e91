"""Tests for the general ledger snapshot import."""

from datetime import date
from decimal import Decimal

from dealerbooks.database.models import ChartOfAccount, GeneralLedgerEntry


def _account(session, name):
    return session.query(ChartOfAccount).filter(ChartOfAccount.account_name == name).one()


def _import(import_service, fixtures_dir):
    return import_service.import_file("general-ledger", fixtures_dir / "general_ledger.csv")


def test_import_general_ledger(import_service, chart_of_accounts, fixtures_dir):
    """Test entries are created and totals update balances."""
    result = _import(import_service, fixtures_dir)

    assert result["message"] == "General ledger import complete"
    assert result["created"] == 3
    assert result["updated"] == 2
    assert result["skipped"] == 2
    assert result["errors"] == ["Row 11: Skipped account total for 'Petty Cash': account not found."]


def test_entries_are_linked_to_accounts(import_service, chart_of_accounts, fixtures_dir, session):
    """Test each transaction row is stored against its section account."""
    _import(import_service, fixtures_dir)

    checking = _account(session, "Checking")
    entries = (
        session.query(GeneralLedgerEntry)
        .filter(GeneralLedgerEntry.account_id == checking.id)
        .order_by(GeneralLedgerEntry.transaction_date)
        .all()
    )
    assert [(e.debit, e.credit) for e in entries] == [
        (Decimal("1000.00"), Decimal("0.00")),
        (Decimal("0.00"), Decimal("250.00")),
    ]
    check = entries[1]
    assert check.transaction_type == "Check"
    assert check.transaction_date == date(2024, 1, 10)
    assert check.transaction_number == "1001"
    assert check.name == "Parts Warehouse"
    assert check.split == "Expenses:Vehicle:Fuel"
    assert check.running_balance == Decimal("750.00")
    assert check.account_name == "Checking"
    assert check.source == "quickbooks"


def test_totals_set_current_balance(import_service, chart_of_accounts, fixtures_dir, session):
    """Test a section's Total row becomes the account's current balance."""
    _import(import_service, fixtures_dir)

    assert _account(session, "Checking").current_balance == Decimal("750.00")
    assert _account(session, "Sales").current_balance == Decimal("1000.00")
    # Accounts without a ledger section keep their chart balance.
    assert _account(session, "Fuel").current_balance == Decimal("250.00")


def test_reimport_replaces_snapshot(import_service, chart_of_accounts, fixtures_dir, session):
    """Test a second import replaces earlier QuickBooks entries instead of adding to them."""
    _import(import_service, fixtures_dir)
    result = _import(import_service, fixtures_dir)

    assert result["created"] == 3
    assert session.query(GeneralLedgerEntry).count() == 3


def test_manual_entries_survive_reimport(import_service, chart_of_accounts, fixtures_dir, session):
    """Test only entries sourced from QuickBooks are replaced."""
    session.add(GeneralLedgerEntry(account_name="Manual", debit=Decimal("5.00"), credit=Decimal("0.00")))
    session.commit()

    _import(import_service, fixtures_dir)

    assert session.query(GeneralLedgerEntry).filter(GeneralLedgerEntry.source == "manual").count() == 1
    assert session.query(GeneralLedgerEntry).count() == 4


def test_colon_path_section(import_service, chart_of_accounts, write_csv, session):
    """Test a section labelled with a full account path resolves to the leaf."""
    path = write_csv(
        ",Type,Date,Num,Name,Memo,Split,Debit,Credit,Balance\n"
        "Expenses:Vehicle:Fuel,,,,,,,,,\n"
        ",Check,01/10/2024,1001,Parts Warehouse,Fuel,Checking,40.00,,40.00\n"
        "Total Expenses:Vehicle:Fuel,,,,,,,40.00,,40.00\n"
    )

    result = import_service.import_file("general-ledger", path)

    fuel = _account(session, "Fuel")
    assert result["created"] == 1
    assert result["updated"] == 1
    assert fuel.current_balance == Decimal("40.00")
    assert session.query(GeneralLedgerEntry).one().account_id == fuel.id


def test_nested_sections(import_service, chart_of_accounts, write_csv, session):
    """Test a Total row closes the innermost open section."""
    path = write_csv(
        ",Type,Date,Num,Name,Memo,Split,Debit,Credit,Balance\n"
        "Expenses,,,,,,,,,\n"
        "Rent,,,,,,,,,\n"
        ",Check,01/01/2024,1003,Landlord,January,Checking,900.00,,900.00\n"
        "Total Rent,,,,,,,900.00,,900.00\n"
        ",Check,01/02/2024,1004,Office,Supplies,Checking,15.00,,15.00\n"
        "Total Expenses,,,,,,,915.00,,915.00\n"
    )

    import_service.import_file("general-ledger", path)

    rent = _account(session, "Rent")
    expenses = _account(session, "Expenses")
    assert rent.current_balance == Decimal("900.00")
    assert expenses.current_balance == Decimal("915.00")
    supplies = session.query(GeneralLedgerEntry).filter(GeneralLedgerEntry.transaction_number == "1004").one()
    assert supplies.account_id == expenses.id


def test_bad_amount_skips_row(import_service, chart_of_accounts, write_csv, session):
    """Test an unparseable amount only loses its own row."""
    path = write_csv(
        ",Type,Date,Num,Name,Memo,Split,Debit,Credit,Balance\n"
        "Checking,,,,,,,,,\n"
        ",Deposit,01/05/2024,D-1,Jane Doe,Deposit,Sales,lots,,\n"
        ",Deposit,01/06/2024,D-2,Jane Doe,Deposit,Sales,10.00,,10.00\n"
    )

    result = import_service.import_file("general-ledger", path)

    assert result["created"] == 1
    assert result["skipped"] == 1
    assert result["errors"] == ["Row 3: Could not parse amount 'lots'"]


def test_dry_run_saves_nothing(import_service, chart_of_accounts, fixtures_dir, session):
    """Test a dry run reports counts but leaves the database untouched."""
    result = import_service.import_file("general-ledger", fixtures_dir / "general_ledger.csv", dry_run=True)

    assert result["created"] == 3
    assert result["message"].endswith("(dry run, nothing saved)")
    assert session.query(GeneralLedgerEntry).count() == 0
    assert _account(session, "Checking").current_balance == Decimal("12500.00")
