"""Tests for the QuickBooks journal import."""

from datetime import date
from decimal import Decimal

from dealerbooks.database.models import ChartOfAccount, JournalEntry

JOURNAL_CSV = (
    "Trans #,Type,Date,Num,Name,Memo,Account,Debit,Credit\n"
    "45,General Journal,03/01/2024,J-1,Landlord,March rent,Rent,900.00,\n"
    ",,,,,,Checking,,900.00\n"
    "46,General Journal,03/02/2024,J-2,,Fuel correction,Fuel,50.00,\n"
    ",,,,,,Fuel,,20.00\n"
    ",,,,,,Checking (Bank),,30.00\n"
    "47,General Journal,03/03/2024,J-3,,Broken,Rent,10.00,\n"
    ",,,,,,Checking,,5.00\n"
)


def _account_id(session, name):
    return session.query(ChartOfAccount.id).filter(ChartOfAccount.account_name == name).scalar()


def _entry(session, number):
    return session.query(JournalEntry).filter(JournalEntry.entry_number == number).one()


def test_import_journal(import_service, chart_of_accounts, write_csv):
    """Test balanced groups are created and unbalanced ones reported."""
    result = import_service.import_file("journal", write_csv(JOURNAL_CSV))

    assert result["message"] == "Journal import complete"
    assert result["created"] == 2
    assert result["lines"] == 4
    assert result["skipped"] == 1
    assert result["errors"] == [
        "Row 7: QB-47: Journal entry is not balanced: debits 10.00 != credits 5.00"
    ]


def test_entries_are_posted(import_service, chart_of_accounts, write_csv, session):
    """Test imported entries carry the header row details and are posted."""
    import_service.import_file("journal", write_csv(JOURNAL_CSV))

    entry = _entry(session, "QB-45")
    assert entry.status == "posted"
    assert entry.entry_date == date(2024, 3, 1)
    assert entry.description == "General Journal J-1"
    assert entry.memo == "Landlord March rent"
    assert entry.created_by == "quickbooks-import"
    lines = {(line.account_id, line.debit, line.credit) for line in entry.lines}
    assert lines == {
        (_account_id(session, "Rent"), Decimal("900.00"), Decimal("0.00")),
        (_account_id(session, "Checking"), Decimal("0.00"), Decimal("900.00")),
    }


def test_lines_are_netted_per_account(import_service, chart_of_accounts, write_csv, session):
    """Test debits and credits to one account collapse to a single line."""
    import_service.import_file("journal", write_csv(JOURNAL_CSV))

    entry = _entry(session, "QB-46")
    lines = {(line.account_id, line.debit, line.credit) for line in entry.lines}
    assert lines == {
        (_account_id(session, "Fuel"), Decimal("30.00"), Decimal("0.00")),
        (_account_id(session, "Checking"), Decimal("0.00"), Decimal("30.00")),
    }


def test_import_does_not_touch_balances(import_service, chart_of_accounts, write_csv, session):
    """Test posted imports leave current balances as exported."""
    import_service.import_file("journal", write_csv(JOURNAL_CSV))

    checking = session.get(ChartOfAccount, _account_id(session, "Checking"))
    assert checking.current_balance == Decimal("12500.00")


def test_existing_entries_are_skipped(import_service, chart_of_accounts, write_csv, session):
    """Test re-importing the same journal creates nothing new."""
    path = write_csv(JOURNAL_CSV)
    import_service.import_file("journal", path)

    result = import_service.import_file("journal", path)

    assert result["created"] == 0
    assert result["skipped"] == 3
    assert session.query(JournalEntry).count() == 2


def test_unknown_account_is_reported(import_service, chart_of_accounts, write_csv, session):
    """Test a line naming a missing account is reported and its entry dropped."""
    path = write_csv(
        "Trans #,Type,Date,Num,Name,Memo,Account,Debit,Credit\n"
        "50,General Journal,03/05/2024,J-5,,Mystery,Mystery Account,10.00,\n"
        ",,,,,,Checking,,10.00\n"
    )

    result = import_service.import_file("journal", path)

    assert result["created"] == 0
    assert result["errors"][0] == "Row 2: Account 'Mystery Account' was not found in the chart of accounts."
    assert session.query(JournalEntry).count() == 0


def test_reference_without_usable_trans_number(import_service, chart_of_accounts, write_csv, session):
    """Test entries are numbered from type, number and date when Trans # has no usable characters."""
    path = write_csv(
        "Trans #,Type,Date,Num,Name,Memo,Account,Debit,Credit\n"
        "#,General Journal,03/06/2024,J-6,,,Rent,25.00,\n"
        ",,,,,,Checking,,25.00\n"
    )

    import_service.import_file("journal", path)

    assert _entry(session, "QB-general-journal-j-6-03-06-2024").status == "posted"


def test_empty_group_is_skipped(import_service, chart_of_accounts, write_csv):
    """Test a transaction whose lines cancel out is skipped without error."""
    path = write_csv(
        "Trans #,Type,Date,Num,Name,Memo,Account,Debit,Credit\n"
        "60,General Journal,03/07/2024,J-7,,,Rent,25.00,\n"
        ",,,,,,Rent,,25.00\n"
    )

    result = import_service.import_file("journal", path)

    assert result["created"] == 0
    assert result["skipped"] == 1
    assert result["errors"] == []
