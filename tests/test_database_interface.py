"""Tests for the SQLAlchemy database read operations."""

from datetime import date
from decimal import Decimal

from dealerbooks.domain.entities import JournalLine


def test_list_chart_accounts_sorted_by_number(temp_db, chart_of_accounts):
    """Test accounts come back ordered by account number."""
    numbers = [account.account_number for account in temp_db.list_chart_accounts()]

    assert numbers == sorted(numbers)
    assert len(numbers) == 11


def test_get_chart_account_by_number(temp_db, chart_of_accounts):
    """Test lookup by account number returns a domain entity."""
    account = temp_db.get_chart_account_by_number("6110")

    assert account.account_name == "Fuel"
    assert account.account_type == "expense"
    assert account.current_balance == Decimal("250.00")
    assert account.description == "Fuel for lot vehicles"
    assert temp_db.get_chart_account_by_number("9999") is None


def test_chart_account_tree(temp_db, chart_of_accounts):
    """Test the tree nests sub-accounts under their parents."""
    tree = temp_db.get_chart_account_tree()

    roots = {node["account_name"]: node for node in tree}
    assert "Vehicle" not in roots
    expenses = roots["Expenses"]
    children = {child["account_name"]: child for child in expenses["children"]}
    assert set(children) == {"Rent", "Vehicle"}
    assert [grandchild["account_name"] for grandchild in children["Vehicle"]["children"]] == ["Fuel"]


def test_list_bills(temp_db, import_service, fixtures_dir):
    """Test bills are listed by date with their vendor name."""
    import_service.import_file("bills", fixtures_dir / "bills.csv")

    bills = temp_db.list_bills()

    assert [bill.bill_date for bill in bills] == [date(2024, 5, 1), date(2024, 6, 1), date(2024, 6, 10)]
    assert bills[0].vendor_name == "Parts Warehouse"
    assert bills[0].bill_number == "QB-BILL-INV-501"


def test_list_bills_filters(temp_db, import_service, fixtures_dir):
    """Test filtering by vendor name and open balance."""
    import_service.import_file("bills", fixtures_dir / "bills.csv")

    assert [bill.bill_number for bill in temp_db.list_bills(vendor_name="city utilities")] == [
        "QB-BILL-CITYUTIL-20240601"
    ]
    open_bills = temp_db.list_bills(open_only=True)
    assert [bill.balance for bill in open_bills] == [Decimal("300.00"), Decimal("50.00")]


def test_posted_activity_ignores_drafts(temp_db, journal_service, chart_of_accounts):
    """Test only posted lines count toward account activity."""
    rent = temp_db.get_chart_account_by_number("6200").id
    checking = temp_db.get_chart_account_by_number("1000").id
    lines = [JournalLine(rent, debit=Decimal("50.00")), JournalLine(checking, credit=Decimal("50.00"))]
    journal_service.create_entry(date(2024, 3, 1), lines)
    posted = journal_service.create_entry(date(2024, 3, 2), lines)
    journal_service.post_entry(posted)

    assert temp_db.get_posted_activity(rent) == (Decimal("50.00"), Decimal("0.00"))
