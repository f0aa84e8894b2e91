"""Tests for the streaming QuickBooks CSV reader."""

import pytest

from dealerbooks.utils.qb_csv import (
    AccountHeader,
    PartyHeader,
    QuickBooksCsvReader,
    TotalRow,
    TransactionRow,
    iter_account_lines,
    iter_customer_lines,
    iter_vendor_lines,
    normalize_header,
)


def test_normalize_header():
    """Test snake_case keys, blank headers and duplicate suffixes."""
    header = ["\ufeffCustomer", "Trans #", "", "Bill to 1", "Amount", "Amount"]
    assert normalize_header(header) == ["customer", "trans_num", None, "bill_to_1", "amount", "amount_2"]


def test_reader_maps_rows_and_numbers_them(write_csv):
    """Test rows are keyed by header and numbered like a spreadsheet."""
    path = write_csv("Customer,Amount\nJane Doe,10.00\n\n,,\nJohn Roe,5\n")

    records = list(QuickBooksCsvReader(path))

    assert [r.number for r in records] == [2, 5]
    assert records[0].get("customer") == "Jane Doe"
    assert records[1].values == {"customer": "John Roe", "amount": "5"}


def test_reader_strips_bom_and_trims_cells(write_csv):
    """Test a byte-order mark and surrounding whitespace are removed."""
    path = write_csv("\ufeffCustomer , Amount\n  Jane Doe  , 10.00 \n")

    record = next(iter(QuickBooksCsvReader(path)))

    assert record.values == {"customer": "Jane Doe", "amount": "10.00"}


def test_reader_falls_back_to_latin1_per_line(write_csv):
    """Test a Windows-1252 line does not break the UTF-8 lines around it."""
    path = write_csv("Customer\nJosé Núñez\n", encoding="latin-1")

    record = next(iter(QuickBooksCsvReader(path)))

    assert record.get("customer") == "José Núñez"


def test_reader_missing_file_raises(tmp_path):
    """Test a missing file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        list(QuickBooksCsvReader(tmp_path / "missing.csv"))


def test_reader_empty_file_raises(write_csv):
    """Test a file without a header row is rejected."""
    with pytest.raises(ValueError, match="missing a header row"):
        list(QuickBooksCsvReader(write_csv("")))


def test_reader_blank_header_raises(write_csv):
    """Test a header without usable columns is rejected."""
    with pytest.raises(ValueError, match="usable columns"):
        list(QuickBooksCsvReader(write_csv(",,\nA,B,C\n")))


def test_iter_account_lines(write_csv):
    """Test ledger rows are tagged as headers, transactions and totals."""
    path = write_csv(
        ",Type,Amount\n"
        "Checking,,\n"
        ",Deposit,10.00\n"
        "Total Checking,,10.00\n"
    )

    lines = list(iter_account_lines(QuickBooksCsvReader(path)))

    assert [type(line) for line in lines] == [AccountHeader, TransactionRow, TotalRow]
    assert lines[0].label == "Checking"
    assert lines[2].label == "Total Checking"


def test_iter_customer_lines_inline_header(write_csv):
    """Test a customer name on a transaction row opens a section and keeps the row."""
    path = write_csv(
        "Customer,Type,Amount\n"
        "Jane Doe,Payment,10.00\n"
        ",Payment,5.00\n"
    )

    lines = list(iter_customer_lines(QuickBooksCsvReader(path)))

    assert [type(line) for line in lines] == [PartyHeader, TransactionRow, TransactionRow]
    assert lines[0].name == "Jane Doe"
    assert lines[1].record is lines[0].record


def test_iter_vendor_lines_name_starting_with_total(write_csv):
    """Test a lone "Total ..." label is a vendor header, not a subtotal."""
    path = write_csv(
        ",Type,Amount\n"
        "Total Marine Supply,,\n"
        ",Bill,10.00\n"
        "Total Total Marine Supply,,10.00\n"
    )

    lines = list(iter_vendor_lines(QuickBooksCsvReader(path)))

    assert [type(line) for line in lines] == [PartyHeader, TransactionRow, TotalRow]
    assert lines[0].name == "Total Marine Supply"
