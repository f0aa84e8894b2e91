"""Streaming reader for QuickBooks CSV exports.

Files are read one physical line at a time: each line is decoded as UTF-8
with a Latin-1 fallback (QuickBooks desktop exports are frequently
Windows-1252), so a single bad byte never poisons the whole file and large
general ledger exports are never buffered in memory.
"""

import csv
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from dealerbooks.utils.fields import clean_ledger_value

BOM = "\ufeff"


@dataclass(frozen=True)
class CsvRecord:
    """One data row of an export.

    ``number`` is the spreadsheet row number (the header is row 1), ``values``
    is keyed by normalized header and ``raw`` keeps every cell by position.
    """

    number: int
    values: dict[str, Optional[str]]
    raw: tuple[Optional[str], ...]

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.values.get(key)
        return default if value is None else value

    def cell(self, index: int) -> Optional[str]:
        return self.raw[index] if index < len(self.raw) else None


@dataclass(frozen=True)
class AccountHeader:
    """Opens the section of a ledger report that belongs to one account."""

    record: CsvRecord
    label: str


@dataclass(frozen=True)
class PartyHeader:
    """Opens the section of a report grouped by vendor or customer."""

    record: CsvRecord
    name: str


@dataclass(frozen=True)
class TotalRow:
    record: CsvRecord
    label: str


@dataclass(frozen=True)
class TransactionRow:
    record: CsvRecord


ReportLine = Union[AccountHeader, PartyHeader, TotalRow, TransactionRow]


def decode_line(line: bytes) -> str:
    """Decode one line of an export, falling back to Latin-1."""
    try:
        return line.decode("utf-8")
    except UnicodeDecodeError:
        return line.decode("latin-1")


def sanitize_cell(value: Optional[str]) -> Optional[str]:
    """Trim a cell and strip a stray byte-order mark."""
    if value is None:
        return None
    value = value.replace(BOM, "").strip()
    return value or None


def normalize_header(headers: Iterable[Optional[str]]) -> list[Optional[str]]:
    """Normalize header cells to snake_case keys.

    Blank headers map to None so their columns are only reachable by
    position. Repeated headers get ``_2``, ``_3`` suffixes in order.
    """
    normalized: list[Optional[str]] = []
    occurrences: dict[str, int] = {}

    for header in headers:
        clean = sanitize_cell(header)
        if clean is None:
            normalized.append(None)
            continue

        key = clean.replace("#", " num ").lower()
        key = re.sub(r"[^a-z0-9]+", "_", key).strip("_")
        if not key:
            normalized.append(None)
            continue

        if key in occurrences:
            occurrences[key] += 1
            key = f"{key}_{occurrences[key]}"
        else:
            occurrences[key] = 1
        normalized.append(key)

    return normalized


class QuickBooksCsvReader:
    """Iterate the data rows of a QuickBooks CSV export."""

    def __init__(self, csv_file_path: Union[str, Path]):
        self.path = Path(csv_file_path)
        self.header: list[Optional[str]] = []

    def __iter__(self) -> Iterator[CsvRecord]:
        if not self.path.exists():
            raise FileNotFoundError(f"CSV file not found: {self.path}")

        with open(self.path, "rb") as handle:
            reader = csv.reader(decode_line(line).lstrip(BOM) for line in handle)

            header_row = next(reader, None)
            if header_row is None:
                raise ValueError("The QuickBooks CSV file is missing a header row.")

            self.header = normalize_header(header_row)
            if not any(key is not None for key in self.header):
                raise ValueError("The QuickBooks CSV header does not contain any usable columns.")

            # Blank rows are skipped but still count toward row numbers.
            for row_num, row in enumerate(reader, start=2):
                raw = tuple(sanitize_cell(value) for value in row)
                if all(value is None for value in raw):
                    continue

                values = {}
                for index, key in enumerate(self.header):
                    if key is not None:
                        values[key] = raw[index] if index < len(raw) else None

                yield CsvRecord(number=row_num, values=values, raw=raw)


def _classify(
    records: Iterable[CsvRecord], header_type: type, inline_headers: bool = False
) -> Iterator[ReportLine]:
    for record in records:
        label = clean_ledger_value(record.cell(0))
        rest_empty = all(value is None for value in record.raw[1:])

        # Totals always carry amounts; a bare "Total ..." label is a name.
        if label is not None and label.lower().startswith("total") and (inline_headers or not rest_empty):
            yield TotalRow(record=record, label=label)
            continue

        if label is not None and (rest_empty or inline_headers):
            yield header_type(record, label)
            if rest_empty:
                continue

        yield TransactionRow(record=record)


def iter_account_lines(records: Iterable[CsvRecord]) -> Iterator[ReportLine]:
    """Tag general ledger rows as account headers, totals or transactions.

    A row is an account header when column 0 is its only populated cell.
    """
    return _classify(records, AccountHeader)


def iter_vendor_lines(records: Iterable[CsvRecord]) -> Iterator[ReportLine]:
    """Tag vendor transaction report rows; vendor headers stand alone."""
    return _classify(records, PartyHeader)


def iter_customer_lines(records: Iterable[CsvRecord]) -> Iterator[ReportLine]:
    """Tag customer payment report rows.

    Any populated first column opens a customer section, and the same row
    may also carry a transaction, so a header can be followed by a
    TransactionRow for the same record.
    """
    return _classify(records, PartyHeader, inline_headers=True)
