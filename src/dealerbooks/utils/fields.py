"""Tolerant column lookup helpers for QuickBooks export rows.

QuickBooks spells the same column differently across export variants
(``bill_to_1`` versus ``billaddr1``, ``phone`` versus ``main_phone``). Rows
reaching these helpers already have normalized snake_case keys; the helpers
try every plausible spelling of a key and never raise on missing data.
"""

import hashlib
import re
import unicodedata
from typing import Iterable, Mapping, Optional

TRUTHY_VALUES = {"x", "yes", "true", "1", "active", "y"}

CITY_STATE_ZIP = re.compile(r"^(.*?)[, ]+([A-Za-z]{2})\.?\s+([0-9\-]+)")


def clean(value: Optional[str]) -> Optional[str]:
    """Trim a cell, returning None for empty values."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def key_variants(key: str) -> list[str]:
    """Spellings under which a normalized key may appear."""
    variants = [key, re.sub(r"_(\d+)", r"\1", key), key.replace("_", "")]
    seen: list[str] = []
    for variant in variants:
        if variant not in seen:
            seen.append(variant)
    return seen


def string_value(row: Mapping[str, Optional[str]], key: str) -> Optional[str]:
    """Return the first non-empty value for any spelling of ``key``."""
    for variant in key_variants(key):
        value = clean(row.get(variant))
        if value is not None:
            return value
    return None


def string_from(row: Mapping[str, Optional[str]], keys: Iterable[str]) -> Optional[str]:
    """Return the first non-empty value across a prioritized key list."""
    for key in keys:
        value = string_value(row, key)
        if value is not None:
            return value
    return None


def parse_boolean(value: Optional[str]) -> bool:
    """QuickBooks marks flags with x/yes/true/1/active."""
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY_VALUES


def _natural_key(text: str) -> list:
    return [int(part) if part.isdigit() else part for part in re.split(r"(\d+)", text)]


def build_address(row: Mapping[str, Optional[str]], prefixes: Iterable[str]) -> Optional[str]:
    """Reassemble a multi-line address from numbered columns.

    The first prefix with any populated ``<prefix>_<n>`` or ``<prefix><n>``
    columns wins. Lines are ordered naturally (2 before 10) and joined by
    newlines.
    """
    for prefix in prefixes:
        stem = prefix.rstrip("_")
        pattern = re.compile(rf"^{re.escape(stem)}_?(\d+)$")
        lines = []
        for key in sorted((k for k in row if k and pattern.match(k)), key=_natural_key):
            value = clean(row.get(key))
            if value is not None:
                lines.append(value)
        if lines:
            return "\n".join(lines)
    return None


def parse_city_state_zip(line: Optional[str]) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Split a trailing address line like ``Tampa, FL 33602``."""
    if not line:
        return None, None, None
    match = CITY_STATE_ZIP.match(line.strip())
    if match is None:
        return None, None, None
    city = match.group(1).strip(" ,") or None
    return city, match.group(2).upper(), match.group(3)


def extract_city_state_zip(address: Optional[str]) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Apply parse_city_state_zip to the last line of an address block."""
    if not address:
        return None, None, None
    lines = [line.strip() for line in address.splitlines() if line.strip()]
    if not lines:
        return None, None, None
    return parse_city_state_zip(lines[-1])


def ascii_fold(value: str) -> str:
    """Strip accents and drop anything outside ASCII."""
    normalized = unicodedata.normalize("NFKD", value)
    return normalized.encode("ascii", "ignore").decode("ascii")


def slugify(value: str) -> str:
    """Lowercase dash-separated slug."""
    folded = ascii_fold(value).lower()
    return re.sub(r"[^a-z0-9]+", "-", folded).strip("-")


def short_hash(value: str, length: int = 8) -> str:
    """Deterministic hex digest prefix used for synthetic keys."""
    return hashlib.md5(value.encode("utf-8")).hexdigest()[:length]


def clean_ledger_value(value: Optional[str]) -> Optional[str]:
    """Strip quoting from a positional ledger cell; ``--`` means empty."""
    if value is None:
        return None
    value = str(value).replace('"', "").strip()
    if value in ("", "--"):
        return None
    return value


def sanitize_text(value: str) -> str:
    """Guarantee a message is valid UTF-8 for JSON responses."""
    return value.encode("utf-8", "replace").decode("utf-8")
