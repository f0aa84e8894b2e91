"""Restore CRM tables from a JSON backup."""

import json
import logging
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Table, select, text
from sqlalchemy.orm import Session

from dealerbooks.database.models import Base
from dealerbooks.domain.context import ImportContext
from dealerbooks.domain.errors import ValidationError
from dealerbooks.domain.import_base import ImportFrame, ImportResult
from dealerbooks.utils.fields import parse_boolean

logger = logging.getLogger(__name__)

CHUNK_SIZE = 500


def restorable_tables() -> dict[str, Table]:
    """Known tables, in foreign-key dependency order."""
    return {table.name: table for table in Base.metadata.sorted_tables}


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))


def coerce_value(column, value: Any) -> Any:
    """Convert a JSON scalar to the Python type a column expects."""
    column_type = column.type
    if value is None or (value == "" and not isinstance(column_type, String)):
        return None
    if isinstance(column_type, DateTime):
        return value if isinstance(value, datetime) else _parse_datetime(str(value))
    if isinstance(column_type, Date):
        if isinstance(value, date):
            return value
        return date.fromisoformat(str(value)[:10])
    if isinstance(column_type, Numeric):
        try:
            return Decimal(str(value))
        except InvalidOperation as e:
            raise ValidationError(f"Invalid number '{value}' for column {column.name}") from e
    if isinstance(column_type, Boolean):
        return value if isinstance(value, bool) else parse_boolean(str(value))
    if isinstance(column_type, Integer):
        return int(value)
    return value


@contextmanager
def foreign_keys_deferred(session: Session) -> Iterator[None]:
    """Relax foreign key checks while rows load in arbitrary order."""
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        # Resets automatically when the transaction ends.
        session.execute(text("PRAGMA defer_foreign_keys = ON"))
        yield
    elif dialect == "mysql":
        session.execute(text("SET FOREIGN_KEY_CHECKS = 0"))
        try:
            yield
        finally:
            session.execute(text("SET FOREIGN_KEY_CHECKS = 1"))
    elif dialect == "postgresql":
        session.execute(text("SET CONSTRAINTS ALL DEFERRED"))
        yield
    else:
        yield


class JsonImportService(ImportFrame):
    """Upserts backup rows by primary key.

    Unlike the CSV importers a restore is all-or-nothing: any bad row rolls
    back the whole load.
    """

    def import_json(
        self, json_file_path: Union[str, Path], table_name: Optional[str] = None, dry_run: bool = False
    ) -> dict[str, Any]:
        """Load a JSON backup.

        The payload is either a complete backup (an object keyed by table
        name), a list of rows, or a single row object. The last two need
        ``table_name``.

        Raises:
            FileNotFoundError: If the file does not exist
            ValidationError: If the payload shape or table is not recognised
        """
        path = Path(json_file_path)
        if not path.exists():
            raise FileNotFoundError(f"JSON file not found: {json_file_path}")
        with open(path, encoding="utf-8-sig") as f:
            try:
                payload = json.load(f)
            except json.JSONDecodeError as e:
                raise ValidationError(f"Invalid JSON: {e}") from e

        tables = restorable_tables()
        plan = self._plan(payload, table_name, tables)
        return self._run(
            "JSON import complete",
            ("created", "updated", "skipped"),
            self._process,
            plan,
            tables,
            dry_run=dry_run,
        )

    def _plan(self, payload: Any, table_name: Optional[str], tables: dict[str, Table]) -> dict[str, list]:
        if isinstance(payload, dict) and payload and any(key in tables for key in payload):
            unknown = [key for key in payload if key not in tables]
            if unknown:
                logger.warning("Ignoring unknown tables in backup: %s", ", ".join(sorted(unknown)))
            plan = {}
            for name, rows in payload.items():
                if name not in tables:
                    continue
                if not isinstance(rows, list):
                    raise ValidationError(f"Table '{name}' must map to a list of rows")
                plan[name] = rows
            return plan

        if table_name is None:
            raise ValidationError("A table name is required for this JSON payload.")
        if table_name not in tables:
            raise ValidationError(f"Unknown table '{table_name}'")
        if isinstance(payload, list):
            return {table_name: payload}
        if isinstance(payload, dict):
            return {table_name: [payload]}
        raise ValidationError("JSON payload must be an object or an array of objects.")

    def _process(self, context: ImportContext, result: ImportResult, plan: dict[str, list], tables) -> None:
        session = context.session
        with foreign_keys_deferred(session):
            # Parents before children.
            for name in (name for name in tables if name in plan):
                rows = plan[name]
                table = tables[name]
                for start in range(0, len(rows), CHUNK_SIZE):
                    self._upsert_chunk(session, result, table, rows[start : start + CHUNK_SIZE])
                logger.info("Restored %d rows into %s", len(rows), name)

    def _upsert_chunk(self, session: Session, result: ImportResult, table: Table, rows: list) -> None:
        prepared = []
        for row in rows:
            if not isinstance(row, dict):
                result.increment("skipped")
                continue
            values = {
                key: coerce_value(table.c[key], value) for key, value in row.items() if key in table.c
            }
            if not values:
                result.increment("skipped")
                continue
            prepared.append(values)

        ids = [values["id"] for values in prepared if values.get("id") is not None]
        existing = set()
        if ids:
            existing = set(session.execute(select(table.c.id).where(table.c.id.in_(ids))).scalars())

        inserts: dict[frozenset, list[dict]] = {}
        for values in prepared:
            row_id = values.get("id")
            if row_id is not None and row_id in existing:
                changes = {key: value for key, value in values.items() if key != "id"}
                if changes:
                    session.execute(table.update().where(table.c.id == row_id).values(**changes))
                result.increment("updated")
            else:
                inserts.setdefault(frozenset(values), []).append(values)

        # executemany needs one key set per statement.
        for batch in inserts.values():
            session.execute(table.insert(), batch)
            result.increment("created", len(batch))
