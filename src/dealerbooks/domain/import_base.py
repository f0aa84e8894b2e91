"""Transaction and per-row failure boundaries shared by every importer."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.exc import OperationalError

from dealerbooks.database.base import Database
from dealerbooks.domain.context import ImportContext
from dealerbooks.domain.errors import ImportFailedError, row_error
from dealerbooks.utils.fields import sanitize_text

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Counters and row errors reported back to the caller."""

    message: str
    counts: dict[str, int]
    errors: list[str] = field(default_factory=list)

    def increment(self, key: str, by: int = 1) -> None:
        self.counts[key] = self.counts.get(key, 0) + by

    def add_error(self, row_num: Optional[int], message: str) -> None:
        if row_num is None:
            self.errors.append(sanitize_text(message))
        else:
            self.errors.append(sanitize_text(row_error(row_num, message)))

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, **self.counts, "errors": list(self.errors)}


class ImportFrame:
    """Base class for importers.

    One call to ``_run`` is one database transaction: it commits when the
    processing function returns and rolls everything back if an exception
    escapes it. Inside, each row runs in ``_row``, a savepoint whose failure
    only discards that row.
    """

    def __init__(self, db: Database, today: Optional[date] = None):
        self.db = db
        self.today = today

    def _run(
        self,
        message: str,
        counters: tuple[str, ...],
        process: Callable[..., None],
        *args: Any,
        dry_run: bool = False,
    ) -> dict[str, Any]:
        result = ImportResult(message=message, counts={name: 0 for name in counters})
        logger.info("Starting %s", message.lower().replace(" complete", ""))

        try:
            with self.db.transaction() as session:
                context = ImportContext(session=session, today=self.today or date.today())
                process(context, result, *args)
                if dry_run:
                    session.rollback()
        except Exception as e:
            logger.exception("Import failed, transaction rolled back")
            raise ImportFailedError(sanitize_text(str(e)), result.errors) from e

        if dry_run:
            result.message += " (dry run, nothing saved)"
        logger.info("%s: %s, %d row errors", message, result.counts, len(result.errors))
        return result.to_dict()

    @contextmanager
    def _row(
        self,
        context: ImportContext,
        result: ImportResult,
        row_num: int,
        skip_key: Optional[str] = "skipped",
    ) -> Iterator[None]:
        """Run one row inside a savepoint; a failure skips just that row.

        Database connectivity errors are not row problems and abort the
        whole import.
        """
        savepoint = context.session.begin_nested()
        try:
            yield
            savepoint.commit()
        except OperationalError:
            raise
        except Exception as e:
            if savepoint.is_active:
                savepoint.rollback()
            context.reset_caches()
            result.add_error(row_num, str(e))
            if skip_key is not None:
                result.increment(skip_key)
            logger.warning("Row %d skipped: %s", row_num, e)
