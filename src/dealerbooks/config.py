"""Runtime configuration and logging setup.

Settings come from the environment; a ``.env`` file in the working
directory is loaded first when present.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from dealerbooks.database.factories import default_database_path
from dealerbooks.domain.uploads import DEFAULT_MAX_UPLOAD_KB

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class Settings:
    database_url: str
    max_upload_kb: int = DEFAULT_MAX_UPLOAD_KB
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Read DEALERBOOKS_* variables (after loading .env)."""
    load_dotenv()
    database_url = os.getenv("DEALERBOOKS_DATABASE_URL")
    if not database_url:
        database_url = f"sqlite:///{default_database_path()}"
    return Settings(
        database_url=database_url,
        max_upload_kb=int(os.getenv("DEALERBOOKS_MAX_UPLOAD_KB", str(DEFAULT_MAX_UPLOAD_KB))),
        log_level=os.getenv("DEALERBOOKS_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: Optional[str] = None) -> None:
    """Send all logging to stderr in one format."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # avoid duplicate handlers when called twice
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
