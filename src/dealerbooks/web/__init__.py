"""Flask application exposing the QuickBooks import endpoints."""

import logging
import os

from dotenv import load_dotenv
from flask import Flask, current_app, g

from dealerbooks.config import configure_logging, load_settings
from dealerbooks.database.models import create_session_factory
from dealerbooks.database.sqlalchemy_db import SQLAlchemyDatabase

load_dotenv()


def get_db() -> SQLAlchemyDatabase:
    """Database for the current request, opened on first use."""
    if "db" not in g:
        session_factory = current_app.extensions["dealerbooks"]["session_factory"]
        g.db = SQLAlchemyDatabase(current_app.config["DATABASE_URL"], session_factory)
    return g.db


def create_app(test_config: dict | None = None):
    app = Flask(__name__)

    settings = load_settings()
    app.config.from_mapping(
        DATABASE_URL=settings.database_url,
        MAX_UPLOAD_KB=settings.max_upload_kb,
        LOG_LEVEL=settings.log_level,
    )
    if test_config:
        app.config.update(test_config)

    # ---- Logging ----
    configure_logging(app.config["LOG_LEVEL"])
    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # one engine per app, one session per request
    app.extensions["dealerbooks"] = {
        "session_factory": create_session_factory(app.config["DATABASE_URL"]),
    }

    @app.teardown_appcontext
    def close_db(exc):
        db = g.pop("db", None)
        if db is not None:
            db.disconnect()

    from dealerbooks.web.imports import imports_bp

    app.register_blueprint(imports_bp, url_prefix="/api")

    app.logger.info("dealerbooks app created (database %s)", _redacted(app.config["DATABASE_URL"]))
    return app


def _redacted(database_url: str) -> str:
    # keep credentials out of the log
    scheme, sep, rest = database_url.partition("://")
    if "@" in rest:
        rest = "***@" + rest.split("@", 1)[1]
    return scheme + sep + rest


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
