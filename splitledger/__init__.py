"""SplitLedger application factory and bootstrap."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from flask import Flask

from splitledger.config import config_by_name
from splitledger.core.events.event_bus import event_bus
from splitledger.extensions import init_extensions

ERROR_STATUS = {
    "not_found": 404,
    "validation_error": 400,
    "data_integrity_error": 422,
    "unauthorized": 403,
    "invalid_state_transition": 409,
    "conflict": 409,
}


def create_app(config_name: Optional[str] = None) -> Flask:
    """Create and configure the SplitLedger Flask application."""
    env_name = (config_name or os.environ.get("APP_ENV") or "development").lower()
    project_root = Path(__file__).resolve().parent.parent
    instance_root = project_root / "instance"

    app = Flask(
        __name__,
        instance_path=str(instance_root),
        instance_relative_config=True,
    )
    config_cls = config_by_name.get(env_name, config_by_name["development"])
    app.config.from_object(config_cls)

    # Normalize sqlite path to absolute to avoid "unable to open database file"
    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if db_uri.startswith("sqlite:///"):
        db_path = db_uri.replace("sqlite:///", "", 1)
        abs_path = Path(db_path)
        if not abs_path.is_absolute():
            abs_path = project_root / db_path
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{abs_path}"

    _configure_logging(app)
    init_extensions(app)
    _register_blueprints(app)
    _register_error_handlers(app)

    app.extensions["event_bus"] = event_bus

    @app.get("/health")
    def health():
        return {"ok": True}, 200

    from splitledger.scripts.dispatch_outbox import register_commands

    register_commands(app)

    return app


def _configure_logging(app: Flask) -> None:
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    app.logger.setLevel(level)
    logging.getLogger("splitledger").setLevel(level)


def _register_blueprints(app: Flask) -> None:
    """Lazy import and register all controllers."""
    from splitledger.domains.groups.controllers.balance_api import balance_api_bp
    from splitledger.domains.groups.controllers.settlement_api import settlement_api_bp
    from splitledger.domains.groups.controllers.split_api import split_api_bp

    app.register_blueprint(balance_api_bp, url_prefix="/api")
    app.register_blueprint(split_api_bp, url_prefix="/api")
    app.register_blueprint(settlement_api_bp, url_prefix="/api")


def _register_error_handlers(app: Flask) -> None:
    """JSON error responses, including ledger domain failures."""
    from werkzeug.exceptions import HTTPException

    from splitledger.domains.groups.errors import LedgerError

    @app.errorhandler(LedgerError)
    def _ledger_error(exc: LedgerError):
        body = {"ok": False, "error": exc.code, "message": str(exc)}
        if exc.details:
            body["details"] = exc.details
        return body, ERROR_STATUS.get(exc.code, 400)

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return {"ok": False, "error": exc.description}, exc.code

    @app.errorhandler(Exception)
    def _generic_error(exc: Exception):
        app.logger.exception("Unhandled error: %s", exc)
        if app.debug or app.testing:
            return {"ok": False, "error": str(exc)}, 500
        return {"ok": False, "error": "unexpected_error"}, 500
