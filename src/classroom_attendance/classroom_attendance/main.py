from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .common.logging_setup import configure_logging
from .common.web import register_error_handlers
from .container import Container, build_container
from .database.bootstrap import apply_schema, list_tables
from .events.controller import register as register_events
from .reports.controller import register as register_reports
from .sessions.controller import register as register_sessions

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parents[3] / "database" / "schema.sql"


def create_app(container: Optional[Container] = None) -> Flask:
    """Application factory.

    Passing ``container`` skips every database step, which is how the API
    tests run against in-memory repositories.
    """
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if getattr(settings, "AUTO_INIT_DB", False):
            apply_schema(db_config, schema_path=SCHEMA_PATH)
            logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))

        container = build_container(
            db_config=db_config,
            otp_secret=getattr(settings, "OTP_SECRET"),
            otp_step_seconds=int(getattr(settings, "OTP_STEP_SECONDS", 30)),
            identity_timeout=float(getattr(settings, "IDENTITY_TIMEOUT_SECONDS", 2.0)),
            rate_limit=getattr(settings, "CHECKIN_RATE_LIMIT", None),
        )

    app.extensions["classroom_attendance"] = container
    register_error_handlers(app)

    register_sessions(app, container)
    register_attendance(app, container)
    register_reports(app, container)
    register_events(app, container)

    @app.route("/api/health", methods=["GET"], endpoint="api_health")
    def health():
        return jsonify({"success": True, "status": "ok"})

    return app
