import logging
import os
import re
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from sqlalchemy import text
from werkzeug.exceptions import HTTPException

# Load environment variables conditionally
# Only load from .env when DATABASE_URL is not already defined by the environment
if not os.getenv("DATABASE_URL"):
    load_dotenv()

from salon_booking.core.api_utils import api_response  # noqa: E402
from salon_booking.core.exceptions import SchedulingError  # noqa: E402
from salon_booking.db.session import DEFAULT_DATABASE_URL, create_tables, get_engine  # noqa: E402

logger = logging.getLogger(__name__)


def _mask_url_password(url: str) -> str:
    return re.sub(r"(://[^:/?#]+):[^@]*@", r"\1:***@", url)


def test_database_connection() -> bool:
    """Run SELECT 1 against the configured database."""
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error(
            "Database connection failed",
            extra={"context": {"error": str(e)}},
            exc_info=True,
        )
        return False


def _init_sentry(env: str) -> None:
    sentry_dsn = os.getenv("SENTRY_DSN")
    if not sentry_dsn:
        logger.info(
            "Sentry not initialized (SENTRY_DSN not set)",
            extra={"context": {"environment": env}},
        )
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=env,
        release=os.getenv("GIT_SHA", "unknown"),
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info(
        "Sentry initialized",
        extra={
            "context": {
                "environment": env,
                "release": os.getenv("GIT_SHA", "unknown"),
                "traces_sample_rate": 0.1,
            }
        },
    )


def _init_metrics(app: Flask, env: str) -> None:
    metrics_env = os.getenv("METRICS_ENABLED", "1").lower().strip()
    if app.config.get("TESTING") or metrics_env in ("0", "false", "no"):
        logger.info("Prometheus metrics disabled")
        return

    from prometheus_flask_exporter import PrometheusMetrics

    metrics = PrometheusMetrics(app)
    try:
        metrics.info(
            "app_info",
            "Application information",
            version=os.getenv("GIT_SHA", "unknown"),
            environment=env,
        )
    except ValueError as e:
        # Metric already registered (create_app called more than once)
        logger.debug(
            "app_info metric already registered",
            extra={"context": {"error": str(e)}},
        )
    logger.info("Prometheus metrics initialized", extra={"context": {"endpoint": "/metrics"}})


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(SchedulingError)
    def handle_scheduling_error(error: SchedulingError):
        level = logging.ERROR if error.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "Request failed",
            extra={
                "context": {
                    "error_code": error.error_code,
                    "status_code": error.status_code,
                    "error_message": error.message,
                }
            },
        )
        response, status = api_response(False, error.message, status_code=error.status_code)
        payload = response.get_json()
        payload["error"] = error.to_dict()
        return jsonify(payload), status

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return api_response(False, error.description or error.name, status_code=error.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.error(
            "Unhandled error",
            extra={"context": {"error": str(error)}},
            exc_info=True,
        )
        return api_response(False, "Internal server error", status_code=500)


def create_app(config: Optional[dict] = None) -> Flask:
    """Application factory.

    ``config`` is merged into ``app.config`` before anything else runs;
    tests use it to inject a NOTIFICATION_DISPATCHER.
    """
    env = os.getenv("FLASK_ENV", "development")
    is_production = env == "production"

    database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    os.environ["DATABASE_URL"] = database_url

    app = Flask(__name__)

    # Set TESTING config from environment variable (before any other configuration)
    testing_env = os.getenv("TESTING", "").lower().strip()
    if testing_env in ("true", "1", "yes"):
        app.config["TESTING"] = True
    app.config["JSON_SORT_KEYS"] = False
    if config:
        app.config.update(config)

    from salon_booking.core.logging_config import setup_logging

    setup_logging(
        app=app,
        log_level=logging.INFO if is_production else logging.DEBUG,
        enable_sql_echo=os.getenv("SQL_ECHO", "0").lower() in ("1", "true", "yes"),
        use_json_format=is_production,
    )
    logger.info(
        "Logging configured",
        extra={
            "context": {
                "environment": env,
                "json_format": is_production,
                "database_url": _mask_url_password(database_url),
            }
        },
    )

    from salon_booking.core.config import (
        log_calendar_config,
        log_notification_config,
        log_timezone_config,
    )

    log_timezone_config()
    log_calendar_config()
    log_notification_config()

    _init_sentry(env)
    _init_metrics(app, env)

    create_tables()

    from salon_booking.controllers.appointment_controller import appointment_bp
    from salon_booking.controllers.dependencies import close_db_session
    from salon_booking.controllers.proposed_meeting_controller import proposed_meeting_bp
    from salon_booking.controllers.scheduling_controller import scheduling_bp

    app.register_blueprint(scheduling_bp)
    app.register_blueprint(appointment_bp)
    app.register_blueprint(proposed_meeting_bp)
    app.teardown_appcontext(close_db_session)

    @app.route("/health", methods=["GET"])
    def health():
        db_ok = test_database_connection()
        status = 200 if db_ok else 503
        return jsonify({"status": "ok" if db_ok else "degraded", "database": db_ok}), status

    _register_error_handlers(app)

    logger.info(
        "Application created",
        extra={"context": {"blueprints": sorted(app.blueprints.keys())}},
    )
    return app
