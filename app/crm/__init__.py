import os
import time

from flask import Flask, g, request
from dotenv import load_dotenv

from app.crm.config import DEFAULT_ADMIN_PASSWORD, DEFAULT_USER_PASSWORD, load_config
from app.crm.db import init_db, teardown_db_session
from app.crm.logging_config import setup_logging
from app.crm.models import Base  # noqa: F401  (registers every module's tables first)
from app.crm.errors import register_error_handlers
from app.crm.routes import bp as routes_bp
from app.crm.auth import CORRELATION_ID_HEADER, HEALTH_PATHS, init_static_users, load_current_user
from app.crm.modules.customers.api import bp as customers_bp


def _check_production_guardrails(app: Flask) -> None:
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
        raise RuntimeError("DATABASE_URL is required in production.")
    if str(app.config["DATABASE_URL"]).startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if app.config.get("API_USER_PASSWORD") == DEFAULT_USER_PASSWORD or app.config.get("API_ADMIN_PASSWORD") == DEFAULT_ADMIN_PASSWORD:
        raise RuntimeError("API_USER_PASSWORD and API_ADMIN_PASSWORD must be changed from their defaults in production.")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False  # keep response keys in the order views build them

    setup_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Production guardrails (fail fast with clear logs)
    _check_production_guardrails(app)

    init_db(app)
    init_static_users(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(customers_bp, url_prefix="/api/v1")
    register_error_handlers(app)

    @app.before_request
    def _log_request():
        load_current_user()
        g.request_started = time.perf_counter()
        if request.path.startswith(HEALTH_PATHS):
            return None
        app.logger.info(
            "HTTP Request: %s %s%s | Remote: %s | User-Agent: %s",
            request.method,
            request.path,
            f"?{request.query_string.decode('latin-1')}" if request.query_string else "",
            request.headers.get("X-Forwarded-For", request.remote_addr),
            request.user_agent.string or "-",
        )
        return None

    @app.after_request
    def _log_response(response):
        rid = getattr(g, "request_id", None)
        if rid:
            response.headers[CORRELATION_ID_HEADER] = rid
        if not request.path.startswith(HEALTH_PATHS):
            started = getattr(g, "request_started", None)
            duration_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
            app.logger.info("HTTP Response: %s | Duration: %.1fms", response.status_code, duration_ms)
        return response

    app.teardown_appcontext(teardown_db_session)

    # Startup logging
    import logging
    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
