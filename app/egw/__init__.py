import logging
import time

from flask import Flask, g, request
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect

from app.egw.config import load_config
from app.egw.db import init_db, teardown_db_session
from app.egw.modules.etemplate.attrs import TemplateParseError
from app.egw.modules.etemplate.delivery import bp as etemplate_bp
from app.egw.routes import bp as routes_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    # Cache storage health check (fail loudly on misconfiguration)
    if app.config.get("CACHE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("CACHE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    app.register_blueprint(routes_bp)
    app.register_blueprint(etemplate_bp)

    @app.before_request
    def _start_timer():
        g.request_started = time.perf_counter()

    app.teardown_appcontext(teardown_db_session)

    # Template requests query the overrides table; report a missing one once at boot.
    try:
        insp = sa_inspect(app.extensions["sqlalchemy_engine"])
        if not insp.has_table("template_overrides"):
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: template_overrides (table)")
    except Exception as e:
        app.logger.exception("Schema health check failed: %s", e)

    @app.errorhandler(TemplateParseError)
    def _err_template(e):  # type: ignore[no-redef]
        app.logger.error("eTemplate transform failed for %s: %s", request.path, e)
        return "Template can not be transformed.", 500

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 path=%s", request.path)
        return "Internal Server Error", 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
