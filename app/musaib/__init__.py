import logging

from dotenv import load_dotenv
from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException

from app.musaib.config import load_config
from app.musaib.db import init_db, teardown_db_session
from app.musaib.errors import PortalError
from app.musaib.routes import bp as routes_bp
from app.musaib.auth import load_current_user
from app.musaib.modules.family.routes import bp as family_bp
from app.musaib.modules.demands.routes import bp as demands_bp
from app.musaib.modules.profiles.routes import bp as profiles_bp
from app.musaib.modules.notifications.routes import bp as notifications_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must point to Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            # Uploads degrade to "no document" rather than failing requests.
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    app.register_blueprint(routes_bp)
    app.register_blueprint(family_bp, url_prefix="/family")
    app.register_blueprint(demands_bp, url_prefix="/demands")
    app.register_blueprint(profiles_bp, url_prefix="/admin")
    app.register_blueprint(notifications_bp, url_prefix="/notifications")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    def _rollback() -> None:
        s = getattr(g, "db_session", None)
        if s is not None:
            s.rollback()

    @app.errorhandler(PortalError)
    def _portal_error(e: PortalError):
        _rollback()
        log = app.logger.error if e.http_status >= 500 else app.logger.info
        log("%s: %s (request_id=%s)", e.code, e, getattr(g, "request_id", None))
        return jsonify({"error": e.code, "message": str(e)}), e.http_status

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        body = {"error": (e.name or "error").lower().replace(" ", "_"), "message": e.description}
        if e.code == 403:
            missing = getattr(g, "missing_permission", None)
            if missing:
                app.logger.warning(
                    "Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None)
                )
                body["missing_permission"] = missing
        return jsonify(body), e.code

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        _rollback()
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "internal_error", "message": "Unexpected server error."}), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
