import json
import os

import click
from flask import Flask, jsonify, request, g
from sqlalchemy import text
from werkzeug.exceptions import HTTPException

from comercial.errors import ComercialError
from comercial.extensions import db, migrate, cors
from comercial.segments.segment_commissions_admin import commissions_admin_bp
from comercial.segments.segment_discounts import discounts_bp
from comercial.segments.segment_documents import documents_bp
from comercial.segments.segment_shipping import shipping_bp
from comercial.utils.jwt_utils import decode_token, get_bearer_token
from comercial.utils.observability import get_request_id, init_sentry, install_request_observers


def _env_int(name: str, default: int, *, minimum: int = 1, maximum: int = 100000) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        value = int(default)
    else:
        try:
            value = int(raw)
        except ValueError:
            value = int(default)
    if value < minimum:
        value = minimum
    if value > maximum:
        value = maximum
    return value


def _error_payload(error: str, message: str, status: int) -> dict:
    payload = {
        "ok": False,
        "error": error,
        "message": message,
        "status": int(status),
    }
    rid = (get_request_id() or "").strip()
    if rid:
        payload["trace_id"] = rid
    return payload


def create_app():
    app = Flask(__name__)
    init_sentry(app)

    env = (os.getenv("COMERCIAL_ENV", "dev") or "dev").strip().lower()

    # Production safety checks
    if env in ("prod", "production"):
        secret = (os.getenv("SECRET_KEY") or "").strip()
        if not secret or len(secret) < 16:
            raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")
        if not (os.getenv("DATABASE_URL") or "").strip() and not (os.getenv("SQLALCHEMY_DATABASE_URI") or "").strip():
            raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")

    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["JSON_SORT_KEYS"] = False

    instance_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "instance"))
    os.makedirs(instance_dir, exist_ok=True)

    database_url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL")
    if not database_url:
        database_url = "sqlite:///instance/comercial.db"
    if database_url.startswith("sqlite://") and database_url != "sqlite:///:memory:":
        canonical_path = os.path.join(instance_dir, "comercial.db")
        database_url = f"sqlite:///{canonical_path.replace(os.sep, '/')}"
    if database_url.startswith("postgres://"):
        database_url = "postgresql://" + database_url[len("postgres://"):]
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    engine_options = {
        "pool_pre_ping": True,
        "pool_recycle": _env_int("DB_POOL_RECYCLE_SECONDS", 1800, minimum=60, maximum=86400),
    }
    if not database_url.startswith("sqlite://"):
        engine_options.update(
            {
                "pool_size": _env_int("DB_POOL_SIZE", 10, minimum=1, maximum=200),
                "max_overflow": _env_int("DB_MAX_OVERFLOW", 20, minimum=0, maximum=500),
                "pool_timeout": _env_int("DB_POOL_TIMEOUT_SECONDS", 30, minimum=1, maximum=300),
            }
        )
        app.logger.info(
            "db_pooling_enabled pool_size=%s max_overflow=%s pool_timeout=%s pool_recycle=%s",
            engine_options["pool_size"],
            engine_options["max_overflow"],
            engine_options["pool_timeout"],
            engine_options["pool_recycle"],
        )
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options

    cors_origins = (os.getenv("CORS_ORIGINS") or "").strip()
    if env in ("prod", "production"):
        origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    else:
        origins = ["*"] if not cors_origins else [o.strip() for o in cors_origins.split(",") if o.strip()]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    db.init_app(app)
    migrate.init_app(app, db)
    install_request_observers(app)

    @app.errorhandler(ComercialError)
    def _api_domain_error(error: ComercialError):
        payload = _error_payload(error.code, error.message, error.status_code)
        if error.details:
            payload["details"] = error.details
        if error.status_code >= 500:
            app.logger.error("domain_error path=%s code=%s", request.path, error.code)
        return jsonify(payload), int(error.status_code)

    @app.errorhandler(HTTPException)
    def _api_http_exception(error: HTTPException):
        # Keep API failures JSON-only for predictable frontend handling.
        if not request.path.startswith("/api/"):
            return error
        return jsonify(_error_payload(error.name, error.description or error.name, error.code or 500)), int(error.code or 500)

    @app.errorhandler(Exception)
    def _api_unhandled_exception(error: Exception):
        app.logger.exception("unhandled_exception path=%s", request.path)
        db.session.rollback()
        return jsonify(_error_payload("InternalServerError", "Internal server error", 500)), 500

    app.register_blueprint(discounts_bp)
    app.register_blueprint(shipping_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(commissions_admin_bp)

    @app.get("/api/health")
    def health():
        db_state = "ok"
        db_error = None
        try:
            with db.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            db_state = "fail"
            msg = str(e)
            if msg:
                db_error = (msg[:300] + "...") if len(msg) > 300 else msg
        payload = {
            "ok": True,
            "service": "comercial-backend",
            "env": env,
            "db": db_state,
            "git_sha": (os.getenv("GIT_SHA") or "unknown").strip(),
        }
        if db_error:
            payload["db_error"] = db_error
        return jsonify(payload)

    @app.before_request
    def _capture_auth_context():
        g.auth_subject = None
        g.auth_role = None
        token = get_bearer_token(request.headers.get("Authorization", ""))
        if not token:
            return
        payload = decode_token(token)
        if not payload:
            return
        g.auth_subject = str(payload.get("sub") or "") or None
        g.auth_role = (str(payload.get("role") or "")).strip().lower() or None

    @app.before_request
    def _reset_db_session():
        db.session.rollback()

    @app.teardown_request
    def _cleanup_db_session(exc):
        try:
            if exc is not None:
                db.session.rollback()
        finally:
            db.session.remove()

    @app.cli.command("backfill-commissions")
    @click.option("--limit", type=int, default=None, help="Maximum parcels per query.")
    def backfill_commissions_command(limit):
        from comercial.services.commission_service import backfill_commissions

        summary = backfill_commissions(limit=limit)
        click.echo(json.dumps(summary, indent=2, sort_keys=True))
        if not summary.get("ok"):
            raise click.exceptions.Exit(2)

    @app.cli.command("release-commissions")
    @click.option("--as-of", "as_of", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
    def release_commissions_command(as_of):
        from comercial.services.commission_status_service import release_due_commissions, release_policy_from_env

        summary = release_due_commissions(
            as_of=as_of.date() if as_of else None,
            policy=release_policy_from_env(),
        )
        click.echo(json.dumps(summary, indent=2, sort_keys=True))

    return app
