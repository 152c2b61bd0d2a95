"""
Document Review Workflow Engine
Flask Application Factory.

Usage:
    from docflow import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import importlib
import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from docflow.config import config
from docflow.middleware.jwt_auth import init_jwt_middleware
from docflow.middleware.logging_config import configure_logging
from docflow.middleware.rate_limiter import init_rate_limits
from docflow.middleware.timing import init_request_timing
from docflow.models import db
from docflow.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.actor) ───────────────────────────────
    init_jwt_middleware(app)

    # ── Model registration (metadata for create_all / migrations) ────────
    from docflow.models import assignment, audit, checklist, locking, scheduling, template  # noqa: F401

    # ── Blueprints ───────────────────────────────────────────────────────
    from docflow.blueprints.assignments_bp import assignments_bp
    from docflow.blueprints.checklists_bp import checklists_bp
    from docflow.blueprints.locks_bp import locks_bp
    from docflow.blueprints.ops_bp import ops_bp
    from docflow.blueprints.tasks_bp import tasks_bp
    from docflow.blueprints.templates_bp import templates_bp

    app.register_blueprint(templates_bp)
    app.register_blueprint(assignments_bp)
    app.register_blueprint(checklists_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(locks_bp)
    app.register_blueprint(ops_bp)

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Document Review Workflow Engine"}

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Scheduler initialization (import jobs to register them) ──────────
    importlib.import_module("docflow.services.scheduled_jobs")  # registers @register_job handlers
    from docflow.services.scheduler_service import SchedulerService, get_registered_jobs
    SchedulerService.init_app(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("run-job")
    @click.argument("job_name")
    def run_job_cmd(job_name):
        """Run one registered scheduled job now (e.g. auto_lock_sweep)."""
        if job_name not in get_registered_jobs():
            raise click.BadParameter(
                f"unknown job '{job_name}'; registered: {', '.join(sorted(get_registered_jobs()))}"
            )
        result = SchedulerService.run_job(job_name)
        click.echo(f"{job_name}: {result['status']} in {result['duration_ms']} ms")
        if result["error"]:
            raise click.ClickException(result["error"])
        click.echo(f"result: {result['result']}")

    @app.cli.command("create-db")
    def create_db_cmd():
        """Create all tables without migrations (local SQLite convenience)."""
        db.create_all()
        click.echo("Tables created.")

    @app.cli.command("issue-token")
    @click.argument("actor_id")
    @click.option("--role", "roles", multiple=True, help="Role name; repeat for several.")
    @click.option("--permission", "permissions", multiple=True, help="Extra capability.")
    @click.option("--expires", type=int, default=None, help="Lifetime in seconds.")
    def issue_token_cmd(actor_id, roles, permissions, expires):
        """Print a signed access token for a service account or local testing."""
        from docflow.services.authorization import ROLE_CAPABILITIES
        from docflow.services.jwt_service import generate_access_token

        unknown = [r for r in roles if r not in ROLE_CAPABILITIES]
        if unknown:
            raise click.BadParameter(f"unknown role(s): {', '.join(unknown)}")
        click.echo(generate_access_token(actor_id, roles, permissions, expires_in=expires))

    if app.config.get("SCHEDULER_ENABLED") and not app.config.get("TESTING"):
        # The reloader parent process must not run the sweep as well
        if not app.debug or os.environ.get("WERKZEUG_RUN_MAIN") == "true":
            SchedulerService.start()

    logger.info("App created: config=%s blueprints=%d", config_name, len(app.blueprints))
    return app
