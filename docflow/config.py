"""
Document Review Workflow Engine
Configuration classes for the Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name]())

Environment variables:
    DATABASE_URL / TEST_DATABASE_URL   SQLAlchemy URL (postgres:// accepted)
    SECRET_KEY, JWT_SECRET_KEY         signing keys (JWT falls back to SECRET_KEY)
    JWT_ISSUER, JWT_ACCESS_EXPIRES     token issuer and lifetime in seconds
    CORS_ORIGINS                       comma separated, "*" for any
    REDIS_URL                          rate-limit storage ("memory://" default)
    WRITE_RATE_LIMIT, READ_RATE_LIMIT  Flask-Limiter strings per blueprint
    SCHEDULER_ENABLED                  run the auto-lock sweep thread
    AUTO_LOCK_INTERVAL_SECONDS         sweep interval
    SCHEDULER_TICK_SECONDS             how often the thread checks for due jobs
    LOG_LEVEL                          read by logging_config
"""

import logging
import os
import secrets

logger = logging.getLogger(__name__)

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'docflow_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Regenerated per process; only acceptable outside production
_DEV_SECRET = secrets.token_hex(32)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _database_url(var: str, fallback: str | None) -> str | None:
    """Read a database URL, normalising Heroku-style ``postgres://``."""
    raw = os.getenv(var, "")
    if not raw:
        return fallback
    return raw.replace("postgres://", "postgresql://", 1)


class Config:
    """Settings shared by every environment."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # Identity
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "docflow")
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "900"))

    # Database
    SQLALCHEMY_DATABASE_URI = _database_url("DATABASE_URL", _SQLITE_DEV)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # HTTP
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024  # JSON bodies only; files live elsewhere
    REDIS_URL = os.getenv("REDIS_URL", "memory://")
    WRITE_RATE_LIMIT = os.getenv("WRITE_RATE_LIMIT", "60/minute")
    READ_RATE_LIMIT = os.getenv("READ_RATE_LIMIT", "200/minute")

    # Auto-lock sweep
    SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED", "true")
    AUTO_LOCK_INTERVAL_SECONDS = int(os.getenv("AUTO_LOCK_INTERVAL_SECONDS", "900"))
    SCHEDULER_TICK_SECONDS = int(os.getenv("SCHEDULER_TICK_SECONDS", "30"))


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    """In-memory SQLite, fixed keys, no background thread, no rate limits."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = _database_url("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SECRET_KEY = "testing-secret-key-with-enough-length-for-hs256"
    JWT_SECRET_KEY = None
    JWT_ISSUER = "docflow"
    JWT_ACCESS_EXPIRES = 900
    SCHEDULER_ENABLED = False
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """PostgreSQL only; refuses to start without a database and a stable key."""

    SQLALCHEMY_DATABASE_URI = _database_url("DATABASE_URL", None)
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")
        if self.REDIS_URL == "memory://":
            logger.warning("REDIS_URL not set; rate limits are counted per worker")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
