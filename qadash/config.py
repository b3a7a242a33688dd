"""
qadash configuration classes for the Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when no database server is configured
_SQLITE_DEV = f"sqlite+aiosqlite:///{os.path.join(basedir, 'instance', 'qadash_dev.db')}"
_SQLITE_TEST = f"sqlite+aiosqlite:///{os.path.join(basedir, 'instance', 'qadash_test.db')}"

# Auth is out of scope: every owned row belongs to this fixed user
_DEFAULT_USER = "00000000-0000-0000-0000-000000000001"


def _env_bool(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _async_url(url):
    """Map sync driver URLs (postgres://, sqlite://) to their async drivers."""
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


class Config:
    """Base configuration shared across all environments."""

    DEBUG = False
    TESTING = False

    # Database
    DATABASE_URL = None
    AUTO_CREATE_SCHEMA = _env_bool("AUTO_CREATE_SCHEMA", "true")

    # Fixed dashboard user
    DEFAULT_USER_ID = os.getenv("DEFAULT_USER_ID", _DEFAULT_USER)

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Integration sync
    SYNC_PROVIDER_TIMEOUT_SECONDS = float(os.getenv("SYNC_PROVIDER_TIMEOUT_SECONDS", "30"))
    SYNC_SERIALIZE_PER_INTEGRATION = _env_bool("SYNC_SERIALIZE_PER_INTEGRATION")
    SYNC_DEFAULT_BATCH_SIZE = int(os.getenv("SYNC_DEFAULT_BATCH_SIZE", "20"))
    SYNC_SIMULATED_LATENCY_SECONDS = float(os.getenv("SYNC_SIMULATED_LATENCY_SECONDS", "0"))
    WEBHOOK_TIMEOUT_SECONDS = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    DATABASE_URL = _async_url(_raw_db_url) if _raw_db_url else _SQLITE_DEV
    # Simulated provider round trip so the UI shows the in_progress state
    SYNC_SIMULATED_LATENCY_SECONDS = float(os.getenv("SYNC_SIMULATED_LATENCY_SECONDS", "1"))


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    DATABASE_URL = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    AUTO_CREATE_SCHEMA = True
    SYNC_PROVIDER_TIMEOUT_SECONDS = 5.0
    SYNC_SIMULATED_LATENCY_SECONDS = 0.0


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    _raw_db_url = os.getenv("DATABASE_URL", "")
    DATABASE_URL = _async_url(_raw_db_url) if _raw_db_url else None
    AUTO_CREATE_SCHEMA = _env_bool("AUTO_CREATE_SCHEMA")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

    def __init__(self):
        if not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL environment variable is required in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
