"""
Environment-specific settings, selected by APP_ENV in ``create_app``.

Everything an operator may need to change comes from the environment:
database, secrets, CORS origins, rate limits and the analysis service
address and timeouts.
"""

import os
import re
import secrets

_PROJECT_ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
_LOCAL_SQLITE = "sqlite:///" + os.path.join(_PROJECT_ROOT, "instance", "sentiment_dev.db")


def _database_url(default=None):
    url = os.getenv("DATABASE_URL", "")
    if not url:
        return default
    # SQLAlchemy only accepts the postgresql:// scheme
    return url.replace("postgres://", "postgresql://", 1)


def _analysis_service_url() -> str:
    """ANALYSIS_SERVICE_URL, else built from FLASK_HOST and FLASK_PORT.

    A scheme on FLASK_HOST is dropped; a host that already carries a port
    ("agent:5000") ignores FLASK_PORT.
    """
    explicit = os.getenv("ANALYSIS_SERVICE_URL", "").strip()
    if explicit:
        return explicit.rstrip("/")
    host = re.sub(r"^https?://", "", os.getenv("FLASK_HOST", "localhost").strip())
    port = os.getenv("FLASK_PORT", "5000").strip()
    if ":" in host:
        return f"http://{host}".rstrip("/")
    return f"http://{host}:{port}"


def _timeout_seconds(env_name: str, default: float) -> float:
    try:
        value = float(os.getenv(env_name, ""))
    except ValueError:
        return default
    return value if value > 0 else default


class Config:
    DEBUG = False
    TESTING = False

    # Per-process random key keeps dev sessions working; production sets SECRET_KEY.
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET", os.getenv("JWT_SECRET_KEY", ""))

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")
    SURVEY_RATE_LIMIT = os.getenv("SURVEY_RATE_LIMIT", "30/minute")
    WRITE_RATE_LIMIT = os.getenv("WRITE_RATE_LIMIT", "60/minute")

    ANALYSIS_SERVICE_URL = _analysis_service_url()
    # Model inference takes minutes; 180 s is the agreed ceiling.
    ANALYSIS_TIMEOUT_SECONDS = _timeout_seconds("ANALYSIS_TIMEOUT_SECONDS", 180.0)
    ANALYSIS_HEALTH_TIMEOUT_SECONDS = _timeout_seconds("ANALYSIS_HEALTH_TIMEOUT_SECONDS", 5.0)
    ANALYSIS_RUN_IN_BACKGROUND = True


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(_LOCAL_SQLITE)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret"
    RATELIMIT_ENABLED = False
    ANALYSIS_SERVICE_URL = "http://analysis.test"
    ANALYSIS_TIMEOUT_SECONDS = 2.0
    # Analysis runs inline so a test sees its reports right after the last submission
    ANALYSIS_RUN_IN_BACKGROUND = False


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")

    def __init__(self):
        missing = []
        if not self.SQLALCHEMY_DATABASE_URI:
            missing.append("DATABASE_URL")
        if not os.getenv("SECRET_KEY"):
            missing.append("SECRET_KEY")
        if not self.JWT_SECRET_KEY:
            missing.append("JWT_SECRET")
        if missing:
            raise RuntimeError("Production requires environment variables: " + ", ".join(missing))


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
