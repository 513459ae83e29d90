import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    public_base_url: str
    token_max_attempts: int
    portal_rate_limit: int
    portal_rate_window: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


def normalize_database_url(url: str) -> str:
    """Point bare Postgres URLs at the psycopg (v3) driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=normalize_database_url(_getenv("DATABASE_URL", "sqlite:///genius.db")),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        public_base_url=_getenv("PUBLIC_BASE_URL", "").rstrip("/"),
        token_max_attempts=_getenv_int("TOKEN_MAX_ATTEMPTS", 100),
        portal_rate_limit=_getenv_int("PORTAL_RATE_LIMIT", 20),
        portal_rate_window=_getenv_int("PORTAL_RATE_WINDOW", 300),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "PUBLIC_BASE_URL": s.public_base_url,
        "TOKEN_MAX_ATTEMPTS": s.token_max_attempts,
        "PORTAL_RATE_LIMIT": s.portal_rate_limit,
        "PORTAL_RATE_WINDOW": s.portal_rate_window,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # Forms only; no uploads.
        "MAX_CONTENT_LENGTH": 2 * 1024 * 1024,
    }
