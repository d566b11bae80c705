import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load a local .env file if present (no-op otherwise).
load_dotenv()


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Storage
    # -----------------
    # Preferred: set TODO_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: TODO_DB_PATH for SQLite. An empty DSN means "no storage";
    # reads then come back empty and todo writes fail with 503.
    DB_DSN: str = (
        os.environ.get("TODO_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("TODO_DB_PATH", "./todo_platform.sqlite")
    )

    # -----------------
    # Environment
    # -----------------
    IS_PRODUCTION: bool = (os.environ.get("APP_ENV", "development") or "").strip().lower() == "production"

    # Substitute a fixed local identity for OAuth. Local development only.
    DEV_AUTH_BYPASS: bool = _env_bool("DEV_AUTH_BYPASS", False) is True

    # -----------------
    # Auth (JWT session cookie)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = os.environ.get("JWT_SECRET", "dev_change_me")
    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "app_session_id")
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")

    # The subject id that is always promoted to admin on sign-in.
    OWNER_OPEN_ID: str | None = (os.environ.get("OWNER_OPEN_ID") or "").strip() or None

    # -----------------
    # OAuth provider
    # -----------------
    OAUTH_SERVER_URL: str = os.environ.get("OAUTH_SERVER_URL", "http://localhost:4000")
    OAUTH_PORTAL_URL: str = os.environ.get("OAUTH_PORTAL_URL", "http://localhost:4000/login")
    OAUTH_APP_ID: str = os.environ.get("OAUTH_APP_ID", "")
    OAUTH_TIMEOUT_SECONDS: float = float(os.environ.get("OAUTH_TIMEOUT_SECONDS", "10"))

    # -----------------
    # CORS (development)
    # -----------------
    # If the UI runs on Vite (:5173) and the API on :3000, allow that origin with credentials.
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    )


def load_config() -> Config:
    return Config()
