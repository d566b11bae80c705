"""
Pytest config.

Pins the repo root on sys.path so `import todo_platform` works whether or not the
project was installed, and provides per-test SQLite-backed config/app fixtures.
"""

from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from fastapi.testclient import TestClient  # noqa: E402

from todo_platform.api.server import create_app  # noqa: E402
from todo_platform.auth.crud import upsert_user  # noqa: E402
from todo_platform.auth.security import issue_session_token  # noqa: E402
from todo_platform.config import Config  # noqa: E402
from todo_platform.db import Database  # noqa: E402

TEST_SECRET = "test-secret-key-for-testing-purposes-only-0123456789"
OWNER_OPEN_ID = "owner-1"


@pytest.fixture
def make_cfg(tmp_path: Path) -> Callable[..., Config]:
    def _make(**overrides) -> Config:  # type: ignore[no-untyped-def]
        base = Config(
            DB_DSN=str(tmp_path / "todo.sqlite"),
            IS_PRODUCTION=False,
            DEV_AUTH_BYPASS=False,
            AUTH_JWT_SECRET=TEST_SECRET,
            AUTH_COOKIE_NAME="app_session_id",
            AUTH_COOKIE_PATH="/",
            OWNER_OPEN_ID=OWNER_OPEN_ID,
            OAUTH_SERVER_URL="https://oauth.example.test",
            OAUTH_PORTAL_URL="https://portal.example.test/login",
            OAUTH_APP_ID="app-123",
            OAUTH_TIMEOUT_SECONDS=5.0,
            CORS_ALLOW_ORIGINS="",
        )
        return replace(base, **overrides)

    return _make


@pytest.fixture
def cfg(make_cfg: Callable[..., Config]) -> Config:
    return make_cfg()


@pytest.fixture
def db(cfg: Config) -> Database:
    return Database(cfg.DB_DSN)


@pytest.fixture
def client(cfg: Config) -> TestClient:
    return TestClient(create_app(cfg))


@pytest.fixture
def login(cfg: Config, db: Database) -> Callable[..., Dict[str, str]]:
    """Upsert a user and return a Cookie header carrying a valid session for it."""

    def _login(open_id: str, **attrs) -> Dict[str, str]:  # type: ignore[no-untyped-def]
        upsert_user(db, cfg, open_id=open_id, **attrs)
        token = issue_session_token(secret=cfg.AUTH_JWT_SECRET, open_id=open_id)
        return {"Cookie": f"{cfg.AUTH_COOKIE_NAME}={token}"}

    return _login
