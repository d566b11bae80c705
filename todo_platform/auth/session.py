from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Response
from starlette.requests import cookie_parser

from todo_platform.config import Config
from todo_platform.db import Database

from .crud import find_user_by_open_id, get_or_create_dev_user
from .security import SESSION_TTL_SECONDS, InvalidSessionToken, verify_session_token


def _open_id_from_cookie(cfg: Config, cookie_header: str | None) -> Optional[str]:
    if not cookie_header:
        return None
    token = cookie_parser(cookie_header).get(cfg.AUTH_COOKIE_NAME)
    if not token:
        return None
    try:
        return verify_session_token(token=token, secret=cfg.AUTH_JWT_SECRET)
    except InvalidSessionToken:
        return None


def resolve_session_user(cfg: Config, db: Database, cookie_header: str | None) -> Optional[Dict[str, Any]]:
    """Resolve the raw Cookie header into a user, or None for anonymous.

    Never raises for a missing/invalid/expired session. In dev bypass mode a
    missing or unverifiable cookie resolves to the development user; a valid
    token whose subject is unknown stays anonymous in every mode.
    """
    open_id = _open_id_from_cookie(cfg, cookie_header)
    if open_id is None:
        if cfg.DEV_AUTH_BYPASS:
            return get_or_create_dev_user(db, cfg)
        return None
    return find_user_by_open_id(db, open_id)


def set_session_cookie(response: Response, *, token: str, cfg: Config) -> None:
    """Set the httpOnly session cookie (one year, Secure only in production)."""
    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=str(token),
        httponly=True,
        samesite="lax",
        secure=bool(cfg.IS_PRODUCTION),
        max_age=SESSION_TTL_SECONDS,
        path=cfg.AUTH_COOKIE_PATH or "/",
    )


def clear_session_cookie(response: Response, cfg: Config) -> None:
    response.delete_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        path=cfg.AUTH_COOKIE_PATH or "/",
        httponly=True,
        samesite="lax",
        secure=bool(cfg.IS_PRODUCTION),
    )
