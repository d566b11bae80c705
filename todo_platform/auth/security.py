from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict

import jwt

from todo_platform.util.time import utcnow


_JWT_ALG = "HS256"

SESSION_TTL = timedelta(days=365)
SESSION_TTL_SECONDS = int(SESSION_TTL.total_seconds())


class InvalidSessionToken(Exception):
    """A session token failed verification.

    Raised with the same message for every failure mode (bad signature,
    expired, malformed, missing subject) so callers cannot tell them apart.
    """

    def __init__(self) -> None:
        super().__init__("invalid_session")


def issue_session_token(*, secret: str, open_id: str, now: datetime | None = None) -> str:
    """Sign a session token for `open_id`, valid for one year from `now`."""
    if not secret:
        raise ValueError("jwt_secret_blank")
    if not open_id:
        raise ValueError("open_id_blank")

    issued = now or utcnow()
    payload: Dict[str, Any] = {
        "sub": str(open_id),
        "iat": int(issued.timestamp()),
        "exp": int((issued + SESSION_TTL).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def verify_session_token(*, token: str, secret: str) -> str:
    """Return the subject id of a valid token, else raise InvalidSessionToken."""
    if not token or not secret:
        raise InvalidSessionToken()
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[_JWT_ALG],
            options={"require": ["sub", "exp"]},
        )
    except (jwt.InvalidTokenError, ValueError, TypeError):
        raise InvalidSessionToken() from None

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        raise InvalidSessionToken()
    return sub
