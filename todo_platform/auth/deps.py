from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import Depends, HTTPException, Request

from .session import resolve_session_user


@dataclass(frozen=True)
class AuthContext:
    """Per-request authentication result. `user` is None for anonymous requests."""

    user: Optional[Dict[str, Any]]

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.get("role") == "admin"

    @property
    def user_id(self) -> int:
        if self.user is None:
            raise HTTPException(status_code=401, detail="not_authenticated")
        return int(self.user["user_id"])


Guard = Callable[[AuthContext], None]


def require_authenticated(ctx: AuthContext) -> None:
    if not ctx.is_authenticated:
        raise HTTPException(status_code=401, detail="not_authenticated")


def require_admin_role(ctx: AuthContext) -> None:
    if not ctx.is_admin:
        raise HTTPException(status_code=403, detail="admin_required")


# Guard levels, evaluated in order before any handler logic.
PUBLIC: Tuple[Guard, ...] = ()
PROTECTED: Tuple[Guard, ...] = (require_authenticated,)
ADMIN: Tuple[Guard, ...] = (require_admin_role,)


def get_auth_context(request: Request) -> AuthContext:
    """Resolve the session once per request and cache it on request.state."""
    cached = getattr(request.state, "auth", None)
    if isinstance(cached, AuthContext):
        return cached

    cfg = getattr(request.app.state, "cfg", None)
    db = getattr(request.app.state, "db", None)
    if cfg is None or db is None:
        raise HTTPException(status_code=500, detail="server_config_missing")

    ctx = AuthContext(user=resolve_session_user(cfg, db, request.headers.get("cookie")))
    request.state.auth = ctx
    return ctx


def run_guards(ctx: AuthContext, guards: Tuple[Guard, ...]) -> AuthContext:
    for guard in guards:
        guard(ctx)
    return ctx


def procedure(*guards: Guard) -> Callable[..., AuthContext]:
    """Build a FastAPI dependency that runs `guards` against the request's AuthContext."""

    def _dependency(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        return run_guards(ctx, guards)

    return _dependency


public_procedure = procedure(*PUBLIC)
protected_procedure = procedure(*PROTECTED)
admin_procedure = procedure(*ADMIN)
