from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Type, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ValidationError

from todo_platform.config import Config, load_config
from todo_platform.db import Database, StorageUnavailable
from todo_platform.util.time import utcnow_iso

from todo_platform.auth import AuthContext, admin_procedure, protected_procedure, public_procedure
from todo_platform.auth.crud import get_or_create_dev_user, list_users, upsert_user
from todo_platform.auth.oauth import build_login_url, fetch_user_info, redirect_path_from_state
from todo_platform.auth.security import issue_session_token
from todo_platform.auth.session import clear_session_cookie, set_session_cookie

from todo_platform.todos.crud import (
    TITLE_MAX_LEN,
    create_todo,
    delete_todo,
    list_todos,
    toggle_todo,
    update_todo,
)


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


DEV_LOGIN_PATH = "/api/dev/login"
OAUTH_CALLBACK_PATH = "/api/oauth/callback"


def _db(request: Request) -> Database:
    return request.app.state.db


def _clean_title(raw: Optional[str]) -> str:
    title = (raw or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail={"field": "title", "error": "title_required"})
    if len(title) > TITLE_MAX_LEN:
        raise HTTPException(status_code=400, detail={"field": "title", "error": "title_too_long"})
    return title


class CreateTodoRequest(BaseModel):
    title: str
    description: Optional[str] = None


class UpdateTodoRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    completed: Optional[bool] = None


PayloadT = TypeVar("PayloadT", bound=BaseModel)


def protected_payload(model: Type[PayloadT]) -> Callable[..., Any]:
    """Dependency that parses the JSON body only after the protected guard passed.

    FastAPI decodes declared body parameters before resolving any dependency, so
    protected write routes take their body through this instead.
    """

    async def _dependency(request: Request, _ctx: AuthContext = Depends(protected_procedure)) -> PayloadT:
        try:
            data = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid_json")
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RequestValidationError(e.errors(include_url=False))

    return _dependency


def create_app(cfg: Config | None = None) -> FastAPI:
    cfg = cfg or load_config()

    app = FastAPI(title="Todo Platform", version="0.1.0")
    # Shared, read-only config plus the lazily initialized storage handle.
    app.state.cfg = cfg
    app.state.db = Database(cfg.DB_DSN)

    if cfg.DEV_AUTH_BYPASS:
        _debug("DEV_AUTH_BYPASS is on: requests without a session act as the development user")

    # CORS is mainly needed for local development (Vite on :5173 -> API on :3000).
    _cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if _cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=_cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(StorageUnavailable)
    async def _storage_unavailable(_request: Request, _exc: StorageUnavailable) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": "storage_unavailable"})

    # -----------------------------
    # Health
    # -----------------------------

    @app.get("/health")
    def health(request: Request) -> Dict[str, Any]:
        return {"status": "ok", "storage": _db(request).available()}

    # -----------------------------
    # Auth
    # -----------------------------

    @app.get("/auth/login")
    def auth_login(request: Request, redirect: Optional[str] = None) -> RedirectResponse:
        """Send the browser to the provider portal (or the dev login in bypass mode)."""
        if cfg.DEV_AUTH_BYPASS:
            return RedirectResponse(DEV_LOGIN_PATH, status_code=302)
        callback_url = str(request.url_for("oauth_callback"))
        url = build_login_url(cfg, callback_url=callback_url, redirect_path=redirect_path_from_state(redirect))
        return RedirectResponse(url, status_code=302)

    @app.get(OAUTH_CALLBACK_PATH, name="oauth_callback")
    def oauth_callback(
        request: Request,
        token: Optional[str] = None,
        state: Optional[str] = None,
    ) -> RedirectResponse:
        if cfg.DEV_AUTH_BYPASS:
            return RedirectResponse(DEV_LOGIN_PATH, status_code=302)

        if not token:
            raise HTTPException(status_code=400, detail="missing_token")

        try:
            identity = fetch_user_info(cfg, token)
            upsert_user(
                _db(request),
                cfg,
                open_id=identity.open_id,
                name=identity.name,
                email=identity.email,
                login_method=identity.login_method,
                last_signed_in=utcnow_iso(),
            )
            session_token = issue_session_token(secret=cfg.AUTH_JWT_SECRET, open_id=identity.open_id)
        except Exception as e:
            _debug(f"OAuth callback failed: {e.__class__.__name__}: {e}")
            raise HTTPException(status_code=500, detail="authentication_failed")

        response = RedirectResponse(redirect_path_from_state(state), status_code=302)
        set_session_cookie(response, token=session_token, cfg=cfg)
        return response

    @app.get(DEV_LOGIN_PATH)
    def dev_login(request: Request) -> RedirectResponse:
        """Mint a session for the development identity (DEV_AUTH_BYPASS only)."""
        if not cfg.DEV_AUTH_BYPASS:
            raise HTTPException(status_code=404, detail="Not Found")

        user = get_or_create_dev_user(_db(request), cfg)
        if user is None:
            raise StorageUnavailable("storage_unavailable")

        response = RedirectResponse("/", status_code=302)
        set_session_cookie(
            response,
            token=issue_session_token(secret=cfg.AUTH_JWT_SECRET, open_id=str(user["open_id"])),
            cfg=cfg,
        )
        return response

    @app.get("/auth/me")
    def auth_me(ctx: AuthContext = Depends(public_procedure)) -> Dict[str, Any]:
        return {"user": ctx.user}

    @app.post("/auth/logout")
    def auth_logout(_ctx: AuthContext = Depends(public_procedure)) -> JSONResponse:
        """Clear the session cookie. Always succeeds."""
        response = JSONResponse({"ok": True})
        clear_session_cookie(response, cfg)
        return response

    # -----------------------------
    # Todos
    # -----------------------------

    @app.get("/todos")
    def todos_list(request: Request, ctx: AuthContext = Depends(protected_procedure)) -> Dict[str, Any]:
        return {"todos": list_todos(_db(request), ctx.user_id)}

    @app.post("/todos")
    def todos_create(
        request: Request,
        payload: CreateTodoRequest = Depends(protected_payload(CreateTodoRequest)),
        ctx: AuthContext = Depends(protected_procedure),
    ) -> Dict[str, Any]:
        title = _clean_title(payload.title)
        todo = create_todo(_db(request), user_id=ctx.user_id, title=title, description=payload.description)
        return {"todo": todo}

    @app.patch("/todos/{todo_id}")
    def todos_update(
        request: Request,
        todo_id: int,
        payload: UpdateTodoRequest = Depends(protected_payload(UpdateTodoRequest)),
        ctx: AuthContext = Depends(protected_procedure),
    ) -> Dict[str, Any]:
        title = _clean_title(payload.title) if payload.title is not None else None
        update_todo(
            _db(request),
            todo_id,
            ctx.user_id,
            title=title,
            description=payload.description,
            completed=payload.completed,
        )
        return {"ok": True}

    @app.post("/todos/{todo_id}/toggle")
    def todos_toggle(
        request: Request,
        todo_id: int,
        ctx: AuthContext = Depends(protected_procedure),
    ) -> Dict[str, Any]:
        completed = toggle_todo(_db(request), todo_id, ctx.user_id)
        if completed is None:
            raise HTTPException(status_code=404, detail="todo_not_found")
        return {"ok": True, "completed": completed}

    @app.delete("/todos/{todo_id}")
    def todos_delete(
        request: Request,
        todo_id: int,
        ctx: AuthContext = Depends(protected_procedure),
    ) -> Dict[str, Any]:
        delete_todo(_db(request), todo_id, ctx.user_id)
        return {"ok": True}

    # -----------------------------
    # Admin
    # -----------------------------

    @app.get("/admin/users")
    def admin_list_users(request: Request, _admin: AuthContext = Depends(admin_procedure)) -> Dict[str, Any]:
        return {"users": list_users(_db(request))}

    return app


app = create_app()
