from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote, urlencode

import requests

from todo_platform.config import Config


def _debug(msg: str) -> None:
    print(f"[oauth] {msg}")


class OAuthError(RuntimeError):
    """The provider token exchange failed."""


@dataclass(frozen=True)
class ProviderIdentity:
    open_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    login_method: Optional[str] = None


def _opt_str(v: object) -> Optional[str]:
    if v is None:
        return None
    return str(v)


def fetch_user_info(cfg: Config, token: str) -> ProviderIdentity:
    """Exchange a one-time provider token for identity claims.

    Any non-2xx response, network error or malformed body is an OAuthError.
    No retries.
    """
    if not token:
        raise OAuthError("token_blank")

    url = f"{cfg.OAUTH_SERVER_URL.rstrip('/')}/api/userinfo"
    try:
        r = requests.get(url, params={"token": token}, timeout=cfg.OAUTH_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        raise OAuthError(f"userinfo request failed: {e.__class__.__name__}") from e

    if not (200 <= r.status_code < 300):
        # Avoid echoing the provider body; it may contain token details.
        raise OAuthError(f"userinfo error status={r.status_code}")

    try:
        data = r.json()
    except ValueError as e:
        raise OAuthError("userinfo response is not JSON") from e
    if not isinstance(data, dict):
        raise OAuthError("userinfo response is not an object")

    open_id = data.get("openId")
    if not isinstance(open_id, str) or not open_id.strip():
        raise OAuthError("userinfo response missing openId")

    return ProviderIdentity(
        open_id=open_id.strip(),
        name=_opt_str(data.get("name")),
        email=_opt_str(data.get("email")),
        login_method=_opt_str(data.get("loginMethod")),
    )


def redirect_path_from_state(state: object) -> str:
    """Decode the `state` query value into a same-site redirect path.

    Absent or non-string state means "/". Anything that is not a plain
    relative path (e.g. `https://...` or `//host`) also falls back to "/".
    """
    if not isinstance(state, str) or not state:
        return "/"
    p = unquote(state).strip()
    if not p.startswith("/") or p.startswith("//") or p.startswith("/\\"):
        return "/"
    p = p.replace("\r", "").replace("\n", "")
    return p or "/"


def build_login_url(cfg: Config, *, callback_url: str, redirect_path: str | None = None) -> str:
    """Provider portal URL that will redirect back to `callback_url`."""
    params = {
        "app_id": cfg.OAUTH_APP_ID,
        "callback_url": callback_url,
        "state": redirect_path or "/",
    }
    return f"{cfg.OAUTH_PORTAL_URL}?{urlencode(params)}"
