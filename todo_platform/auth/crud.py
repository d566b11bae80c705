from __future__ import annotations

from typing import Any, Dict, List, Optional

from todo_platform.config import Config
from todo_platform.db import Database
from todo_platform.util.time import utcnow_iso


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


# Fixed identity used only when DEV_AUTH_BYPASS is on.
DEV_OPEN_ID = "dev-user"
DEV_NAME = "Developer"
DEV_EMAIL = "dev@localhost"
DEV_LOGIN_METHOD = "dev"

ROLES = ("user", "admin")


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    # Convenience flag used by the frontend for gating.
    d["is_admin"] = d.get("role") == "admin"
    return d


def get_user_by_open_id(conn: Any, open_id: str) -> Optional[Any]:
    oid = (open_id or "").strip()
    if not oid:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE open_id=?",
        (oid,),
    ).fetchone()


def find_user_by_open_id(db: Database, open_id: str) -> Optional[Dict[str, Any]]:
    """Look up a user by provider subject id. Missing storage reads as "not found"."""
    if not open_id or not db.available():
        return None
    with db.connect() as conn:
        row = get_user_by_open_id(conn, open_id)
    return public_user(row) if row is not None else None


def upsert_user(
    db: Database,
    cfg: Config,
    *,
    open_id: str,
    name: str | None = None,
    email: str | None = None,
    login_method: str | None = None,
    last_signed_in: str | None = None,
) -> None:
    """Insert a user or update the attributes that were supplied.

    `None` means "not supplied": those columns are left untouched on update.
    When nothing is supplied, last_signed_in is refreshed instead. The owner
    subject id is forced to role=admin on every call.

    Best-effort: silently does nothing when storage or open_id is missing.
    """
    if not open_id or not db.available():
        return

    now = utcnow_iso()
    # Build dynamic SQL so we only touch provided fields.
    fields: list[tuple[str, Any]] = []
    if name is not None:
        fields.append(("name", name))
    if email is not None:
        fields.append(("email", email))
    if login_method is not None:
        fields.append(("login_method", login_method))
    if last_signed_in is not None:
        fields.append(("last_signed_in", last_signed_in))

    if cfg.OWNER_OPEN_ID and open_id == cfg.OWNER_OPEN_ID:
        _debug("Owner sign-in: ensuring role=admin")
        fields.append(("role", "admin"))

    if not fields:
        fields.append(("last_signed_in", now))

    insert_values: Dict[str, Any] = {
        "open_id": open_id,
        "role": "user",
        "created_at": now,
        "updated_at": now,
        "last_signed_in": now,
    }
    insert_values.update(dict(fields))
    cols = list(insert_values.keys())

    update_fields = fields + [("updated_at", now)]
    sets = ", ".join([f"{k}=excluded.{k}" for k, _ in update_fields])

    with db.connect() as conn:
        conn.execute(
            f"""
            INSERT INTO users ({", ".join(cols)})
            VALUES ({", ".join(["?"] * len(cols))})
            ON CONFLICT(open_id) DO UPDATE SET {sets}
            """,
            [insert_values[c] for c in cols],
        )


def get_or_create_dev_user(db: Database, cfg: Config) -> Optional[Dict[str, Any]]:
    """Return the fixed development identity, creating it on first use."""
    user = find_user_by_open_id(db, DEV_OPEN_ID)
    if user is not None:
        return user

    _debug(f"Creating development user open_id={DEV_OPEN_ID}")
    upsert_user(
        db,
        cfg,
        open_id=DEV_OPEN_ID,
        name=DEV_NAME,
        email=DEV_EMAIL,
        login_method=DEV_LOGIN_METHOD,
        last_signed_in=utcnow_iso(),
    )
    return find_user_by_open_id(db, DEV_OPEN_ID)


def list_users(db: Database) -> List[Dict[str, Any]]:
    if not db.available():
        return []
    with db.connect() as conn:
        rows = conn.execute(
            "SELECT * FROM users ORDER BY created_at DESC, user_id DESC",
        ).fetchall()
    return [public_user(r) for r in rows]


def set_user_role(conn: Any, open_id: str, role: str) -> None:
    if role not in ROLES:
        raise ValueError("invalid_role")
    cur = conn.execute(
        "UPDATE users SET role=?, updated_at=? WHERE open_id=?",
        (role, utcnow_iso(), open_id),
    )
    if cur.rowcount == 0:
        raise ValueError("user_not_found")
