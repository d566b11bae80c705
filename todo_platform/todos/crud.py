"""Owner-scoped todo storage.

Every statement filters by (todo_id, user_id), so a caller can only ever see or
change its own rows. Reads degrade to empty results without storage; writes
raise StorageUnavailable.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from todo_platform.db import Database
from todo_platform.util.time import utcnow_iso

TITLE_MAX_LEN = 255


def public_todo(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d["completed"] = bool(d.get("completed"))
    return d


def _get_todo(conn: Any, todo_id: int, user_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM todos WHERE todo_id=? AND user_id=?",
        (int(todo_id), int(user_id)),
    ).fetchone()


def list_todos(db: Database, user_id: int) -> List[Dict[str, Any]]:
    if not db.available():
        return []
    with db.connect() as conn:
        rows = conn.execute(
            "SELECT * FROM todos WHERE user_id=? ORDER BY created_at, todo_id",
            (int(user_id),),
        ).fetchall()
    return [public_todo(r) for r in rows]


def get_todo(db: Database, todo_id: int, user_id: int) -> Optional[Dict[str, Any]]:
    if not db.available():
        return None
    with db.connect() as conn:
        row = _get_todo(conn, todo_id, user_id)
    return public_todo(row) if row is not None else None


def create_todo(
    db: Database,
    *,
    user_id: int,
    title: str,
    description: str | None = None,
) -> Dict[str, Any]:
    now = utcnow_iso()
    with db.connect() as conn:
        rows = conn.execute(
            """
            INSERT INTO todos (user_id, title, description, completed, created_at, updated_at)
            VALUES (?, ?, ?, 0, ?, ?)
            RETURNING *
            """,
            (int(user_id), title, description, now, now),
        ).fetchall()
    if not rows:
        raise RuntimeError(f"Insert returned no row for user_id={user_id}")
    return public_todo(rows[0])


def update_todo(
    db: Database,
    todo_id: int,
    user_id: int,
    *,
    title: str | None = None,
    description: str | None = None,
    completed: bool | None = None,
) -> bool:
    """Update supplied fields of an owned todo. Returns False if no such owned row."""
    fields: list[tuple[str, Any]] = []
    if title is not None:
        fields.append(("title", title))
    if description is not None:
        fields.append(("description", description))
    if completed is not None:
        fields.append(("completed", 1 if completed else 0))

    with db.connect() as conn:
        if not fields:
            return _get_todo(conn, todo_id, user_id) is not None
        fields.append(("updated_at", utcnow_iso()))
        sets = ", ".join([f"{k}=?" for k, _ in fields])
        params = [v for _, v in fields] + [int(todo_id), int(user_id)]
        cur = conn.execute(
            f"UPDATE todos SET {sets} WHERE todo_id=? AND user_id=?",
            params,
        )
        return cur.rowcount > 0


def toggle_todo(db: Database, todo_id: int, user_id: int) -> Optional[bool]:
    """Flip `completed` on an owned todo. Returns the new value, or None if not found."""
    with db.connect() as conn:
        row = _get_todo(conn, todo_id, user_id)
        if row is None:
            return None
        completed = not bool(row["completed"])
        conn.execute(
            "UPDATE todos SET completed=?, updated_at=? WHERE todo_id=? AND user_id=?",
            (1 if completed else 0, utcnow_iso(), int(todo_id), int(user_id)),
        )
    return completed


def delete_todo(db: Database, todo_id: int, user_id: int) -> None:
    with db.connect() as conn:
        conn.execute(
            "DELETE FROM todos WHERE todo_id=? AND user_id=?",
            (int(todo_id), int(user_id)),
        )
