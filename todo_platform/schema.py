"""Database schema for the todo platform.

SQLite is the default engine; Postgres is supported as well.

Timestamps are stored as ISO-8601 TEXT (UTC, with 'Z') for portability across engines.
ISO strings sort lexicographically in time order, so `ORDER BY created_at` behaves correctly.

NOTE: The Postgres schema is generated from the SQLite schema with a small set of
transformations (types + autoincrement).
"""

from __future__ import annotations

import re


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Users (identity is delegated to the OAuth provider)
-- open_id is the provider-issued subject id and the only identity key.
-- user_id is an internal surrogate and is never sent to the provider.
CREATE TABLE IF NOT EXISTS users (
    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
    open_id TEXT NOT NULL UNIQUE,
    name TEXT,
    email TEXT,
    login_method TEXT,
    role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('admin','user')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    last_signed_in TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_users_role ON users (role);

-- Todos (every row has exactly one owner)
CREATE TABLE IF NOT EXISTS todos (
    todo_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    title TEXT NOT NULL CHECK (length(title) BETWEEN 1 AND 255),
    description TEXT,
    completed INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_todos_user_created ON todos (user_id, created_at);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    # Remove SQLite pragmas and comments (statements are later split on ';')
    lines: list[str] = []
    for line in ddl.splitlines():
        s = line.strip()
        if s.upper().startswith("PRAGMA ") or s.startswith("--"):
            continue
        lines.append(line)
    out = "\n".join(lines)

    # AUTOINCREMENT primary keys
    out = re.sub(
        r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        "BIGSERIAL PRIMARY KEY",
        out,
        flags=re.IGNORECASE,
    )
    out = re.sub(r"\bAUTOINCREMENT\b", "", out, flags=re.IGNORECASE)

    # user_id references a BIGSERIAL column
    out = re.sub(r"user_id INTEGER NOT NULL", "user_id BIGINT NOT NULL", out)

    return out


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
