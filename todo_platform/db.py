from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Sequence
from urllib.parse import urlparse

from todo_platform.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


class StorageUnavailable(RuntimeError):
    """Raised by writes when no storage backend is configured or reachable."""


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except Exception:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    return "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Rewrite qmark placeholders (?) as psycopg2 %s, leaving quoted literals alone.

    A doubled '' inside a string literal simply closes and reopens the literal,
    so toggling on every quote is enough for the statements in this package.
    """
    out: List[str] = []
    quote = ""
    for ch in sql:
        if quote:
            if ch == quote:
                quote = ""
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "?":
            out.append("%s")
            continue
        out.append(ch)
    return "".join(out)


class PGCursor:
    """Wraps a psycopg2 cursor so `execute` accepts qmark SQL and chains like sqlite3."""

    def __init__(self, cur: Any):
        self._cur = cur

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> "PGCursor":
        self._cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return self

    def fetchone(self) -> Any:
        return self._cur.fetchone()

    def fetchall(self) -> Any:
        return self._cur.fetchall()

    @property
    def rowcount(self) -> int:
        return int(self._cur.rowcount or 0)


class PGConnection:
    """The subset of the sqlite3 connection API the stores use, over psycopg2."""

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> PGCursor:
        return PGCursor(self._conn.cursor()).execute(sql, params)

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


def _open_postgres(dsn: str) -> PGConnection:
    import psycopg2
    import psycopg2.extras

    return PGConnection(psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor))


def _open_sqlite(dsn: str) -> sqlite3.Connection:
    if dsn.lower().startswith("sqlite:///"):
        dsn = dsn[len("sqlite:///") :]
    Path(dsn).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(dsn, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    for pragma in ("journal_mode=WAL", "synchronous=NORMAL", "busy_timeout=5000", "foreign_keys=ON"):
        conn.execute(f"PRAGMA {pragma};")
    return conn


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Open a short-lived connection; commit on success, roll back on error.

    Postgres rows come back as dicts (RealDictCursor), SQLite rows as sqlite3.Row.
    """
    dsn = (db_dsn or "").strip()
    if _detect_dialect(dsn) == "postgres":
        conn = _open_postgres(dsn)
    else:
        conn = _open_sqlite(dsn)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_dsn: str) -> None:
    """Create all tables (idempotent)."""
    dialect = _detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect})")
    with connect(db_dsn) as conn:
        schema_sql = get_schema_sql(dialect)
        if dialect == "postgres":
            # Ensure only one process runs schema DDL at a time.
            conn.execute("SELECT pg_advisory_lock(2147483646);")
            try:
                _exec_schema(conn, schema_sql, dialect=dialect)
            finally:
                conn.execute("SELECT pg_advisory_unlock(2147483646);")
        else:
            _exec_schema(conn, schema_sql, dialect=dialect)


def _exec_schema(conn: Any, ddl: str, *, dialect: str) -> None:
    if dialect == "postgres":
        body = "\n".join(ln for ln in ddl.splitlines() if not ln.strip().startswith("--"))
        statements = [s.strip() for s in body.split(";") if s.strip()]
        for stmt in statements:
            conn.execute(stmt)
        return

    conn.executescript(ddl)


class Database:
    """Storage handle owned by the application.

    The schema is created on first use and the outcome cached. A failed
    initialization is not cached: the next caller tries again.
    """

    def __init__(self, dsn: str | None):
        self.dsn = (dsn or "").strip()
        self._ready = False
        self._lock = threading.Lock()

    def available(self) -> bool:
        """Return True once the schema is in place; initialize lazily."""
        if not self.dsn:
            return False
        if self._ready:
            return True
        with self._lock:
            if self._ready:
                return True
            try:
                init_db(self.dsn)
            except Exception as e:
                _debug(f"Storage initialization failed, will retry on next request: {e}")
                return False
            self._ready = True
        return True

    @contextmanager
    def connect(self) -> Iterator[Any]:
        """Open a connection, or raise StorageUnavailable."""
        if not self.available():
            raise StorageUnavailable("storage_unavailable")
        with connect(self.dsn) as conn:
            yield conn
