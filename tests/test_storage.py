from __future__ import annotations

from contextlib import contextmanager

import pytest

import todo_platform.db as dbmod
from todo_platform.auth.crud import upsert_user
from todo_platform.db import Database, StorageUnavailable, _qmark_to_pct
from todo_platform.schema import get_schema_sql
from todo_platform.todos.crud import (
    create_todo,
    delete_todo,
    get_todo,
    list_todos,
    toggle_todo,
    update_todo,
)


def test_database_initializes_lazily_once(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    calls = []
    real_init = dbmod.init_db

    def _counting_init(dsn: str) -> None:
        calls.append(dsn)
        real_init(dsn)

    monkeypatch.setattr(dbmod, "init_db", _counting_init)
    db = Database(str(tmp_path / "lazy.sqlite"))
    assert calls == []

    assert db.available() is True
    assert db.available() is True
    assert len(calls) == 1


def test_failed_initialization_is_retried(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    calls = []
    real_init = dbmod.init_db

    state = {"fail": True}

    def _flaky_init(dsn: str) -> None:
        calls.append(dsn)
        if state["fail"]:
            raise OSError("database is starting up")
        real_init(dsn)

    monkeypatch.setattr(dbmod, "init_db", _flaky_init)
    db = Database(str(tmp_path / "flaky.sqlite"))

    assert db.available() is False
    with pytest.raises(StorageUnavailable):
        with db.connect():
            pass

    state["fail"] = False
    assert db.available() is True
    assert db.available() is True
    assert len(calls) == 3


def test_unconfigured_database_is_unavailable() -> None:
    db = Database("")
    assert db.dsn == ""
    assert db.available() is False
    with pytest.raises(StorageUnavailable):
        with db.connect():
            pass


def test_qmark_conversion_skips_literals() -> None:
    sql = "SELECT * FROM t WHERE a=? AND b='what?' AND c=\"x?\" AND d=?"
    assert _qmark_to_pct(sql) == "SELECT * FROM t WHERE a=%s AND b='what?' AND c=\"x?\" AND d=%s"


def test_qmark_conversion_handles_escaped_quotes() -> None:
    sql = "UPDATE t SET a='it''s?' WHERE b=?"
    assert _qmark_to_pct(sql) == "UPDATE t SET a='it''s?' WHERE b=%s"


def test_postgres_schema_has_no_sqlite_only_syntax() -> None:
    ddl = get_schema_sql("postgres")
    assert "AUTOINCREMENT" not in ddl
    assert "PRAGMA" not in ddl
    assert "BIGSERIAL PRIMARY KEY" in ddl


class _RecordingConn:
    def __init__(self) -> None:
        self.statements: list[str] = []

    def execute(self, sql: str, params=None) -> None:
        self.statements.append(sql)


def test_postgres_schema_splits_into_create_statements() -> None:
    conn = _RecordingConn()
    dbmod._exec_schema(conn, get_schema_sql("postgres"), dialect="postgres")

    assert len(conn.statements) == 4
    assert [s for s in conn.statements if not s.startswith("CREATE ")] == []


def test_schema_comments_with_semicolons_are_not_split_into_statements() -> None:
    conn = _RecordingConn()
    ddl = "-- one; two\nCREATE TABLE a (x INTEGER);\n  -- three; four\nCREATE INDEX i ON a (x);\n"
    dbmod._exec_schema(conn, ddl, dialect="postgres")

    assert conn.statements == ["CREATE TABLE a (x INTEGER)", "CREATE INDEX i ON a (x)"]


# -----------------------------
# Todos (owner-scoped)
# -----------------------------


def _user_id(db: Database, cfg, open_id: str) -> int:
    upsert_user(db, cfg, open_id=open_id)
    with db.connect() as conn:
        return int(conn.execute("SELECT user_id FROM users WHERE open_id=?", (open_id,)).fetchone()["user_id"])


def test_create_returns_the_new_row(cfg, db) -> None:
    uid = _user_id(db, cfg, "u1")
    first = create_todo(db, user_id=uid, title="first")
    second = create_todo(db, user_id=uid, title="second", description="details")

    assert first["title"] == "first"
    assert second["title"] == "second"
    assert second["description"] == "details"
    assert second["completed"] is False
    assert second["todo_id"] != first["todo_id"]
    assert [t["title"] for t in list_todos(db, uid)] == ["first", "second"]
    assert second["user_id"] == uid


def test_create_raises_when_insert_returns_nothing(monkeypatch: pytest.MonkeyPatch, cfg, db) -> None:
    uid = _user_id(db, cfg, "u1")

    class _EmptyCursor:
        def fetchall(self):
            return []

    class _Conn:
        def execute(self, sql, params=None):
            return _EmptyCursor()

    @contextmanager
    def _connect(self):
        yield _Conn()

    monkeypatch.setattr(Database, "connect", _connect)
    with pytest.raises(RuntimeError):
        create_todo(db, user_id=uid, title="lost")


def test_rows_are_scoped_to_their_owner(cfg, db) -> None:
    alice = _user_id(db, cfg, "alice")
    bob = _user_id(db, cfg, "bob")
    todo = create_todo(db, user_id=alice, title="alice's")

    assert list_todos(db, bob) == []
    assert get_todo(db, todo["todo_id"], bob) is None

    assert toggle_todo(db, todo["todo_id"], bob) is None
    assert update_todo(db, todo["todo_id"], bob, title="hijacked", completed=True) is False
    delete_todo(db, todo["todo_id"], bob)

    unchanged = get_todo(db, todo["todo_id"], alice)
    assert unchanged is not None
    assert unchanged["title"] == "alice's"
    assert unchanged["completed"] is False
    assert unchanged["updated_at"] == todo["updated_at"]


def test_toggle_update_and_delete_own_todo(cfg, db) -> None:
    uid = _user_id(db, cfg, "u1")
    todo = create_todo(db, user_id=uid, title="write tests")

    assert toggle_todo(db, todo["todo_id"], uid) is True
    assert get_todo(db, todo["todo_id"], uid)["completed"] is True
    assert toggle_todo(db, todo["todo_id"], uid) is False

    assert update_todo(db, todo["todo_id"], uid, description="pytest") is True
    updated = get_todo(db, todo["todo_id"], uid)
    assert updated["description"] == "pytest"
    assert updated["title"] == "write tests"

    assert update_todo(db, todo["todo_id"], uid) is True

    delete_todo(db, todo["todo_id"], uid)
    assert get_todo(db, todo["todo_id"], uid) is None


def test_todo_reads_degrade_and_writes_fail_without_storage() -> None:
    no_db = Database("")
    assert list_todos(no_db, 1) == []
    assert get_todo(no_db, 1, 1) is None
    with pytest.raises(StorageUnavailable):
        create_todo(no_db, user_id=1, title="x")
    with pytest.raises(StorageUnavailable):
        update_todo(no_db, 1, 1, title="x")
    with pytest.raises(StorageUnavailable):
        toggle_todo(no_db, 1, 1)
    with pytest.raises(StorageUnavailable):
        delete_todo(no_db, 1, 1)
