from contextlib import contextmanager
from unittest.mock import MagicMock

import psycopg2
import pytest

from src.utils import postgres_resource_store
from src.utils.postgres_resource_store import PostgresResourceStore
from src.utils.rbac.context import Identity, Reject, RequestContext
from src.utils.rbac.guards import require_course_instructor
from src.utils.resource_store import ResourceStoreError


def _build_store_with_cursor(cursor):
    store = PostgresResourceStore(pg_config={"host": "localhost", "dbname": "lms"})

    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    conn.cursor.return_value.__exit__.return_value = False

    @contextmanager
    def _connect():
        yield conn

    store._connect = _connect
    return store, conn


def test_find_user_stringifies_ids_and_omits_password():
    cursor = MagicMock()
    cursor.fetchone.return_value = {"id": 42, "name": "Sam", "email": "sam@example.com", "role": "student"}

    store, _ = _build_store_with_cursor(cursor)
    user = store.find_user("42")

    assert user["id"] == "42"
    assert "password" not in postgres_resource_store.SQL_FIND_USER
    sql, params = cursor.execute.call_args[0]
    assert "FROM users" in sql
    assert params == ("42",)


def test_find_course_missing_returns_none():
    cursor = MagicMock()
    cursor.fetchone.return_value = None

    store, _ = _build_store_with_cursor(cursor)
    assert store.find_course("nope") is None


def test_find_progress_passes_user_then_course():
    cursor = MagicMock()
    cursor.fetchone.return_value = {"id": 1, "user_id": 7, "course_id": 9, "completed_modules": 3}

    store, _ = _build_store_with_cursor(cursor)
    progress = store.find_progress("7", "9")

    assert progress["user_id"] == "7"
    assert progress["course_id"] == "9"
    assert progress["completed_modules"] == 3
    assert cursor.execute.call_args[0][1] == ("7", "9")


def test_query_error_is_wrapped():
    cursor = MagicMock()
    cursor.execute.side_effect = psycopg2.ProgrammingError("relation \"tasks\" does not exist")

    store, _ = _build_store_with_cursor(cursor)
    with pytest.raises(ResourceStoreError):
        store.find_task("task-1")


def test_delete_user_commits_and_reports_rowcount():
    cursor = MagicMock()
    cursor.rowcount = 1

    store, conn = _build_store_with_cursor(cursor)
    assert store.delete_user("42") is True
    conn.commit.assert_called_once()

    cursor.rowcount = 0
    assert store.delete_user("42") is False


def test_connect_failure_raises_without_retry(monkeypatch):
    connect = MagicMock(side_effect=psycopg2.OperationalError("refused"))
    monkeypatch.setattr(postgres_resource_store.psycopg2, "connect", connect)

    store = PostgresResourceStore(pg_config={"host": "localhost"})
    with pytest.raises(ResourceStoreError, match="Could not connect"):
        store.find_user("1")
    assert connect.call_count == 1


def test_transient_connect_failure_rejects_guard(monkeypatch):
    cursor = MagicMock()
    cursor.fetchone.return_value = {"id": "course-1", "instructor_id": "inst-1"}
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    conn.cursor.return_value.__exit__.return_value = False

    # fails once, would succeed on a second attempt
    connect = MagicMock(side_effect=[psycopg2.OperationalError("refused"), conn])
    monkeypatch.setattr(postgres_resource_store.psycopg2, "connect", connect)

    guard = require_course_instructor(PostgresResourceStore(pg_config={"host": "localhost"}))
    context = RequestContext(identity=Identity(id="inst-1", role="instructor"), params={"courseId": "course-1"})
    decision = guard.check(context)

    assert isinstance(decision, Reject)
    assert decision.status == 500
    assert decision.message == "Server error during instructor validation"
    assert connect.call_count == 1
