"""
PostgreSQL-backed ResourceStore.

Reads users, courses, tasks and learning_progress rows for the guards.
Each lookup opens a short-lived connection; failures are wrapped in
ResourceStoreError so callers see one error type.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Generator, Optional, Sequence

import psycopg2
from psycopg2.extras import RealDictCursor

from src.utils.logging import get_logger
from src.utils.resource_store import Record, ResourceStoreError

logger = get_logger(__name__)

SQL_FIND_USER = """
    SELECT id, name, email, role, created_at
    FROM users
    WHERE id = %s
"""

SQL_FIND_COURSE = """
    SELECT id, title, instructor_id, created_at
    FROM courses
    WHERE id = %s
"""

SQL_FIND_TASK = """
    SELECT id, title, user_id, course_id, created_at
    FROM tasks
    WHERE id = %s
"""

SQL_FIND_PROGRESS = """
    SELECT id, user_id, course_id, completed_modules, updated_at
    FROM learning_progress
    WHERE user_id = %s AND course_id = %s
"""

SQL_DELETE_USER = "DELETE FROM users WHERE id = %s"


def _stringify_ids(row: Optional[Dict[str, Any]]) -> Optional[Record]:
    """Ids are compared as strings throughout the access layer."""
    if row is None:
        return None
    record = dict(row)
    for key in ("id", "user_id", "course_id", "instructor_id"):
        if record.get(key) is not None:
            record[key] = str(record[key])
    return record


@dataclass
class PostgresResourceStore:
    """
    Read-mostly store over the LMS tables.

    The users query never selects the password column.
    """

    pg_config: Dict[str, Any]

    def _open_connection(self) -> psycopg2.extensions.connection:
        """
        Open one connection. A failed connect fails the lookup; there is no
        retry.
        """
        try:
            return psycopg2.connect(**self.pg_config)
        except psycopg2.OperationalError as exc:
            logger.error(f"Postgres connection failed: {exc}")
            raise ResourceStoreError(f"Could not connect to Postgres: {exc}") from exc

    @contextmanager
    def _connect(self) -> Generator[psycopg2.extensions.connection, None, None]:
        conn = self._open_connection()
        try:
            yield conn
        finally:
            conn.close()

    def _fetch_one(self, sql: str, params: Sequence[Any]) -> Optional[Record]:
        try:
            with self._connect() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(sql, tuple(params))
                    row = cur.fetchone()
        except psycopg2.Error as exc:
            raise ResourceStoreError(f"Lookup failed: {exc}") from exc
        return _stringify_ids(row)

    def find_user(self, user_id: str) -> Optional[Record]:
        return self._fetch_one(SQL_FIND_USER, (user_id,))

    def find_course(self, course_id: str) -> Optional[Record]:
        return self._fetch_one(SQL_FIND_COURSE, (course_id,))

    def find_task(self, task_id: str) -> Optional[Record]:
        return self._fetch_one(SQL_FIND_TASK, (task_id,))

    def find_progress(self, user_id: str, course_id: str) -> Optional[Record]:
        return self._fetch_one(SQL_FIND_PROGRESS, (user_id, course_id))

    def delete_user(self, user_id: str) -> bool:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(SQL_DELETE_USER, (user_id,))
                    deleted = cur.rowcount > 0
                conn.commit()
        except psycopg2.Error as exc:
            raise ResourceStoreError(f"Delete failed: {exc}") from exc
        if deleted:
            logger.info(f"Deleted user {user_id}")
        return deleted
