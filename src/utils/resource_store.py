"""
Read access to the records the access-control layer needs.

The guards only ever read users, courses, tasks and learning progress, so the
store interface is limited to those lookups plus the single write used by
the user deletion route. Records are plain dicts keyed by column name.
"""

from __future__ import annotations

import copy
from threading import Lock
from typing import Any, Dict, Iterable, Optional, Protocol, Tuple

from src.utils.logging import get_logger

logger = get_logger(__name__)

Record = Dict[str, Any]


class ResourceStoreError(Exception):
    """Raised when the backing store cannot answer a lookup."""
    pass


class ResourceStore(Protocol):
    def find_user(self, user_id: str) -> Optional[Record]: ...

    def find_course(self, course_id: str) -> Optional[Record]: ...

    def find_task(self, task_id: str) -> Optional[Record]: ...

    def find_progress(self, user_id: str, course_id: str) -> Optional[Record]: ...

    def delete_user(self, user_id: str) -> bool: ...


class InMemoryResourceStore:
    """
    Dict-backed store for tests and local runs.

    Returned records are copies, so callers cannot mutate stored state.
    """

    def __init__(
        self,
        users: Iterable[Record] = (),
        courses: Iterable[Record] = (),
        tasks: Iterable[Record] = (),
        progress: Iterable[Record] = (),
    ):
        self._lock = Lock()
        self._users: Dict[str, Record] = {}
        self._courses: Dict[str, Record] = {}
        self._tasks: Dict[str, Record] = {}
        self._progress: Dict[Tuple[str, str], Record] = {}

        for user in users:
            self.add_user(user)
        for course in courses:
            self.add_course(course)
        for task in tasks:
            self.add_task(task)
        for record in progress:
            self.add_progress(record)

    def add_user(self, user: Record) -> None:
        with self._lock:
            self._users[str(user["id"])] = dict(user)

    def add_course(self, course: Record) -> None:
        with self._lock:
            self._courses[str(course["id"])] = dict(course)

    def add_task(self, task: Record) -> None:
        with self._lock:
            self._tasks[str(task["id"])] = dict(task)

    def add_progress(self, record: Record) -> None:
        key = (str(record["user_id"]), str(record["course_id"]))
        with self._lock:
            self._progress[key] = dict(record)

    def find_user(self, user_id: str) -> Optional[Record]:
        with self._lock:
            return copy.deepcopy(self._users.get(str(user_id)))

    def find_course(self, course_id: str) -> Optional[Record]:
        with self._lock:
            return copy.deepcopy(self._courses.get(str(course_id)))

    def find_task(self, task_id: str) -> Optional[Record]:
        with self._lock:
            return copy.deepcopy(self._tasks.get(str(task_id)))

    def find_progress(self, user_id: str, course_id: str) -> Optional[Record]:
        with self._lock:
            return copy.deepcopy(self._progress.get((str(user_id), str(course_id))))

    def delete_user(self, user_id: str) -> bool:
        with self._lock:
            removed = self._users.pop(str(user_id), None)
        if removed is not None:
            logger.info(f"Deleted user {user_id}")
        return removed is not None
