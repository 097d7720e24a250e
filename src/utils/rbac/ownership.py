"""
Ownership resolution for protected LMS resources.

Each ResourceKind has one handler that loads the record from the store and
decides whether the acting identity owns (or may manage) it. The resolver
only reads; it never changes a record.

    course      owner is the course's instructor
    task        owner is the task's user
    progress    owner is the learner, or the instructor of the course
    user        the user themself, or a role that outranks the user's role
    enrollment  a progress record links the identity to the course
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from src.utils.logging import get_logger
from src.utils.rbac.context import Identity, record_id
from src.utils.rbac.permission_enum import Role
from src.utils.rbac.permissions import can_manage_user
from src.utils.rbac.registry import RBACRegistry
from src.utils.resource_store import Record, ResourceStore

logger = get_logger(__name__)


class ResourceKind(str, Enum):
    COURSE = "course"
    TASK = "task"
    PROGRESS = "progress"
    USER = "user"
    ENROLLMENT = "enrollment"

    @classmethod
    def parse(cls, value: Any) -> Optional["ResourceKind"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def requires_record(self) -> bool:
        """Whether a missing record means 404 rather than 'not owned'."""
        return self is not ResourceKind.ENROLLMENT


@dataclass(frozen=True)
class OwnershipResult:
    resource: Optional[Record]
    found: bool
    is_owner: bool


def _same_id(left: Any, right: Any) -> bool:
    return left is not None and right is not None and str(left) == str(right)


def course_instructor_id(course: Mapping[str, Any]) -> Optional[str]:
    """Instructor id of a course record, flat or nested form."""
    instructor_id = course.get("instructor_id")
    if instructor_id is None and isinstance(course.get("instructor"), Mapping):
        instructor_id = course["instructor"].get("id")
    return str(instructor_id) if instructor_id is not None else None


Handler = Callable[[str, Identity, Mapping[str, Any]], OwnershipResult]


class OwnershipResolver:
    """Dispatches ownership questions to one handler per ResourceKind."""

    def __init__(self, store: ResourceStore, registry: Optional[RBACRegistry] = None):
        self.store = store
        self.registry = registry
        self._handlers: Dict[ResourceKind, Handler] = {
            ResourceKind.COURSE: self._resolve_course,
            ResourceKind.TASK: self._resolve_task,
            ResourceKind.PROGRESS: self._resolve_progress,
            ResourceKind.USER: self._resolve_user,
            ResourceKind.ENROLLMENT: self._resolve_enrollment,
        }

    def resolve(
        self,
        kind: ResourceKind,
        resource_id: str,
        identity: Identity,
        params: Optional[Mapping[str, Any]] = None,
    ) -> OwnershipResult:
        """
        Decide ownership of one resource.

        Args:
            kind: Resource kind
            resource_id: Id taken from the route
            identity: Acting identity
            params: All route params; progress and enrollment read the
                    course and student ids from here

        Raises:
            ValueError: For a kind with no handler
            ResourceStoreError: When the store lookup fails
        """
        handler = self._handlers.get(kind)
        if handler is None:
            raise ValueError(f"No ownership handler for {kind!r}")
        result = handler(resource_id, identity, params or {})
        logger.debug(
            f"Ownership {kind.value}:{resource_id} for {identity.id}: "
            f"found={result.found} owner={result.is_owner}"
        )
        return result

    def _resolve_course(self, resource_id: str, identity: Identity, params: Mapping[str, Any]) -> OwnershipResult:
        course = self.store.find_course(resource_id)
        if course is None:
            return OwnershipResult(None, False, False)
        return OwnershipResult(course, True, _same_id(course_instructor_id(course), identity.id))

    def _resolve_task(self, resource_id: str, identity: Identity, params: Mapping[str, Any]) -> OwnershipResult:
        task = self.store.find_task(resource_id)
        if task is None:
            return OwnershipResult(None, False, False)
        return OwnershipResult(task, True, _same_id(task.get("user_id"), identity.id))

    def _resolve_progress(self, resource_id: str, identity: Identity, params: Mapping[str, Any]) -> OwnershipResult:
        course_id = params.get("courseId") or params.get("id") or resource_id
        learner_id = params.get("studentId") or identity.id

        progress = self.store.find_progress(str(learner_id), str(course_id))
        if progress is None:
            return OwnershipResult(None, False, False)

        is_owner = _same_id(progress.get("user_id"), identity.id)
        if not is_owner and identity.role == Role.INSTRUCTOR.value:
            course = self.store.find_course(str(course_id))
            is_owner = course is not None and _same_id(course_instructor_id(course), identity.id)

        return OwnershipResult(progress, True, is_owner)

    def _resolve_user(self, resource_id: str, identity: Identity, params: Mapping[str, Any]) -> OwnershipResult:
        user = self.store.find_user(resource_id)
        if user is None:
            return OwnershipResult(None, False, False)

        is_owner = _same_id(record_id(user), identity.id)
        if not is_owner and identity.role in (Role.ADMIN.value, Role.INSTRUCTOR.value):
            target_role = user.get("role")
            target_role = target_role.lower() if isinstance(target_role, str) else target_role
            is_owner = can_manage_user(identity.role, target_role, self.registry)

        return OwnershipResult(user, True, is_owner)

    def _resolve_enrollment(self, resource_id: str, identity: Identity, params: Mapping[str, Any]) -> OwnershipResult:
        course_id = params.get("courseId") or params.get("id") or resource_id
        progress = self.store.find_progress(identity.id, str(course_id))
        return OwnershipResult(progress, True, progress is not None)
