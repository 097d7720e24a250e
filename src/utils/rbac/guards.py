"""
RBAC Guards - Composable authorization checks

A route declares an ordered list of guards. GuardChain runs them left to
right and stops at the first rejection; later guards never execute.

Every guard answers through Guard.check(), which fails closed:
- no identity on the context is a 401
- any exception raised while evaluating is logged and becomes a 500
Business rejections use 400 (bad route params), 403 (insufficient rights)
and 404 (record absent).
"""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional, Sequence

from src.utils.logging import get_logger
from src.utils.rbac.audit import log_permission_check
from src.utils.rbac.context import ALLOW, Decision, Reject, RequestContext
from src.utils.rbac.ownership import OwnershipResolver, ResourceKind, course_instructor_id
from src.utils.rbac.permission_enum import Role
from src.utils.rbac.permissions import has_all_permissions, has_any_permission
from src.utils.rbac.registry import RBACRegistry, _token
from src.utils.resource_store import ResourceStore

logger = get_logger(__name__)

# Checked in this order; the first present wins
RESOURCE_ID_PARAMS = ("id", "courseId", "taskId", "userId")
COURSE_ID_PARAMS = ("id", "courseId")
TARGET_USER_PARAMS = ("id", "userId")

ADMIN = Role.ADMIN.value


class Guard:
    """Base class. Subclasses implement evaluate()."""

    name = "guard"
    error_message = "Server error during authorization"

    def evaluate(self, context: RequestContext) -> Decision:
        raise NotImplementedError

    def check(self, context: RequestContext) -> Decision:
        if context.identity is None:
            return Reject(401, "Not authorized")
        try:
            decision = self.evaluate(context)
        except Exception:
            logger.exception(f"Guard {self.name} failed on {context.method} {context.path}")
            return Reject(500, self.error_message)
        if decision is None:
            logger.error(f"Guard {self.name} returned no decision; denying")
            return Reject(500, self.error_message)
        return decision

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class GuardChain:
    """Runs guards in declared order and returns the first rejection."""

    def __init__(self, guards: Iterable[Guard]):
        self.guards: List[Guard] = list(guards)

    def run(self, context: RequestContext) -> Decision:
        identity = context.identity
        user = identity.id if identity else "anonymous"
        role = identity.role if identity else None

        for guard in self.guards:
            decision = guard.check(context)
            if isinstance(decision, Reject):
                log_permission_check(
                    user=user,
                    role=role,
                    check=guard.name,
                    granted=False,
                    endpoint=context.endpoint or context.path,
                    status=decision.status,
                    reason=decision.message,
                )
                return decision
            log_permission_check(
                user=user,
                role=role,
                check=guard.name,
                granted=True,
                endpoint=context.endpoint or context.path,
            )
        return ALLOW

    def __len__(self) -> int:
        return len(self.guards)


# =============================================================================
# Role membership
# =============================================================================

class RoleGuard(Guard):
    def __init__(self, roles: Sequence[Any], message: Optional[str] = None):
        self.roles = tuple(_token(r) for r in roles)
        self.name = f"role({','.join(self.roles)})"
        self.message = message or f"Access denied. Required roles: {', '.join(self.roles)}"

    def evaluate(self, context: RequestContext) -> Decision:
        role = context.identity.role
        if role and role in self.roles:
            return ALLOW
        return Reject(403, self.message, {"requiredRoles": list(self.roles), "userRole": role})


def require_any_role(*roles: Any) -> RoleGuard:
    return RoleGuard(roles)


def require_role(role: Any) -> RoleGuard:
    return RoleGuard([role])


def admin_only() -> RoleGuard:
    return RoleGuard([ADMIN], message="Access denied. Admin role required.")


# =============================================================================
# Permission tokens
# =============================================================================

class PermissionGuard(Guard):
    """
    Allows only when the identity's role holds the token(s).

    Being authenticated is not enough on its own; a role that lacks the
    token is denied.
    """

    def __init__(
        self,
        registry: RBACRegistry,
        permissions: Sequence[Any],
        require_all: bool = True,
        message: Optional[str] = None,
    ):
        self.registry = registry
        self.permissions = [_token(p) for p in permissions]
        if not self.permissions:
            raise ValueError("A permission guard needs at least one permission token")
        self.require_all = require_all
        mode = "all" if require_all else "any"
        self.name = f"permission:{mode}({','.join(self.permissions)})"
        self.message = message

    def evaluate(self, context: RequestContext) -> Decision:
        role = context.identity.role
        if self.require_all:
            granted = has_all_permissions(role, self.permissions, self.registry)
        else:
            granted = has_any_permission(role, self.permissions, self.registry)
        if granted:
            return ALLOW

        missing = [p for p in self.permissions if not self.registry.has_permission(role, p)]
        roles_with_permission: List[str] = []
        for perm in missing:
            for r in self.registry.get_roles_with_permission(perm):
                if r not in roles_with_permission:
                    roles_with_permission.append(r)

        if self.message:
            message = self.message
        elif len(self.permissions) == 1:
            message = f"Access denied. Permission '{self.permissions[0]}' required."
        else:
            message = f"Access denied. Permissions required: {', '.join(self.permissions)}"

        return Reject(403, message, {
            "required": self.permissions if len(self.permissions) > 1 else self.permissions[0],
            "userRole": role,
            "rolesWithPermission": roles_with_permission,
        })


def require_permission(registry: RBACRegistry, permission: Any) -> PermissionGuard:
    return PermissionGuard(registry, [permission])


def require_all_permissions(registry: RBACRegistry, *permissions: Any) -> PermissionGuard:
    return PermissionGuard(registry, permissions, require_all=True)


def require_any_permission(registry: RBACRegistry, *permissions: Any) -> PermissionGuard:
    return PermissionGuard(registry, permissions, require_all=False)


def require_api_access(registry: RBACRegistry, resource: str, operation: str) -> PermissionGuard:
    """Permission guard for the token '<resource>:<operation>'."""
    return PermissionGuard(
        registry,
        [f"{resource}:{operation}"],
        message="Access denied. Insufficient permissions.",
    )


# =============================================================================
# Ownership
# =============================================================================

class OwnershipGuard(Guard):
    """
    Allows owners of the addressed resource, and admins.

    An unknown resource type is a 400 at request time rather than an error at
    declaration, so a misconfigured route denies instead of crashing.
    """

    error_message = "Server error during ownership validation"

    def __init__(self, resolver: OwnershipResolver, resource_type: Any):
        self.resolver = resolver
        self.resource_type = _token(resource_type)
        self.kind = ResourceKind.parse(resource_type)
        self.name = f"ownership({self.resource_type})"
        if self.kind is None:
            logger.warning(f"Ownership guard declared for unknown resource type {resource_type!r}")

    def evaluate(self, context: RequestContext) -> Decision:
        resource_id = context.param(*RESOURCE_ID_PARAMS)
        if not resource_id:
            return Reject(400, "Resource ID is required")

        if self.kind is None:
            return Reject(400, "Invalid resource type", {"resourceType": self.resource_type})

        identity = context.identity
        result = self.resolver.resolve(self.kind, resource_id, identity, context.params)

        if not result.found and self.kind.requires_record:
            return Reject(404, f"{self.kind.label} not found")

        if not result.is_owner and identity.role != ADMIN:
            if self.kind is ResourceKind.ENROLLMENT:
                return Reject(403, "You must be enrolled in this course to access this resource")
            return Reject(403, f"Access denied. You can only access your own {self.kind.value}s.")

        context.attachments["resource"] = result.resource
        return ALLOW


class OwnResourceOrRoleGuard(Guard):
    """Listed roles pass outright; everyone else must own the resource."""

    error_message = "Server error during permission validation"

    def __init__(self, resolver: OwnershipResolver, resource_type: Any, roles: Sequence[Any]):
        self.roles = tuple(_token(r) for r in roles)
        self.ownership = OwnershipGuard(resolver, resource_type)
        self.name = f"own-or-role({self.ownership.resource_type};{','.join(self.roles)})"

    def evaluate(self, context: RequestContext) -> Decision:
        if context.identity.role in self.roles:
            return ALLOW
        return self.ownership.evaluate(context)


def validate_resource_ownership(resolver: OwnershipResolver, resource_type: Any) -> OwnershipGuard:
    return OwnershipGuard(resolver, resource_type)


def require_own_resource_or_role(
    resolver: OwnershipResolver, resource_type: Any, roles: Sequence[Any] = ()
) -> OwnResourceOrRoleGuard:
    return OwnResourceOrRoleGuard(resolver, resource_type, roles)


# =============================================================================
# Course relations
# =============================================================================

class CourseEnrollmentGuard(Guard):
    name = "course-enrollment"
    error_message = "Server error during enrollment validation"

    def __init__(self, store: ResourceStore):
        self.store = store

    def evaluate(self, context: RequestContext) -> Decision:
        course_id = context.param(*COURSE_ID_PARAMS)
        if not course_id:
            return Reject(400, "Course ID is required")

        identity = context.identity
        if identity.role == ADMIN:
            return ALLOW

        course = self.store.find_course(course_id)
        if course is None:
            return Reject(404, "Course not found")
        context.attachments["course"] = course

        if course_instructor_id(course) == identity.id:
            return ALLOW

        enrollment = self.store.find_progress(identity.id, course_id)
        if enrollment is None:
            return Reject(403, "You must be enrolled in this course to access this resource")

        context.attachments["enrollment"] = enrollment
        return ALLOW


class CourseInstructorGuard(Guard):
    name = "course-instructor"
    error_message = "Server error during instructor validation"

    def __init__(self, store: ResourceStore):
        self.store = store

    def evaluate(self, context: RequestContext) -> Decision:
        course_id = context.param(*COURSE_ID_PARAMS)
        if not course_id:
            return Reject(400, "Course ID is required")

        identity = context.identity
        if identity.role == ADMIN:
            return ALLOW

        course = self.store.find_course(course_id)
        if course is None:
            return Reject(404, "Course not found")

        if course_instructor_id(course) != identity.id:
            return Reject(403, "Access denied. You can only access courses you instruct.")

        context.attachments["course"] = course
        return ALLOW


def require_course_enrollment(store: ResourceStore) -> CourseEnrollmentGuard:
    return CourseEnrollmentGuard(store)


def require_course_instructor(store: ResourceStore) -> CourseInstructorGuard:
    return CourseInstructorGuard(store)


# =============================================================================
# Self access and route param validation
# =============================================================================

class SelfOrRoleGuard(Guard):
    def __init__(self, roles: Sequence[Any]):
        self.roles = tuple(_token(r) for r in roles)
        self.name = f"self-or-role({','.join(self.roles)})"

    def evaluate(self, context: RequestContext) -> Decision:
        identity = context.identity
        target_user_id = context.param(*TARGET_USER_PARAMS)

        if target_user_id is not None and target_user_id == identity.id:
            return ALLOW
        if identity.role in self.roles:
            return ALLOW
        return Reject(403, "Access denied. You can only access your own resources.")


def require_self_or_role(*roles: Any) -> SelfOrRoleGuard:
    return SelfOrRoleGuard(roles)


_PLACEHOLDER_IDS = {"undefined", "null"}


class ValidIdsGuard(Guard):
    """
    Rejects malformed id params with a 400.

    Route params must be present and not a placeholder ("undefined", "null").
    With query=True the names are read from the query string instead; absent
    or placeholder values are skipped there and only the format is checked.
    """

    def __init__(self, param_names: Sequence[str], pattern: Optional[str] = None, query: bool = False):
        self.param_names = tuple(param_names)
        self.pattern = re.compile(pattern) if pattern else None
        self.query = query
        kind = "valid-query-ids" if query else "valid-ids"
        self.name = f"{kind}({','.join(self.param_names)})"

    def _well_formed(self, value: Any) -> bool:
        return self.pattern is None or self.pattern.fullmatch(str(value)) is not None

    def evaluate(self, context: RequestContext) -> Decision:
        if self.query:
            return self._evaluate_query(context)

        failures = []
        for name in self.param_names:
            value = context.params.get(name)
            if value is None or str(value) == "" or str(value) in _PLACEHOLDER_IDS:
                failures.append((name, "missing", f"{name} cannot be undefined, null, or empty"))
            elif not self._well_formed(value):
                failures.append((name, "format", f"{name} must be a valid id"))

        if not failures:
            return ALLOW
        if len(failures) == 1:
            name, problem, error = failures[0]
            if problem == "format":
                return Reject(400, f"Invalid {name} format", {"error": error})
            return Reject(400, f"Invalid or missing {name} parameter", {"error": error})
        return Reject(400, "Invalid parameters", {"errors": [error for _, _, error in failures]})

    def _evaluate_query(self, context: RequestContext) -> Decision:
        errors = []
        for name in self.param_names:
            value = context.query.get(name)
            if value is None or str(value) == "" or str(value) in _PLACEHOLDER_IDS:
                continue
            if not self._well_formed(value):
                errors.append(f"Query parameter {name} must be a valid id")

        if errors:
            return Reject(400, "Invalid query parameters", {"errors": errors})
        return ALLOW


def validate_ids(*param_names: str, pattern: Optional[str] = None, query: bool = False) -> ValidIdsGuard:
    return ValidIdsGuard(param_names, pattern, query=query)
