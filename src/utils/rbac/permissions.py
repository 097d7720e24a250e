"""
RBAC Permissions - Permission checking utilities

Pure functions over a role table. Every function takes the registry as an
optional keyword argument and falls back to the built-in table, so guards
pass their injected registry while scripts and tests can call them bare.

None of these functions raise. Missing, empty or malformed input answers
False.
"""

from typing import Any, List, Optional

from src.utils.rbac.permission_enum import Role
from src.utils.rbac.registry import DEFAULT_REGISTRY, RBACRegistry, _token

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


def _registry(registry: Optional[RBACRegistry]) -> RBACRegistry:
    return registry if registry is not None else DEFAULT_REGISTRY


def has_permission(role: Any, permission: Any, registry: Optional[RBACRegistry] = None) -> bool:
    """
    Check if a role holds a permission.

    Args:
        role: Canonical role name (lower-case)
        permission: Permission string to check (e.g., 'users:write')
        registry: Role table, defaults to the built-in one

    Returns:
        True only for an exact match in the role's permission set
    """
    return _registry(registry).has_permission(role, permission)


def has_any_permission(role: Any, permissions: Any, registry: Optional[RBACRegistry] = None) -> bool:
    """True if the role holds at least one of the permissions."""
    if not isinstance(permissions, _SEQUENCE_TYPES) or not permissions:
        return False
    return any(has_permission(role, p, registry) for p in permissions)


def has_all_permissions(role: Any, permissions: Any, registry: Optional[RBACRegistry] = None) -> bool:
    """True if the role holds every one of the permissions."""
    if not isinstance(permissions, _SEQUENCE_TYPES) or not permissions:
        return False
    return all(has_permission(role, p, registry) for p in permissions)


def get_role_permissions(role: Any, registry: Optional[RBACRegistry] = None) -> List[str]:
    return sorted(_registry(registry).get_role_permissions(role))


def is_role_higher_or_equal(role_a: Any, role_b: Any, registry: Optional[RBACRegistry] = None) -> bool:
    """
    Compare hierarchy ranks.

    Unrecognized roles rank 0. An unranked role_a is never higher or equal,
    so two unknown roles compare False.
    """
    reg = _registry(registry)
    level_a = reg.level_of(role_a)
    if level_a == 0:
        return False
    return level_a >= reg.level_of(role_b)


def is_role_higher(role_a: Any, role_b: Any, registry: Optional[RBACRegistry] = None) -> bool:
    reg = _registry(registry)
    return reg.level_of(role_a) > reg.level_of(role_b)


def can_manage_user(actor_role: Any, target_role: Any, registry: Optional[RBACRegistry] = None) -> bool:
    """An actor may manage users whose role it strictly outranks."""
    return is_role_higher(actor_role, target_role, registry)


def validate_role(candidate: Any) -> bool:
    """True iff candidate is exactly one of the canonical role strings."""
    candidate = _token(candidate)
    return isinstance(candidate, str) and candidate in Role.values()


def is_admin(role: Any) -> bool:
    return _token(role) == Role.ADMIN.value
