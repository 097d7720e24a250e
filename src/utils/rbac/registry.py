"""
RBAC Registry - Role to permission table and role hierarchy

This module builds the immutable role table used by every permission check.
The table comes from a standalone auth_roles.yaml file or from the built-in
default below. It is constructed once at startup and handed to the guards
that need it; nothing looks it up through module state at request time.
"""

import copy
import os
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Set

import yaml

from src.utils.logging import get_logger
from src.utils.rbac.permission_enum import Role

logger = get_logger(__name__)


DEFAULT_RBAC_CONFIG: Dict[str, Any] = {
    'roles': {
        'student': {
            'level': 1,
            'description': 'Enrolled learner',
            'permissions': [
                'courses:read',
                'modules:read',
                'quiz:read',
                'quiz:attempt',
                'tasks:read',
                'progress:read',
                'progress:write',
                'profile:read',
                'profile:write',
            ],
        },
        'instructor': {
            'level': 2,
            'description': 'Teaches and manages their own courses',
            'inherits': ['student'],
            'permissions': [
                'courses:write',
                'courses:delete',
                'modules:write',
                'modules:delete',
                'quiz:write',
                'quiz:delete',
                'tasks:write',
                'tasks:delete',
                'students:read',
                'students:progress:view',
                'reports:view',
                'analytics:view',
            ],
        },
        'admin': {
            'level': 3,
            'description': 'Full system access',
            'inherits': ['instructor'],
            'permissions': [
                'users:read',
                'users:write',
                'users:delete',
                'progress:delete',
                'system:manage',
            ],
        },
    },
}


class RBACConfigError(Exception):
    """Raised when RBAC configuration is invalid."""
    pass


def _token(value: Any) -> Any:
    """Unwrap enum members to their plain string value."""
    return value.value if isinstance(value, Enum) else value


class RBACRegistry:
    """
    Immutable role table.

    Manages:
    - Role definitions, hierarchy levels and inheritance
    - Resolved permission sets per role
    - Configuration validation

    All lookups are exact-match on the canonical lower-case role name.
    Instances are safe to share between threads; nothing is mutated after
    __init__ returns.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the RBAC registry from configuration.

        Args:
            config: Dictionary in auth_roles format ({'roles': {...}})

        Raises:
            RBACConfigError: If configuration is invalid
        """
        config = copy.deepcopy(config or {})
        self._roles: Dict[str, Dict] = config.get('roles') or {}

        self._validate_config()

        permissions: Dict[str, FrozenSet[str]] = {}
        for role_name in self._roles:
            permissions[role_name] = frozenset(self._resolve_permissions(role_name))

        levels = {name: int(cfg['level']) for name, cfg in self._roles.items()}

        self._role_permissions = MappingProxyType(permissions)
        self._levels = MappingProxyType(levels)

        self._validate_resolved()

        logger.info(
            f"RBAC Registry initialized: {len(self._roles)} roles, "
            f"{len(self.all_permissions())} permissions"
        )

    def _validate_config(self) -> None:
        if not self._roles:
            raise RBACConfigError("No roles defined in configuration")

        canonical = Role.values()
        configured = set(self._roles)

        unknown = configured - canonical
        if unknown:
            raise RBACConfigError(f"Unknown roles in configuration: {sorted(unknown)}")

        missing = canonical - configured
        if missing:
            raise RBACConfigError(f"Roles missing from configuration: {sorted(missing)}")

        for role_name, role_config in self._roles.items():
            if not isinstance(role_config, dict):
                raise RBACConfigError(f"Role '{role_name}' must be a mapping")

            level = role_config.get('level')
            if isinstance(level, bool) or not isinstance(level, int) or level < 1:
                raise RBACConfigError(f"Role '{role_name}' needs an integer level >= 1")

            for parent in role_config.get('inherits', []) or []:
                if parent not in self._roles:
                    raise RBACConfigError(
                        f"Role '{role_name}' inherits from undefined role '{parent}'"
                    )

            for permission in role_config.get('permissions', []) or []:
                if not isinstance(permission, str) or not permission:
                    raise RBACConfigError(
                        f"Role '{role_name}' has an invalid permission entry: {permission!r}"
                    )

        for role_name in self._roles:
            self._check_circular_inheritance(role_name, set())

        logger.debug("RBAC configuration validated successfully")

    def _check_circular_inheritance(self, role_name: str, visited: Set[str], path: List[str] = None) -> None:
        if path is None:
            path = []

        if role_name in visited:
            cycle = ' -> '.join(path + [role_name])
            raise RBACConfigError(f"Circular inheritance detected: {cycle}")

        visited.add(role_name)
        path.append(role_name)

        for parent in self._roles.get(role_name, {}).get('inherits', []) or []:
            self._check_circular_inheritance(parent, visited.copy(), path.copy())

    def _resolve_permissions(self, role_name: str) -> Set[str]:
        """Resolve a role's own permissions plus everything it inherits."""
        role_config = self._roles.get(role_name, {})
        permissions = set(role_config.get('permissions', []) or [])

        for parent in role_config.get('inherits', []) or []:
            permissions.update(self._resolve_permissions(parent))

        return permissions

    def _validate_resolved(self) -> None:
        for role_name, perms in self._role_permissions.items():
            if not perms:
                raise RBACConfigError(f"Role '{role_name}' has no permissions")

    @property
    def roles(self) -> List[str]:
        """Role names ordered from most to least privileged."""
        return sorted(self._levels, key=lambda name: self._levels[name], reverse=True)

    @property
    def hierarchy(self) -> Mapping[str, int]:
        return self._levels

    def level_of(self, role: Any) -> int:
        """Hierarchy rank of a role; unknown or absent roles rank 0."""
        role = _token(role)
        if not isinstance(role, str):
            return 0
        return self._levels.get(role, 0)

    def is_valid_role(self, role_name: Any) -> bool:
        role_name = _token(role_name)
        return isinstance(role_name, str) and role_name in self._role_permissions

    def get_role_permissions(self, role_name: Any) -> FrozenSet[str]:
        """
        Get all permissions granted to a role (including inherited).

        Returns:
            Frozen set of permission strings, empty if role not found
        """
        role_name = _token(role_name)
        if not isinstance(role_name, str):
            return frozenset()
        return self._role_permissions.get(role_name, frozenset())

    def has_permission(self, role: Any, permission: Any) -> bool:
        role = _token(role)
        permission = _token(permission)
        if not role or not permission:
            return False
        if not isinstance(role, str) or not isinstance(permission, str):
            return False
        return permission in self._role_permissions.get(role, frozenset())

    def get_roles_with_permission(self, permission: Any) -> List[str]:
        """
        Get all roles that grant a specific permission.

        Useful for error messages ("You need role X or Y to do this").
        """
        permission = _token(permission)
        return [role for role in self.roles if permission in self._role_permissions[role]]

    def all_permissions(self) -> FrozenSet[str]:
        result: Set[str] = set()
        for perms in self._role_permissions.values():
            result.update(perms)
        return frozenset(result)

    def get_role_info(self, role_name: str) -> Optional[Dict]:
        info = self._roles.get(_token(role_name))
        return copy.deepcopy(info) if info is not None else None

    def describe(self) -> List[Dict[str, Any]]:
        """Role summaries, most privileged first, for display and APIs."""
        return [
            {
                'role': role,
                'level': self._levels[role],
                'description': self._roles[role].get('description', ''),
                'inherits': list(self._roles[role].get('inherits', []) or []),
                'permissions': sorted(self._role_permissions[role]),
            }
            for role in self.roles
        ]


def load_rbac_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load RBAC configuration from a YAML file or the built-in default.

    Priority order:
    1. Explicit config_path if provided
    2. LMS_RBAC_CONFIG environment variable
    3. configs/auth_roles.yaml in the working directory
    4. Built-in default table

    Raises:
        RBACConfigError: If an explicit path does not exist or is not YAML
    """
    if config_path and not os.path.isfile(config_path):
        raise RBACConfigError(f"RBAC configuration file not found: {config_path}")

    search_paths = [
        config_path,
        os.environ.get('LMS_RBAC_CONFIG'),
        os.path.join(os.getcwd(), 'configs', 'auth_roles.yaml'),
    ]

    config_file = None
    for path in search_paths:
        if path and os.path.isfile(path):
            config_file = path
            break

    if config_file:
        logger.info(f"Loading RBAC configuration from: {config_file}")
        try:
            with open(config_file, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise RBACConfigError(f"Could not parse {config_file}: {e}") from e
        if not isinstance(config, dict):
            raise RBACConfigError(f"{config_file} does not contain a mapping")
        return config

    logger.info("No auth_roles configuration found, using built-in role table")
    return copy.deepcopy(DEFAULT_RBAC_CONFIG)


def build_registry(config_path: Optional[str] = None) -> RBACRegistry:
    """Load configuration and construct the registry. Call once at startup."""
    return RBACRegistry(load_rbac_config(config_path))


DEFAULT_REGISTRY = RBACRegistry(DEFAULT_RBAC_CONFIG)
