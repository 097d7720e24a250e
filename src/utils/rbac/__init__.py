"""
RBAC (Role-Based Access Control) Module for the LMS API

This module provides authentication and authorization functionality including:
- The role/permission table and role hierarchy
- Pure permission evaluation functions
- Bearer token verification and identity resolution
- Composable route guards and the chain that runs them
- Ownership resolution for courses, tasks, progress, users and enrollments
- Audit logging for security events

Usage:
    from src.utils.rbac import AccessControl, Permission, build_registry

    access = AccessControl(build_registry(), store, settings)

    @app.route('/api/users/<userId>', methods=['DELETE'])
    @access.protect(access.require_permission(Permission.Users.DELETE))
    def delete_user(userId):
        ...
"""

from src.utils.rbac.permission_enum import Permission, Role
from src.utils.rbac.registry import (
    DEFAULT_REGISTRY,
    RBACConfigError,
    RBACRegistry,
    build_registry,
    load_rbac_config,
)
from src.utils.rbac.permissions import (
    can_manage_user,
    get_role_permissions,
    has_all_permissions,
    has_any_permission,
    has_permission,
    is_role_higher,
    is_role_higher_or_equal,
    validate_role,
)
from src.utils.rbac.context import ALLOW, Allow, Identity, Reject, RequestContext
from src.utils.rbac.jwt_parser import (
    TokenVerificationError,
    extract_bearer_token,
    issue_token,
    verify_token,
)
from src.utils.rbac.authentication import AuthenticationGate
from src.utils.rbac.ownership import OwnershipResolver, OwnershipResult, ResourceKind
from src.utils.rbac.guards import Guard, GuardChain
from src.utils.rbac.decorators import AccessControl

__all__ = [
    # Roles and permissions
    'Permission',
    'Role',
    # Registry
    'DEFAULT_REGISTRY',
    'RBACConfigError',
    'RBACRegistry',
    'build_registry',
    'load_rbac_config',
    # Evaluator
    'can_manage_user',
    'get_role_permissions',
    'has_all_permissions',
    'has_any_permission',
    'has_permission',
    'is_role_higher',
    'is_role_higher_or_equal',
    'validate_role',
    # Request context
    'ALLOW',
    'Allow',
    'Identity',
    'Reject',
    'RequestContext',
    # Tokens
    'TokenVerificationError',
    'extract_bearer_token',
    'issue_token',
    'verify_token',
    # Authentication and authorization
    'AuthenticationGate',
    'OwnershipResolver',
    'OwnershipResult',
    'ResourceKind',
    'Guard',
    'GuardChain',
    'AccessControl',
]
