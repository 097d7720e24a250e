"""
RBAC Decorators - Route protection for Flask endpoints

AccessControl bundles the role table, the store, the authentication gate
and the ownership resolver, and hands out guards bound to them. Its
protect() decorator authenticates the request, runs the declared guards in
order and either calls the view or returns the JSON rejection.

Usage:
    access = AccessControl(registry, store, settings)
    access.init_app(app)

    @app.route('/api/tasks/<id>', methods=['DELETE'])
    @access.protect(
        access.require_permission(Permission.Tasks.DELETE),
        access.validate_resource_ownership('task'),
    )
    def delete_task(id):
        task = g.access.attachments['resource']
        ...
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from flask import Flask, g, jsonify, request

from src.utils.config_access import AccessSettings
from src.utils.logging import get_logger
from src.utils.rbac import guards as _guards
from src.utils.rbac.audit import log_api_access, log_permission_check
from src.utils.rbac.authentication import AuthenticationGate
from src.utils.rbac.context import Reject, RequestContext
from src.utils.rbac.guards import Guard, GuardChain
from src.utils.rbac.ownership import OwnershipResolver
from src.utils.rbac.registry import RBACRegistry
from src.utils.resource_store import ResourceStore

logger = get_logger(__name__)

EXTENSION_KEY = 'lms_access'


class AccessControl:
    """Authentication plus guard evaluation for one application."""

    def __init__(self, registry: RBACRegistry, store: ResourceStore, settings: AccessSettings):
        self.registry = registry
        self.store = store
        self.settings = settings
        self.gate = AuthenticationGate(store, settings)
        self.resolver = OwnershipResolver(store, registry)

    def init_app(self, app: Flask) -> None:
        app.extensions[EXTENSION_KEY] = self

    # -------------------------------------------------------------------------
    # Guard factories bound to this instance's registry and store
    # -------------------------------------------------------------------------

    def require_any_role(self, *roles: Any) -> Guard:
        return _guards.require_any_role(*roles)

    def require_role(self, role: Any) -> Guard:
        return _guards.require_role(role)

    def admin_only(self) -> Guard:
        return _guards.admin_only()

    def require_permission(self, permission: Any) -> Guard:
        return _guards.require_permission(self.registry, permission)

    def require_all_permissions(self, *permissions: Any) -> Guard:
        return _guards.require_all_permissions(self.registry, *permissions)

    def require_any_permission(self, *permissions: Any) -> Guard:
        return _guards.require_any_permission(self.registry, *permissions)

    def require_api_access(self, resource: str, operation: str) -> Guard:
        return _guards.require_api_access(self.registry, resource, operation)

    def validate_resource_ownership(self, resource_type: Any) -> Guard:
        return _guards.validate_resource_ownership(self.resolver, resource_type)

    def require_own_resource_or_role(self, resource_type: Any, *roles: Any) -> Guard:
        return _guards.require_own_resource_or_role(self.resolver, resource_type, roles)

    def require_course_enrollment(self) -> Guard:
        return _guards.require_course_enrollment(self.store)

    def require_course_instructor(self) -> Guard:
        return _guards.require_course_instructor(self.store)

    def require_self_or_role(self, *roles: Any) -> Guard:
        return _guards.require_self_or_role(*roles)

    def validate_ids(self, *param_names: str, query: bool = False) -> Guard:
        return _guards.validate_ids(*param_names, pattern=self.settings.id_pattern, query=query)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def authorize(
        self,
        authorization: Optional[str],
        params: Optional[Mapping[str, Any]] = None,
        guards: Sequence[Guard] = (),
        query: Optional[Mapping[str, Any]] = None,
        method: Optional[str] = None,
        path: Optional[str] = None,
        endpoint: Optional[str] = None,
        remote_addr: Optional[str] = None,
    ) -> Union[RequestContext, Reject]:
        """
        Authenticate and run the guard chain.

        Returns:
            The populated RequestContext when every guard allows, otherwise
            the first Reject.
        """
        identity = self.gate.authenticate(authorization)
        if isinstance(identity, Reject):
            log_permission_check(
                user='anonymous',
                role=None,
                check='authenticated',
                granted=False,
                endpoint=endpoint or path,
                status=identity.status,
                reason=identity.message,
            )
            return identity

        log_api_access(identity.id, identity.role, method, path, remote_addr)

        context = RequestContext(
            identity=identity,
            params=dict(params or {}),
            query=dict(query or {}),
            method=method,
            path=path,
            endpoint=endpoint,
        )
        decision = GuardChain(guards).run(context)
        if isinstance(decision, Reject):
            return decision
        return context

    def protect(self, *guards: Guard) -> Callable:
        """
        Decorator that requires authentication plus every listed guard.

        With no guards the route only needs a valid credential.
        """
        def decorator(f: Callable) -> Callable:
            @wraps(f)
            def decorated_function(*args, **kwargs):
                outcome = self.authorize(
                    request.headers.get('Authorization'),
                    params=kwargs,
                    guards=guards,
                    query=request.args.to_dict(),
                    method=request.method,
                    path=request.path,
                    endpoint=request.endpoint,
                    remote_addr=request.remote_addr,
                )
                if isinstance(outcome, Reject):
                    return jsonify(outcome.body()), outcome.status

                g.access = outcome
                g.identity = outcome.identity
                return f(*args, **kwargs)

            return decorated_function

        return decorator
