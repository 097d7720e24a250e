"""
RBAC Audit Logging - Security event logging for access control

This module provides audit logging for authentication outcomes, guard
decisions and API access, supporting later security analysis.
"""

import json
from datetime import datetime, timezone
from typing import Optional

from src.utils.logging import get_logger

# Dedicated audit logger
audit_logger = get_logger('rbac.audit')


def log_permission_check(
    user: str,
    role: Optional[str],
    check: str,
    granted: bool,
    endpoint: Optional[str],
    status: Optional[int] = None,
    reason: Optional[str] = None,
    extra: Optional[dict] = None
) -> None:
    """
    Log a guard decision for the audit trail.

    Args:
        user: User id (or 'anonymous')
        role: User's role, None when unauthenticated
        check: Name of the guard that decided (e.g. "permission(users:delete)")
        granted: Whether access was granted
        endpoint: Route endpoint name or path
        status: HTTP status of the rejection, if denied
        reason: Rejection message, if denied
        extra: Additional context information
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    result = 'GRANTED' if granted else 'DENIED'

    log_entry = {
        'timestamp': timestamp,
        'user': user,
        'role': role,
        'check': check,
        'result': result,
        'endpoint': endpoint,
    }

    if status is not None:
        log_entry['status'] = status
    if reason:
        log_entry['reason'] = reason
    if extra:
        log_entry.update(extra)

    log_message = f"{user} | {check} | {result} | {endpoint} | role: {role}"

    if granted:
        audit_logger.debug(log_message)
    else:
        audit_logger.warning(log_message)
        audit_logger.info(f"AUDIT: {json.dumps(log_entry, default=str)}")


def log_authentication_event(
    user: str,
    success: bool,
    method: str = 'jwt',
    details: Optional[str] = None
) -> None:
    """
    Log an authentication event.

    Args:
        user: User id (or 'unknown' when the token could not be read)
        success: Whether the credential resolved to an identity
        method: Authentication method
        details: Additional details or failure reason
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    result = 'SUCCESS' if success else 'FAILURE'

    log_entry = {
        'timestamp': timestamp,
        'event': 'authenticate',
        'user': user,
        'result': result,
        'method': method,
    }

    if details:
        log_entry['details'] = details

    log_message = f"AUTH | {user} | {result} | method: {method}"
    if details:
        log_message += f" | {details}"

    if success:
        audit_logger.debug(log_message)
    else:
        audit_logger.warning(log_message)

    audit_logger.debug(f"AUDIT: {json.dumps(log_entry)}")


def log_api_access(
    user: str,
    role: Optional[str],
    method: Optional[str],
    path: Optional[str],
    remote_addr: Optional[str] = None
) -> None:
    """One line per authenticated request."""
    timestamp = datetime.now(timezone.utc).isoformat()
    audit_logger.info(
        f"[{timestamp}] {method} {path} - User: {user} ({role or 'none'}) - IP: {remote_addr or 'unknown'}"
    )
