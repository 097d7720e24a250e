"""
Authentication gate - resolves a bearer credential to an Identity

Outcomes:
    no header / other scheme        401 "Not authorized, no token"
    no signing secret configured    500 "Server error during authentication"
    token fails verification        401 "Not authorized, token failed"
    store lookup raises             500 "Server error during authentication"
    subject has no user record      401 "Not authorized, user not found"

A verified token whose user has been deleted is an authentication failure;
it never yields an identity.
"""

from __future__ import annotations

from typing import Optional, Union

from src.utils.config_access import AccessSettings
from src.utils.logging import get_logger
from src.utils.rbac.audit import log_authentication_event
from src.utils.rbac.context import Identity, Reject
from src.utils.rbac.jwt_parser import TokenVerificationError, extract_bearer_token, verify_token
from src.utils.resource_store import ResourceStore

logger = get_logger(__name__)

NO_TOKEN = "Not authorized, no token"
TOKEN_FAILED = "Not authorized, token failed"
USER_NOT_FOUND = "Not authorized, user not found"
SERVER_ERROR = "Server error during authentication"


class AuthenticationGate:
    def __init__(self, store: ResourceStore, settings: AccessSettings):
        self.store = store
        self.settings = settings

    def authenticate(self, authorization: Optional[str]) -> Union[Identity, Reject]:
        token = extract_bearer_token(authorization, self.settings.auth_scheme)
        if token is None:
            log_authentication_event('anonymous', success=False, details='no token')
            return Reject(401, NO_TOKEN)

        if not self.settings.jwt_secret:
            logger.error("JWT secret is not configured; cannot verify bearer tokens")
            return Reject(500, SERVER_ERROR)

        try:
            user_id = verify_token(token, self.settings.jwt_secret, self.settings.algorithms)
        except TokenVerificationError as e:
            log_authentication_event('unknown', success=False, details=f'token failed: {e}')
            return Reject(401, TOKEN_FAILED)

        try:
            record = self.store.find_user(user_id)
        except Exception:
            logger.exception(f"User lookup failed while authenticating {user_id}")
            return Reject(500, SERVER_ERROR)

        if record is None:
            log_authentication_event(user_id, success=False, details='user not found')
            return Reject(401, USER_NOT_FOUND)

        identity = Identity.from_record(record)
        log_authentication_event(identity.id, success=True)
        return identity
