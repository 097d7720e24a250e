"""
JWT Parser - Issue and verify bearer tokens

Tokens are HS256-signed by default and carry the user id in both the 'id'
claim (the form the login endpoint has always issued) and 'sub'.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt

from src.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ALGORITHMS = ["HS256"]


class TokenVerificationError(Exception):
    """Raised when a bearer token cannot be verified or has no subject."""
    pass


def extract_bearer_token(header: Optional[str], scheme: str = "Bearer") -> Optional[str]:
    """
    Pull the token out of an Authorization header.

    Returns:
        None if the header is absent or uses another scheme, otherwise the
        text after the scheme (possibly empty when the header is just "Bearer").
    """
    if not header or not isinstance(header, str):
        return None
    if not header.startswith(scheme):
        return None

    parts = header.split()
    if len(parts) < 2:
        return ""
    return parts[1]


def issue_token(
    user_id: str,
    secret: str,
    ttl_seconds: int = 30 * 24 * 60 * 60,
    algorithm: str = "HS256",
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """Sign a token for a user id."""
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "id": str(user_id),
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(seconds=ttl_seconds),
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_jwt_claims(token: str, secret: str, algorithms: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Verify signature and expiry and return the claims.

    Raises:
        TokenVerificationError: On any verification failure
    """
    if not token:
        raise TokenVerificationError("empty token")
    if not secret:
        raise TokenVerificationError("no signing secret configured")

    try:
        return jwt.decode(token, secret, algorithms=algorithms or DEFAULT_ALGORITHMS)
    except jwt.ExpiredSignatureError as e:
        logger.info("JWT token has expired")
        raise TokenVerificationError("token expired") from e
    except jwt.InvalidTokenError as e:
        logger.info(f"JWT verification failed: {e}")
        raise TokenVerificationError(str(e)) from e


def verify_token(token: str, secret: str, algorithms: Optional[List[str]] = None) -> str:
    """
    Verify a token and return its subject user id.

    Raises:
        TokenVerificationError: If the token is invalid or carries no subject
    """
    claims = decode_jwt_claims(token, secret, algorithms)
    subject = claims.get("id") or claims.get("sub")
    if subject is None or subject == "":
        raise TokenVerificationError("token has no subject")
    return str(subject)
