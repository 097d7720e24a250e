"""
Config access helpers for the access-control service.

Settings come from a YAML file (LMS_ACCESS_CONFIG, or configs/lms_access.yaml)
and secrets come from read_secret. Values are resolved once at startup and
then passed by reference to whatever needs them.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from src.utils.env import read_secret
from src.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_LOCATIONS = [
    os.path.join(os.getcwd(), "configs", "lms_access.yaml"),
    os.path.join(os.path.dirname(__file__), "..", "..", "configs", "lms_access.yaml"),
]

# Matches the 30 day lifetime of issued login tokens
DEFAULT_TOKEN_TTL_SECONDS = 30 * 24 * 60 * 60


class ConfigNotReadyError(RuntimeError):
    pass


@dataclass
class AccessSettings:
    """Deploy-time settings for authentication and authorization."""

    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    auth_scheme: str = "Bearer"

    # Path to auth_roles.yaml; None uses the built-in table
    rbac_config_path: Optional[str] = None

    # Route params that must look like document ids, None disables the format check
    id_pattern: Optional[str] = None

    postgres: Dict[str, Any] = field(default_factory=dict)
    verbosity: int = 3

    host: str = "127.0.0.1"
    port: int = 7870

    @property
    def algorithms(self) -> List[str]:
        return [self.jwt_algorithm]

    def require_secret(self) -> str:
        if not self.jwt_secret:
            raise ConfigNotReadyError(
                "JWT_SECRET is not set. Export it or point JWT_SECRET_FILE at a file."
            )
        return self.jwt_secret


def _find_config_file(config_path: Optional[str]) -> Optional[str]:
    candidates = [config_path, os.environ.get("LMS_ACCESS_CONFIG")] + DEFAULT_CONFIG_LOCATIONS
    for path in candidates:
        if path and os.path.isfile(path):
            return path
    if config_path:
        raise ConfigNotReadyError(f"Config file not found: {config_path}")
    return None


def load_settings(config_path: Optional[str] = None) -> AccessSettings:
    """
    Build AccessSettings from YAML plus secrets.

    Args:
        config_path: Optional explicit YAML path. Falls back to
                     LMS_ACCESS_CONFIG and then configs/lms_access.yaml.

    Returns:
        AccessSettings with the JWT secret filled from the environment.
    """
    raw: Dict[str, Any] = {}
    config_file = _find_config_file(config_path)
    if config_file:
        logger.info(f"Loading access settings from: {config_file}")
        with open(config_file, "r") as f:
            raw = yaml.safe_load(f) or {}
    else:
        logger.warning("No lms_access configuration found, using defaults")

    auth = raw.get("auth", {}) or {}
    service = raw.get("service", {}) or {}

    settings = AccessSettings(
        jwt_secret=read_secret("JWT_SECRET"),
        jwt_algorithm=auth.get("jwt_algorithm", "HS256"),
        token_ttl_seconds=int(auth.get("token_ttl_seconds", DEFAULT_TOKEN_TTL_SECONDS)),
        auth_scheme=auth.get("scheme", "Bearer"),
        rbac_config_path=auth.get("auth_roles_path"),
        id_pattern=auth.get("id_pattern"),
        postgres=raw.get("postgres", {}) or {},
        verbosity=int(service.get("verbosity", 3)),
        host=service.get("host", "127.0.0.1"),
        port=int(service.get("port", 7870)),
    )

    if settings.postgres and not settings.postgres.get("password"):
        settings.postgres["password"] = read_secret("PG_PASSWORD", "")

    return settings
