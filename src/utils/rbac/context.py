"""
Request-scoped types passed between the authentication gate and the guards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

# Never copied from a user record into an Identity
CREDENTIAL_FIELDS = frozenset({"password", "password_hash", "hashed_password"})


def record_id(record: Mapping[str, Any]) -> Any:
    """Id of a store record, under "id" or the document-style "_id"."""
    return record.get("id", record.get("_id"))


@dataclass(frozen=True)
class Identity:
    """The authenticated actor for one request."""

    id: str
    role: str
    email: Optional[str] = None
    name: Optional[str] = None
    profile: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Identity":
        """
        Build an identity from a user record.

        The role is lower-cased here so that permission lookups downstream
        can stay exact-match. Credential fields are dropped.
        """
        user_id = record_id(record)
        role = record.get("role")
        role = role.strip().lower() if isinstance(role, str) else ""

        profile = {
            key: value
            for key, value in record.items()
            if key not in CREDENTIAL_FIELDS and key not in {"id", "_id", "role", "email", "name"}
        }
        return cls(
            id=str(user_id),
            role=role,
            email=record.get("email"),
            name=record.get("name"),
            profile=MappingProxyType(profile),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "role": self.role, "email": self.email, "name": self.name}
        data.update(self.profile)
        return data


@dataclass
class RequestContext:
    """What a guard can see: the identity, route and query params, and loaded records."""

    identity: Optional[Identity]
    params: Mapping[str, Any] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    method: Optional[str] = None
    path: Optional[str] = None
    endpoint: Optional[str] = None
    attachments: Dict[str, Any] = field(default_factory=dict)

    def param(self, *names: str) -> Optional[str]:
        """First non-empty route param among names, in order."""
        for name in names:
            value = self.params.get(name)
            if value is not None and value != "":
                return str(value)
        return None


@dataclass(frozen=True)
class Allow:
    allowed = True


@dataclass(frozen=True)
class Reject:
    """A failed check. Rendered as {"success": false, "message": ..., **details}."""

    status: int
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)

    allowed = False

    def body(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "message": self.message}
        for key, value in self.details.items():
            if key not in payload:
                payload[key] = value
        return payload


ALLOW = Allow()

Decision = Union[Allow, Reject]
