"""
Unit tests for the authentication gate.
"""
from unittest.mock import MagicMock

import pytest

from src.utils.config_access import AccessSettings
from src.utils.rbac.authentication import (
    NO_TOKEN,
    SERVER_ERROR,
    TOKEN_FAILED,
    USER_NOT_FOUND,
    AuthenticationGate,
)
from src.utils.rbac.context import Identity, Reject
from src.utils.resource_store import ResourceStoreError


@pytest.fixture
def gate(store, settings):
    return AuthenticationGate(store, settings)


def _assert_reject(outcome, status, message):
    assert isinstance(outcome, Reject)
    assert outcome.status == status
    assert outcome.message == message
    assert outcome.body() == {"success": False, "message": message}


class TestAuthenticate:

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "bearer abc"])
    def test_no_token(self, gate, header):
        _assert_reject(gate.authenticate(header), 401, NO_TOKEN)

    def test_scheme_without_token(self, gate):
        _assert_reject(gate.authenticate("Bearer"), 401, TOKEN_FAILED)

    def test_token_failed(self, gate):
        _assert_reject(gate.authenticate("Bearer not.a.jwt"), 401, TOKEN_FAILED)

    def test_expired(self, gate, bearer):
        _assert_reject(gate.authenticate(bearer("stud-1", ttl_seconds=-1)), 401, TOKEN_FAILED)

    def test_wrong_secret(self, gate, bearer):
        header = bearer("stud-1", secret="forged-signing-secret-0123456789abcdef")
        _assert_reject(gate.authenticate(header), 401, TOKEN_FAILED)

    def test_deleted_user_never_authenticates(self, gate, store, bearer):
        header = bearer("stud-1")
        assert isinstance(gate.authenticate(header), Identity)

        store.delete_user("stud-1")
        _assert_reject(gate.authenticate(header), 401, USER_NOT_FOUND)

    def test_store_failure_is_server_error(self, settings, bearer):
        failing = MagicMock()
        failing.find_user.side_effect = ResourceStoreError("connection refused")
        gate = AuthenticationGate(failing, settings)
        _assert_reject(gate.authenticate(bearer("stud-1")), 500, SERVER_ERROR)

    def test_identity_excludes_credentials(self, gate, bearer):
        identity = gate.authenticate(bearer("stud-1"))
        assert identity.id == "stud-1"
        assert identity.role == "student"
        assert identity.email == "sam@example.com"
        assert "password" not in identity.to_dict()

    def test_role_is_normalized(self, gate, bearer):
        identity = gate.authenticate(bearer("stud-3"))
        assert identity.role == "student"


class TestIdentityFromRecord:

    def test_missing_role_is_empty(self):
        identity = Identity.from_record({"id": 7, "name": "No Role"})
        assert identity.id == "7"
        assert identity.role == ""

    def test_non_string_role(self):
        assert Identity.from_record({"id": "u", "role": 3}).role == ""

    def test_profile_keeps_other_fields(self):
        identity = Identity.from_record({
            "id": "u", "role": " ADMIN ", "password_hash": "h", "hashed_password": "h", "avatar": "a.png",
        })
        assert identity.role == "admin"
        assert dict(identity.profile) == {"avatar": "a.png"}


def test_missing_signing_secret_is_server_error(store, bearer):
    gate = AuthenticationGate(store, AccessSettings(jwt_secret=None))
    _assert_reject(gate.authenticate(bearer("stud-1")), 500, SERVER_ERROR)
    _assert_reject(gate.authenticate(None), 401, NO_TOKEN)
