"""
Unit tests for the permission evaluator functions.
"""
import pytest

from src.utils.rbac.permission_enum import Permission, Role
from src.utils.rbac.permissions import (
    can_manage_user,
    get_role_permissions,
    has_all_permissions,
    has_any_permission,
    has_permission,
    is_admin,
    is_role_higher,
    is_role_higher_or_equal,
    validate_role,
)

ALL_ROLES = [r.value for r in Role]


# =============================================================================
# has_permission
# =============================================================================

class TestHasPermission:

    def test_membership_matches_table_exactly(self, registry):
        universe = registry.all_permissions() | {'quizzes:read', 'users:*', 'anything:else'}
        for role in ALL_ROLES:
            held = registry.get_role_permissions(role)
            for permission in universe:
                assert has_permission(role, permission, registry) is (permission in held)

    @pytest.mark.parametrize("role,permission", [
        (None, 'courses:read'),
        ('', 'courses:read'),
        ('student', None),
        ('student', ''),
        (None, None),
        (42, 'courses:read'),
        ('student', ['courses:read']),
    ])
    def test_absent_or_malformed_input_is_false(self, role, permission):
        assert has_permission(role, permission) is False

    def test_unknown_role(self):
        assert has_permission('guest', 'courses:read') is False

    def test_role_lookup_is_case_sensitive(self):
        assert has_permission('STUDENT', 'courses:read') is False
        assert has_permission('student', 'courses:read') is True

    def test_no_wildcards(self):
        assert has_permission('admin', '*') is False
        assert has_permission('admin', 'users:*') is False

    def test_accepts_enum_members(self):
        assert has_permission(Role.INSTRUCTOR, Permission.Courses.WRITE)
        assert not has_permission(Role.STUDENT, Permission.Users.DELETE)


# =============================================================================
# any / all
# =============================================================================

class TestAnyAll:

    def test_any(self):
        assert has_any_permission('student', ['users:delete', 'courses:read'])
        assert not has_any_permission('student', ['users:delete', 'system:manage'])

    def test_all(self):
        assert has_all_permissions('instructor', ['courses:read', 'courses:write'])
        assert not has_all_permissions('instructor', ['courses:read', 'users:delete'])

    @pytest.mark.parametrize("permissions", [[], (), None, 'courses:read', {'courses:read': True}])
    def test_empty_or_non_sequence_is_false(self, permissions):
        assert has_any_permission('admin', permissions) is False
        assert has_all_permissions('admin', permissions) is False

    def test_unknown_role(self):
        assert not has_any_permission('guest', ['courses:read'])
        assert not has_all_permissions(None, ['courses:read'])


# =============================================================================
# Hierarchy
# =============================================================================

class TestHierarchy:

    def test_higher_or_equal(self):
        assert is_role_higher_or_equal('admin', 'student')
        assert not is_role_higher_or_equal('student', 'admin')
        assert is_role_higher_or_equal('admin', 'admin')
        assert is_role_higher_or_equal('instructor', 'student')

    def test_unknown_roles(self):
        assert not is_role_higher_or_equal('guest', 'visitor')
        assert not is_role_higher_or_equal(None, None)
        assert not is_role_higher_or_equal('guest', 'student')
        assert is_role_higher_or_equal('student', 'guest')

    def test_strictly_higher(self):
        assert is_role_higher('admin', 'instructor')
        assert not is_role_higher('admin', 'admin')
        assert not is_role_higher('guest', 'guest')

    def test_can_manage_user(self):
        assert can_manage_user('admin', 'instructor')
        assert can_manage_user('admin', 'student')
        assert can_manage_user('instructor', 'student')
        assert not can_manage_user('instructor', 'instructor')
        assert not can_manage_user('student', 'student')
        assert not can_manage_user('instructor', 'admin')


# =============================================================================
# Role validation
# =============================================================================

class TestValidateRole:

    @pytest.mark.parametrize("candidate", ['admin', 'instructor', 'student', Role.ADMIN])
    def test_accepts_canonical(self, candidate):
        assert validate_role(candidate)

    @pytest.mark.parametrize("candidate", ['Admin', 'STUDENT', ' student', 'tutor', '', None, 3, ['admin']])
    def test_rejects_everything_else(self, candidate):
        assert validate_role(candidate) is False

    def test_is_admin(self):
        assert is_admin('admin')
        assert not is_admin('instructor')


def test_get_role_permissions_sorted(registry):
    perms = get_role_permissions('student', registry)
    assert perms == sorted(perms)
    assert get_role_permissions('nobody') == []
