"""
RBAC Permission Enum - Authoritative list of roles and permission strings.

Permissions are grouped into nested enums by resource. Each inner class is a
str Enum, so members compare equal to their string values and can be used
anywhere a plain string is expected without calling .value.

Usage:
    from src.utils.rbac.permission_enum import Permission, Role

    access.require_permission(Permission.Users.DELETE)

    if has_permission(Role.INSTRUCTOR, Permission.Courses.WRITE):
        ...
"""

from enum import Enum


class Role(str, Enum):
    """The three canonical roles. Values are the lower-case wire form."""

    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"

    @classmethod
    def values(cls) -> frozenset:
        return frozenset(member.value for member in cls)


class Permission:
    """Namespace for all RBAC permission strings, grouped by resource."""

    class Users(str, Enum):
        READ = "users:read"
        WRITE = "users:write"
        DELETE = "users:delete"

    class Courses(str, Enum):
        READ = "courses:read"
        WRITE = "courses:write"
        DELETE = "courses:delete"

    class Modules(str, Enum):
        READ = "modules:read"
        WRITE = "modules:write"
        DELETE = "modules:delete"

    class Quiz(str, Enum):
        READ = "quiz:read"
        ATTEMPT = "quiz:attempt"
        WRITE = "quiz:write"
        DELETE = "quiz:delete"

    class Tasks(str, Enum):
        READ = "tasks:read"
        WRITE = "tasks:write"
        DELETE = "tasks:delete"

    class Progress(str, Enum):
        READ = "progress:read"
        WRITE = "progress:write"
        DELETE = "progress:delete"

    class Students(str, Enum):
        READ = "students:read"
        PROGRESS_VIEW = "students:progress:view"

    class Profile(str, Enum):
        READ = "profile:read"
        WRITE = "profile:write"

    class Reports(str, Enum):
        VIEW = "reports:view"

    class Analytics(str, Enum):
        VIEW = "analytics:view"

    class System(str, Enum):
        MANAGE = "system:manage"
