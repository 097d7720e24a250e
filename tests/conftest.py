import pytest

from src.utils.config_access import AccessSettings
from src.utils.rbac import AccessControl, RBACRegistry
from src.utils.rbac.jwt_parser import issue_token
from src.utils.rbac.registry import DEFAULT_RBAC_CONFIG
from src.utils.resource_store import InMemoryResourceStore

TEST_SECRET = "unit-test-signing-secret-0123456789abcdef"


@pytest.fixture
def registry():
    return RBACRegistry(DEFAULT_RBAC_CONFIG)


@pytest.fixture
def settings():
    return AccessSettings(jwt_secret=TEST_SECRET)


@pytest.fixture
def store():
    return InMemoryResourceStore(
        users=[
            {"id": "admin-1", "name": "Ada Admin", "email": "ada@example.com", "role": "admin", "password": "x"},
            {"id": "inst-1", "name": "Ian Instructor", "email": "ian@example.com", "role": "instructor", "password": "x"},
            {"id": "inst-2", "name": "Ines Instructor", "email": "ines@example.com", "role": "instructor", "password": "x"},
            {"id": "stud-1", "name": "Sam Student", "email": "sam@example.com", "role": "student", "password": "x"},
            {"id": "stud-2", "name": "Sue Student", "email": "sue@example.com", "role": "student", "password": "x"},
            {"id": "stud-3", "name": "Max Mixedcase", "email": "max@example.com", "role": "Student", "password": "x"},
        ],
        courses=[
            {"id": "course-1", "title": "Software Architecture", "instructor_id": "inst-1"},
            {"id": "course-2", "title": "Databases", "instructor_id": "inst-2"},
        ],
        tasks=[
            {"id": "task-1", "title": "Read chapter 1", "user_id": "stud-1", "course_id": "course-1"},
            {"id": "task-2", "title": "Read chapter 2", "user_id": "stud-2", "course_id": "course-1"},
        ],
        progress=[
            {"id": "prog-1", "user_id": "stud-1", "course_id": "course-1", "completed_modules": 2},
            {"id": "prog-2", "user_id": "stud-2", "course_id": "course-2", "completed_modules": 0},
        ],
    )


@pytest.fixture
def access(registry, store, settings):
    return AccessControl(registry, store, settings)


@pytest.fixture
def bearer():
    def _bearer(user_id, secret=TEST_SECRET, **kwargs):
        return f"Bearer {issue_token(user_id, secret, **kwargs)}"
    return _bearer
