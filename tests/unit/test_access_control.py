"""
End-to-end authorization through AccessControl.authorize: token in, decision out.
"""
from flask import Flask

from src.utils.rbac import AccessControl, Permission, Reject, RequestContext
from src.utils.rbac.decorators import EXTENSION_KEY


def test_student_never_deletes_users_even_when_owner(access, bearer):
    outcome = access.authorize(
        bearer("stud-1"),
        params={"userId": "stud-1"},
        guards=[
            access.require_permission(Permission.Users.DELETE),
            access.validate_resource_ownership("user"),
        ],
    )
    assert isinstance(outcome, Reject)
    assert outcome.status == 403


def test_course_instructor_route(access, bearer):
    guards = [access.require_course_instructor()]

    denied = access.authorize(bearer("inst-2"), params={"courseId": "course-1"}, guards=guards)
    assert isinstance(denied, Reject)
    assert denied.status == 403

    allowed = access.authorize(bearer("admin-1"), params={"courseId": "course-1"}, guards=guards)
    assert isinstance(allowed, RequestContext)
    assert allowed.identity.role == "admin"


def test_authentication_runs_before_guards(access):
    outcome = access.authorize(None, guards=[access.admin_only()])
    assert outcome.status == 401
    assert outcome.message == "Not authorized, no token"


def test_context_carries_attachments(access, bearer):
    outcome = access.authorize(
        bearer("stud-1"),
        params={"id": "task-1"},
        guards=[access.validate_resource_ownership("task")],
        method="GET",
        path="/api/tasks/task-1",
    )
    assert outcome.attachments["resource"]["user_id"] == "stud-1"
    assert outcome.path == "/api/tasks/task-1"


def test_validate_ids_uses_configured_pattern(registry, store, settings, bearer):
    settings.id_pattern = r"[0-9a-f]{24}"
    strict = AccessControl(registry, store, settings)
    outcome = strict.authorize(bearer("stud-1"), params={"id": "task-1"}, guards=[strict.validate_ids("id")])
    assert outcome.status == 400


def test_init_app_registers_extension(access):
    app = Flask(__name__)
    access.init_app(app)
    assert app.extensions[EXTENSION_KEY] is access


def test_query_ids_checked_against_configured_pattern(registry, store, settings, bearer):
    settings.id_pattern = r"[0-9a-f]{24}"
    strict = AccessControl(registry, store, settings)
    guards = [strict.validate_ids("studentId", query=True)]

    rejected = strict.authorize(bearer("stud-1"), query={"studentId": "stud-2"}, guards=guards)
    assert rejected.status == 400
    assert rejected.message == "Invalid query parameters"

    allowed = strict.authorize(bearer("stud-1"), query={"studentId": "64b7f0c2a1e4d3b2c1a09f8e"}, guards=guards)
    assert allowed.query["studentId"] == "64b7f0c2a1e4d3b2c1a09f8e"
