"""
LMS API - the HTTP surface that puts the access-control layer in front of
course, task, progress and user records.

Handlers stay thin: the guards declared on each route load and check the
records, and the handler returns what the guards attached.
"""

from typing import Any, Dict, Optional

from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException

from src.utils.config_access import AccessSettings, load_settings
from src.utils.logging import get_logger
from src.utils.postgres_resource_store import PostgresResourceStore
from src.utils.rbac import AccessControl, Permission, RBACRegistry, Role, build_registry
from src.utils.rbac.context import CREDENTIAL_FIELDS
from src.utils.resource_store import InMemoryResourceStore, ResourceStore

logger = get_logger(__name__)


def _public_record(record: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if record is None:
        return None
    return {k: v for k, v in record.items() if k not in CREDENTIAL_FIELDS}


class LMSApiWrapper(object):

    def __init__(self, app: Flask, access: AccessControl):
        logger.info("Entering LMSApiWrapper")
        self.app = app
        self.access = access
        self.access.init_app(app)

        self.app.register_error_handler(HTTPException, self.http_error)
        self.app.register_error_handler(Exception, self.server_error)

        a = self.access
        self.add_endpoint('/api/health', 'health', self.health, methods=["GET"])
        self.add_endpoint('/api/me', 'me', a.protect()(self.me), methods=["GET"])
        self.add_endpoint('/api/permissions', 'permissions', a.protect()(self.permissions), methods=["GET"])

        self.add_endpoint(
            '/api/tasks/<id>', 'get_task',
            a.protect(
                a.validate_ids('id'),
                a.require_permission(Permission.Tasks.READ),
                a.validate_resource_ownership('task'),
            )(self.get_task),
            methods=["GET"],
        )
        self.add_endpoint(
            '/api/courses/<courseId>', 'get_course',
            a.protect(
                a.validate_ids('courseId'),
                a.require_permission(Permission.Courses.READ),
                a.require_course_enrollment(),
            )(self.get_course),
            methods=["GET"],
        )
        self.add_endpoint(
            '/api/courses/<courseId>/manage', 'manage_course',
            a.protect(
                a.validate_ids('courseId'),
                a.require_any_role(Role.ADMIN, Role.INSTRUCTOR),
                a.require_course_instructor(),
            )(self.manage_course),
            methods=["GET"],
        )
        self.add_endpoint(
            '/api/courses/<courseId>/progress', 'get_progress',
            a.protect(
                a.validate_ids('courseId'),
                a.require_permission(Permission.Progress.READ),
                a.validate_resource_ownership('progress'),
            )(self.get_progress),
            methods=["GET"],
        )
        self.add_endpoint(
            '/api/users/<userId>', 'get_user',
            a.protect(
                a.validate_ids('userId'),
                a.require_self_or_role(Role.ADMIN),
            )(self.get_user),
            methods=["GET"],
        )
        self.add_endpoint(
            '/api/users/<userId>', 'delete_user',
            a.protect(
                a.validate_ids('userId'),
                a.require_permission(Permission.Users.DELETE),
                a.validate_resource_ownership('user'),
            )(self.delete_user),
            methods=["DELETE"],
        )

    def add_endpoint(self, endpoint=None, endpoint_name=None, handler=None, methods=['GET'], *args, **kwargs):
        self.app.add_url_rule(endpoint, endpoint_name, handler, methods=methods, *args, **kwargs)

    def http_error(self, exc: HTTPException):
        return jsonify({'success': False, 'message': exc.description}), exc.code

    def server_error(self, exc: Exception):
        logger.exception(f"Unhandled error: {exc}")
        return jsonify({'success': False, 'message': 'Server error'}), 500

    def health(self):
        return jsonify({"status": "OK"}), 200

    def me(self):
        return jsonify({'success': True, 'user': g.identity.to_dict()})

    def permissions(self):
        role = g.identity.role
        return jsonify({
            'success': True,
            'role': role,
            'level': self.access.registry.level_of(role),
            'permissions': sorted(self.access.registry.get_role_permissions(role)),
        })

    def get_task(self, id):
        return jsonify({'success': True, 'task': g.access.attachments['resource']})

    def get_course(self, courseId):
        course = g.access.attachments.get('course') or self.access.store.find_course(courseId)
        if course is None:
            return jsonify({'success': False, 'message': 'Course not found'}), 404
        return jsonify({
            'success': True,
            'course': course,
            'enrollment': g.access.attachments.get('enrollment'),
        })

    def manage_course(self, courseId):
        course = g.access.attachments.get('course') or self.access.store.find_course(courseId)
        if course is None:
            return jsonify({'success': False, 'message': 'Course not found'}), 404
        return jsonify({'success': True, 'course': course})

    def get_progress(self, courseId):
        return jsonify({'success': True, 'progress': g.access.attachments['resource']})

    def get_user(self, userId):
        user = self.access.store.find_user(userId)
        if user is None:
            return jsonify({'success': False, 'message': 'User not found'}), 404
        return jsonify({'success': True, 'user': _public_record(user)})

    def delete_user(self, userId):
        deleted = self.access.store.delete_user(userId)
        if not deleted:
            return jsonify({'success': False, 'message': 'User not found'}), 404
        logger.info(f"User {userId} deleted by {g.identity.id}")
        return jsonify({'success': True, 'message': 'User deleted'})

    def run(self, **kwargs):
        self.app.run(**kwargs)


def create_app(
    settings: Optional[AccessSettings] = None,
    store: Optional[ResourceStore] = None,
    registry: Optional[RBACRegistry] = None,
) -> Flask:
    """
    Build the Flask application.

    Anything not passed in is built from configuration: settings from
    load_settings(), the role table from settings.rbac_config_path, and a
    Postgres store when settings.postgres is filled (in-memory otherwise).
    """
    settings = settings or load_settings()
    registry = registry or build_registry(settings.rbac_config_path)

    if store is None:
        if settings.postgres:
            store = PostgresResourceStore(pg_config=dict(settings.postgres))
        else:
            logger.warning("No postgres settings; using an empty in-memory store")
            store = InMemoryResourceStore()

    settings.require_secret()

    app = Flask(__name__)
    LMSApiWrapper(app, AccessControl(registry, store, settings))
    return app
