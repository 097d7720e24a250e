from typing import Optional

import click

from src.utils.config_access import ConfigNotReadyError, load_settings
from src.utils.logging import get_logger, setup_cli_logging
from src.utils.rbac.jwt_parser import issue_token
from src.utils.rbac.permissions import (
    has_permission,
    is_role_higher_or_equal,
    validate_role,
)
from src.utils.rbac.registry import RBACConfigError, build_registry


@click.group()
def cli():
    pass


def _load_registry(auth_roles: Optional[str]):
    try:
        return build_registry(auth_roles)
    except RBACConfigError as e:
        raise click.ClickException(f"Invalid role configuration: {e}")


@click.command()
@click.option('--auth-roles', '-r', type=str, help="Path to auth_roles.yaml (default: built-in table)")
@click.option('--verbosity', '-v', type=int, default=2, help="Logging verbosity level (0-4)")
def roles(auth_roles: Optional[str], verbosity: int):
    """Print the role table, most privileged role first."""
    setup_cli_logging(verbosity=verbosity)
    registry = _load_registry(auth_roles)

    for entry in registry.describe():
        inherits = f" (inherits: {', '.join(entry['inherits'])})" if entry['inherits'] else ""
        click.echo(f"{entry['role']} [level {entry['level']}]{inherits}")
        if entry['description']:
            click.echo(f"  {entry['description']}")
        for permission in entry['permissions']:
            click.echo(f"    - {permission}")


@click.command()
@click.argument('role')
@click.argument('permission')
@click.option('--auth-roles', '-r', type=str, help="Path to auth_roles.yaml (default: built-in table)")
@click.option('--verbosity', '-v', type=int, default=2, help="Logging verbosity level (0-4)")
def check(role: str, permission: str, auth_roles: Optional[str], verbosity: int):
    """Check whether ROLE holds PERMISSION. Exits 1 when it does not."""
    setup_cli_logging(verbosity=verbosity)
    registry = _load_registry(auth_roles)

    if not validate_role(role):
        click.echo(f"'{role}' is not a recognized role; access would be denied", err=True)

    if has_permission(role, permission, registry):
        click.echo(f"GRANTED: {role} holds {permission}")
        return

    holders = registry.get_roles_with_permission(permission)
    hint = f" (held by: {', '.join(holders)})" if holders else ""
    click.echo(f"DENIED: {role} does not hold {permission}{hint}")
    raise click.exceptions.Exit(1)


@click.command()
@click.argument('role_a')
@click.argument('role_b')
@click.option('--auth-roles', '-r', type=str, help="Path to auth_roles.yaml (default: built-in table)")
def compare(role_a: str, role_b: str, auth_roles: Optional[str]):
    """Report whether ROLE_A ranks at or above ROLE_B."""
    registry = _load_registry(auth_roles)
    result = is_role_higher_or_equal(role_a, role_b, registry)
    click.echo(
        f"{role_a} (level {registry.level_of(role_a)}) "
        f"{'>=' if result else 'is not >='} "
        f"{role_b} (level {registry.level_of(role_b)})"
    )


@click.command(name='issue-token')
@click.argument('user_id')
@click.option('--config', '-c', 'config_path', type=str, help="Path to lms_access.yaml")
@click.option('--ttl', type=int, default=None, help="Token lifetime in seconds")
def issue_token_command(user_id: str, config_path: Optional[str], ttl: Optional[int]):
    """Sign a bearer token for USER_ID with JWT_SECRET."""
    try:
        settings = load_settings(config_path)
        secret = settings.require_secret()
    except ConfigNotReadyError as e:
        raise click.ClickException(str(e))

    token = issue_token(
        user_id,
        secret,
        ttl_seconds=ttl if ttl is not None else settings.token_ttl_seconds,
        algorithm=settings.jwt_algorithm,
    )
    click.echo(token)


@click.command()
@click.option('--config', '-c', 'config_path', type=str, help="Path to lms_access.yaml")
@click.option('--host', type=str, default=None, help="Bind address (default from config)")
@click.option('--port', '-p', type=int, default=None, help="Port (default from config)")
@click.option('--verbosity', '-v', type=int, default=None, help="Logging verbosity level (0-4)")
def serve(config_path: Optional[str], host: Optional[str], port: Optional[int], verbosity: Optional[int]):
    """Run the LMS API with the Flask development server."""
    from src.interfaces.lms_api.app import create_app

    try:
        settings = load_settings(config_path)
        setup_cli_logging(verbosity=verbosity if verbosity is not None else settings.verbosity)
        app = create_app(settings=settings)
    except (ConfigNotReadyError, RBACConfigError) as e:
        raise click.ClickException(str(e))

    logger = get_logger(__name__)
    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info(f"Serving LMS API on {bind_host}:{bind_port}")
    app.run(host=bind_host, port=bind_port)


def main():
    """
    Entrypoint for the lms-access cli tool implemented using Click.
    """
    cli.add_command(roles)
    cli.add_command(check)
    cli.add_command(compare)
    cli.add_command(issue_token_command)
    cli.add_command(serve)
    cli()
