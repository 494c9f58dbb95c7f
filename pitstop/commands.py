"""
Flask CLI commands

    flask init-db
    flask create-user inspector1 --password secret --role INSPECTOR:demo1
    flask cleanup-sessions
"""
import click
from flask import current_app

from pitstop.models import ALL_EVENTS, ROLE_VALUES, get_db, get_models


def parse_role(value: str):
    """
    Split ROLE[:EVENT] into (role, event); the event defaults to '*'.

    Raises:
        click.BadParameter: If the role name is unknown
    """
    role, _, event = value.partition(':')
    role = role.strip().upper()
    if role not in ROLE_VALUES:
        raise click.BadParameter(
            f"Unknown role {role!r}. Choose from: {', '.join(ROLE_VALUES)}"
        )
    return role, event.strip() or ALL_EVENTS


def register_commands(app):
    """Attach CLI commands to the app"""

    @app.cli.command('init-db')
    def init_db_command():
        """Create the global database tables and the event data directory."""
        from pitstop import init_db
        init_db(current_app)
        click.echo(f"Database ready; event stores in {current_app.config['EVENT_DATA_DIR']}")

    @app.cli.command('create-user')
    @click.argument('username')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option('--real-name', default=None, help='Display name')
    @click.option('--role', 'roles', multiple=True,
                  help='ROLE or ROLE:EVENT; may be repeated')
    def create_user_command(username, password, real_name, roles):
        """Create or update a console account."""
        db = get_db()
        models = get_models()
        User = models['User']
        RoleAssignment = models['RoleAssignment']

        assignments = [parse_role(value) for value in roles]

        user = db.session.get(User, username)
        created = user is None
        if created:
            user = User(username=username)
            db.session.add(user)
        user.real_name = real_name or user.real_name
        user.set_password(password)

        held = {(assignment.role, assignment.event) for assignment in user.roles}
        for role, event in assignments:
            if (role, event) not in held:
                user.roles.append(RoleAssignment(role=role, event=event))

        db.session.commit()
        click.echo(f"{'Created' if created else 'Updated'} user {username}")

    @app.cli.command('cleanup-sessions')
    def cleanup_sessions_command():
        """Delete expired login sessions."""
        db = get_db()
        UserSession = get_models()['UserSession']
        removed = UserSession.cleanup_expired(db.session)
        click.echo(f"Removed {removed} expired sessions")
