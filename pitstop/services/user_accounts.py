"""
Console account management

Accounts and their role assignments live in the global database. Every
account keeps at least one role, and the last global admin cannot be
removed.
"""
import logging
from typing import Iterable, List, Optional, Tuple

from pitstop.error_handlers.exceptions import (
    ConflictException,
    ResourceNotFoundException,
    ValidationException,
)
from pitstop.models import ALL_EVENTS

logger = logging.getLogger(__name__)

RolePair = Tuple[str, str]


class UserAccountService:
    """
    CRUD for User rows and their RoleAssignment rows.

    Args:
        db: Flask-SQLAlchemy instance
        models: Model dict from init_models()
    """

    def __init__(self, db, models):
        self.db = db
        self.User = models['User']
        self.RoleAssignment = models['RoleAssignment']
        self.UserSession = models['UserSession']
        self.Event = models['Event']

    def list_users(self) -> List[dict]:
        users = self.db.session.query(self.User).order_by(self.User.username).all()
        return [user.to_dict() for user in users]

    def get_user(self, username: str) -> dict:
        return self._require_user(username).to_dict()

    def create_user(self, username: str, password: str, roles: Iterable[RolePair],
                    real_name: Optional[str] = None) -> dict:
        """
        Raises:
            ValidationException: If the role list is empty, repeats an
                assignment or names an unknown event
            ConflictException: If the username is taken
        """
        assignments = self._validate_roles(roles)
        if self.db.session.get(self.User, username) is not None:
            raise ConflictException(f'User "{username}" already exists.')

        user = self.User(username=username, real_name=real_name)
        user.set_password(password)
        for role, event in assignments:
            user.roles.append(self.RoleAssignment(role=role, event=event))
        self.db.session.add(user)
        self.db.session.commit()

        logger.info(f"Created user {username} with roles {assignments}")
        return user.to_dict()

    def update_user(self, username: str, roles: Iterable[RolePair],
                    password: str = '', real_name: Optional[str] = None) -> dict:
        """
        Replace the user's roles; change the password only when one is given.

        Raises:
            ResourceNotFoundException: If the user does not exist
            ValidationException: If the role list is invalid
        """
        assignments = self._validate_roles(roles)
        user = self._require_user(username)

        if password:
            user.set_password(password)
        if real_name is not None:
            user.real_name = real_name

        user.roles.clear()
        # Flush the removals so re-adding an unchanged assignment does not
        # collide with the row being deleted
        self.db.session.flush()
        for role, event in assignments:
            user.roles.append(self.RoleAssignment(role=role, event=event))
        self.db.session.commit()

        logger.info(
            f"Updated user {username}: roles {assignments}, "
            f"password {'changed' if password else 'unchanged'}"
        )
        return user.to_dict()

    def delete_user(self, username: str, current_username: str) -> None:
        """
        Delete an account together with its roles and sessions.

        Raises:
            ValidationException: If the account is the caller's own or the
                last global admin
            ResourceNotFoundException: If the user does not exist
        """
        if username == current_username:
            raise ValidationException('You cannot delete the currently logged in user.')

        user = self._require_user(username)
        if user.is_global_admin() and self._global_admin_count() <= 1:
            raise ValidationException('Cannot delete the last global admin user.')

        self.UserSession.query.filter(self.UserSession.user_id == username).delete()
        self.db.session.delete(user)
        self.db.session.commit()

        logger.info(f"Deleted user {username} (by {current_username})")

    def _require_user(self, username: str):
        user = self.db.session.get(self.User, username)
        if user is None:
            raise ResourceNotFoundException(f'User "{username}" was not found.')
        return user

    def _global_admin_count(self) -> int:
        return self.RoleAssignment.query.filter(
            self.RoleAssignment.role == 'ADMIN',
            self.RoleAssignment.event == ALL_EVENTS
        ).count()

    def _validate_roles(self, roles: Iterable[RolePair]) -> List[RolePair]:
        assignments = list(roles)
        if not assignments:
            raise ValidationException('At least one role assignment is required.')

        seen = set()
        for role, event in assignments:
            if (role, event) in seen:
                raise ValidationException(
                    f'Duplicate role assignment: {role} for event {event}.'
                )
            seen.add((role, event))

        scoped = sorted({event for _, event in assignments if event != ALL_EVENTS})
        if scoped:
            existing = {
                code for (code,) in
                self.db.session.query(self.Event.code).filter(self.Event.code.in_(scoped))
            }
            missing = [code for code in scoped if code not in existing]
            if missing:
                raise ValidationException(f"Event does not exist: {', '.join(missing)}.")

        return assignments
