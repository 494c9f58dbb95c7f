"""
User and role assignment models
Accounts that can sign in to the console, and the per-event roles
that gate what they may do.
"""
from werkzeug.security import generate_password_hash, check_password_hash

ROLE_VALUES = (
    'ADMIN',
    'TSO',
    'HEAD_REFEREE',
    'REFEREE',
    'INSPECTOR',
    'LEAD_INSPECTOR',
    'JUDGE',
)

# Event scope meaning "every event"
ALL_EVENTS = '*'


def create_user_models(db):
    """Factory function to create User and RoleAssignment models with db instance"""

    class User(db.Model):
        """Console account"""
        __tablename__ = 'users'

        username = db.Column(db.String(64), primary_key=True)
        hashed_password = db.Column(db.String(255), nullable=False)
        real_name = db.Column(db.String(128))
        is_active = db.Column(db.Boolean, nullable=False, default=True)

        roles = db.relationship(
            'RoleAssignment',
            backref='user',
            cascade='all, delete-orphan',
            lazy='selectin'
        )

        def set_password(self, password: str) -> None:
            self.hashed_password = generate_password_hash(password)

        def check_password(self, password: str) -> bool:
            return check_password_hash(self.hashed_password, password)

        def has_role(self, role: str, event_code: str) -> bool:
            """True if the role is held for this event or for all events."""
            return any(
                assignment.role == role and assignment.event in (event_code, ALL_EVENTS)
                for assignment in self.roles
            )

        def is_global_admin(self) -> bool:
            return any(
                assignment.role == 'ADMIN' and assignment.event == ALL_EVENTS
                for assignment in self.roles
            )

        def to_dict(self):
            return {
                'username': self.username,
                'realName': self.real_name,
                'roles': [assignment.to_dict() for assignment in self.roles],
            }

        def __repr__(self):
            return f'<User {self.username}>'

    class RoleAssignment(db.Model):
        """
        Role held by a user, scoped to one event code or to '*'
        """
        __tablename__ = 'roles'

        username = db.Column(
            db.String(64),
            db.ForeignKey('users.username', ondelete='CASCADE'),
            primary_key=True
        )
        role = db.Column(db.String(32), primary_key=True)
        event = db.Column(db.String(64), primary_key=True, default=ALL_EVENTS)

        __table_args__ = (
            db.CheckConstraint(
                "role IN ('ADMIN', 'TSO', 'HEAD_REFEREE', 'REFEREE', 'INSPECTOR', 'LEAD_INSPECTOR', 'JUDGE')",
                name='roles_role_check'
            ),
            db.Index('idx_roles_username', 'username'),
            db.Index('idx_roles_event', 'event'),
        )

        def to_dict(self):
            return {'role': self.role, 'event': self.event}

        def __repr__(self):
            return f'<RoleAssignment {self.username} {self.role}@{self.event}>'

    return User, RoleAssignment
