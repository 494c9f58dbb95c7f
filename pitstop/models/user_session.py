"""
User Session Model - database-backed login sessions

Sessions are opaque bearer tokens issued at login. Storing them in the
global database keeps them valid across workers and restarts and lets
an administrator revoke every session of a user.
"""
from datetime import datetime, timedelta
import secrets
from typing import Optional


def create_user_session_model(db):
    """Factory function to create UserSession model with db instance"""

    class UserSession(db.Model):
        """
        Persistent user session storage
        """
        __tablename__ = 'user_sessions'

        session_id = db.Column(db.String(64), primary_key=True)
        user_id = db.Column(
            db.String(64),
            db.ForeignKey('users.username', ondelete='CASCADE'),
            nullable=False,
            index=True
        )
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
        expires_at = db.Column(db.DateTime, nullable=False, index=True)
        last_activity = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        __table_args__ = (
            db.Index('idx_sessions_user_activity', 'user_id', 'last_activity'),
        )

        @classmethod
        def create_session(cls, user_id: str, duration_hours: int = 12) -> 'UserSession':
            """
            Create new user session (not yet committed)

            Example:
                >>> session = UserSession.create_session(user_id='inspector1')
                >>> db.session.add(session)
                >>> db.session.commit()
            """
            return cls(
                session_id=secrets.token_urlsafe(32),
                user_id=user_id,
                expires_at=datetime.utcnow() + timedelta(hours=duration_hours)
            )

        @classmethod
        def get_valid_session(cls, session_id: str) -> Optional['UserSession']:
            """Get session if it exists and has not expired"""
            if not session_id:
                return None
            return cls.query.filter(
                cls.session_id == session_id,
                cls.expires_at > datetime.utcnow()
            ).first()

        @classmethod
        def cleanup_expired(cls, db_session) -> int:
            """
            Remove all expired sessions from database

            Returns:
                Number of sessions deleted
            """
            count = cls.query.filter(
                cls.expires_at <= datetime.utcnow()
            ).delete()

            db_session.commit()
            return count

        @classmethod
        def revoke_user_sessions(cls, user_id: str, db_session) -> int:
            """Revoke all sessions for a user (e.g., after password change)"""
            count = cls.query.filter(cls.user_id == user_id).delete()
            db_session.commit()
            return count

        def refresh(self):
            """Update last activity timestamp"""
            self.last_activity = datetime.utcnow()

        def is_expired(self) -> bool:
            return datetime.utcnow() >= self.expires_at

        def __repr__(self):
            return f'<UserSession {self.session_id[:8]}... user={self.user_id}>'

    return UserSession
