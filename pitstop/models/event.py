"""
Event model
Competition events known to the console. Each event owns a separate
SQLite event store named after its code.
"""
from pitstop.utils.timestamps import ms_to_iso


def create_event_model(db):
    """Factory function to create Event model with db instance"""

    class Event(db.Model):
        """
        Competition event

        Events are created by the external event-management flow; this
        application only reads them. `start` and `end` are epoch
        milliseconds, matching the scoring tools' storage format.
        """
        __tablename__ = 'events'

        code = db.Column(db.String(64), primary_key=True)
        name = db.Column(db.Text, nullable=False)
        type = db.Column(db.Integer, nullable=False, default=0)
        status = db.Column(db.Integer, nullable=False, default=0)
        finals = db.Column(db.Integer, nullable=False, default=0)
        divisions = db.Column(db.Integer, nullable=False, default=0)
        start = db.Column(db.BigInteger, nullable=False)
        end = db.Column(db.BigInteger, nullable=False)
        region = db.Column(db.Text, nullable=False, default='')

        __table_args__ = (
            db.Index('idx_events_start', 'start'),
        )

        def to_dict(self):
            return {
                'code': self.code,
                'name': self.name,
                'type': self.type,
                'status': self.status,
                'finals': self.finals,
                'divisions': self.divisions,
                'start': ms_to_iso(self.start),
                'end': ms_to_iso(self.end),
                'region': self.region,
            }

        def __repr__(self):
            return f'<Event {self.code}: {self.name}>'

    return Event
