"""
Per-event store access

Every event owns a SQLite file `<EVENT_DATA_DIR>/<code>.db`. Each
operation opens its own handle, runs, and releases it; handles are never
pooled or shared between requests.

Usage:
    resolver = EventStoreResolver(db, Event, data_dir)
    with resolver.open('demo1') as conn:
        conn.execute(...)
"""
import logging
import os
from contextlib import contextmanager
from typing import Iterator, Set

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from pitstop.error_handlers.exceptions import (
    AppException,
    DatabaseException,
    ResourceNotFoundException,
)
from pitstop.utils.validators import is_valid_event_code

logger = logging.getLogger(__name__)


def table_exists(conn: Connection, table_name: str) -> bool:
    """Name-based table lookup; makes no assumption about the table's columns."""
    return inspect(conn).has_table(table_name)


def table_columns(conn: Connection, table_name: str) -> Set[str]:
    """Column names of a table, or an empty set if the table does not exist."""
    if not table_exists(conn, table_name):
        return set()
    return {column['name'] for column in inspect(conn).get_columns(table_name)}


class EventStoreResolver:
    """
    Locates and opens event stores.

    Args:
        db: Flask-SQLAlchemy instance for the global database
        event_model: Event model class used to verify the event exists
        data_dir: Directory holding `<code>.db` files
        timeout: SQLite busy timeout in seconds
    """

    def __init__(self, db, event_model, data_dir: str, timeout: float = 30.0):
        self.db = db
        self.Event = event_model
        self.data_dir = data_dir
        self.timeout = timeout

    def store_path(self, event_code: str) -> str:
        return os.path.join(self.data_dir, f'{event_code}.db')

    def assert_event_exists(self, event_code: str) -> None:
        """
        Raises:
            ResourceNotFoundException: If no event has this code
        """
        if not is_valid_event_code(event_code) or self.db.session.get(self.Event, event_code) is None:
            raise ResourceNotFoundException(f'Event "{event_code}" was not found.')

    @contextmanager
    def open(self, event_code: str) -> Iterator[Connection]:
        """
        Open the event's store for one operation.

        Commits when the block completes, rolls back when it raises, and
        always closes the handle. Store I/O failures surface as
        DatabaseException; typed application errors pass through.

        Raises:
            ResourceNotFoundException: If the event or its store file is missing
            DatabaseException: If the store cannot be read or written
        """
        self.assert_event_exists(event_code)

        path = self.store_path(event_code)
        if not os.path.isfile(path):
            raise ResourceNotFoundException(
                f'Database file for event "{event_code}" was not found.'
            )

        engine = create_engine(
            f'sqlite:///{path}',
            poolclass=NullPool,
            connect_args={'timeout': self.timeout}
        )
        conn = None
        try:
            conn = engine.connect()
            yield conn
            conn.commit()
        except AppException:
            if conn is not None:
                conn.rollback()
            raise
        except SQLAlchemyError as e:
            if conn is not None:
                conn.rollback()
            logger.error(f"Event store error for {event_code}: {e}")
            raise DatabaseException(
                f'Event store for "{event_code}" could not be accessed.',
                details={'event_code': event_code}
            ) from e
        except Exception:
            if conn is not None:
                conn.rollback()
            raise
        finally:
            if conn is not None:
                conn.close()
            engine.dispose()
