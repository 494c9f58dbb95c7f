"""
Event store table definitions

The inspection workflow owns three tables inside each event store. The
`teams` and `team_metadata` definitions are the layout this application
writes when it adds teams; stores seeded by older tools may carry other
layouts, which the team directory inspects instead of assuming.
"""
from sqlalchemy import (
    BigInteger,
    Column,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    Text,
    text,
)

inspection_metadata = MetaData()

inspections = Table(
    'inspections',
    inspection_metadata,
    Column('team_number', Integer, primary_key=True, autoincrement=False),
    Column('status', Text, nullable=False, server_default=text("'NOT_STARTED'")),
    Column('comment', Text),
    Column('started_at', BigInteger),
    Column('finalized_at', BigInteger),
    Column('updated_at', BigInteger),
)

inspection_responses = Table(
    'inspection_responses',
    inspection_metadata,
    Column('team_number', Integer, nullable=False),
    Column('item_key', Text, nullable=False),
    Column('value', Text),
    Column('updated_at', BigInteger, nullable=False),
    PrimaryKeyConstraint('team_number', 'item_key'),
)

inspection_history = Table(
    'inspection_history',
    inspection_metadata,
    # INTEGER PRIMARY KEY AUTOINCREMENT keeps ids monotonic
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('team_number', Integer, nullable=False),
    Column('action', Text, nullable=False),
    Column('old_status', Text),
    Column('new_status', Text),
    Column('is_override', Integer, nullable=False, server_default=text('0')),
    Column('changed_by', Text, nullable=False),
    Column('changed_at', BigInteger, nullable=False),
    sqlite_autoincrement=True,
)

roster_metadata = MetaData()

teams = Table(
    'teams',
    roster_metadata,
    Column('number', Integer, primary_key=True, autoincrement=False),
    Column('advancement', Integer, nullable=False),
    Column('division', Integer, nullable=False),
    Column('inspire_eligible', Integer, nullable=False),
    Column('promote_eligible', Integer, nullable=False),
    Column('competing', Text, nullable=False),
)

team_metadata = Table(
    'team_metadata',
    roster_metadata,
    Column('team_number', Integer, primary_key=True, autoincrement=False),
    Column('team_name', Text, nullable=False, server_default=text("''")),
    Column('organization_school', Text, nullable=False, server_default=text("''")),
    Column('city', Text, nullable=False, server_default=text("''")),
    Column('country', Text, nullable=False, server_default=text("''")),
    Column('updated_at', BigInteger, nullable=False),
)

# Columns added to a pre-existing team_metadata table that lacks them
TEAM_METADATA_REQUIRED_COLUMNS = (
    ('team_name', "TEXT NOT NULL DEFAULT ''"),
    ('organization_school', "TEXT NOT NULL DEFAULT ''"),
    ('city', "TEXT NOT NULL DEFAULT ''"),
    ('country', "TEXT NOT NULL DEFAULT ''"),
    ('updated_at', 'INTEGER NOT NULL DEFAULT 0'),
)


def ensure_inspection_tables(conn) -> None:
    """Create the inspection workflow tables if they are missing. Idempotent."""
    inspection_metadata.create_all(conn, checkfirst=True)


def ensure_roster_tables(conn) -> None:
    """Create `teams` and `team_metadata` if missing, and backfill metadata columns."""
    from .connection import table_columns

    roster_metadata.create_all(conn, checkfirst=True)

    existing = table_columns(conn, 'team_metadata')
    for column_name, definition in TEAM_METADATA_REQUIRED_COLUMNS:
        if column_name in existing:
            continue
        conn.execute(text(f'ALTER TABLE team_metadata ADD COLUMN {column_name} {definition}'))
