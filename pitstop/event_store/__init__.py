"""
Per-event SQLite store access and the tables this application owns in it
"""
from .connection import EventStoreResolver, table_exists, table_columns
from .schema import (
    ensure_inspection_tables,
    ensure_roster_tables,
    inspections,
    inspection_responses,
    inspection_history,
    teams,
    team_metadata,
)

__all__ = [
    'EventStoreResolver',
    'table_exists',
    'table_columns',
    'ensure_inspection_tables',
    'ensure_roster_tables',
    'inspections',
    'inspection_responses',
    'inspection_history',
    'teams',
    'team_metadata',
]
