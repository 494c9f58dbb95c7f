"""
Team directory for event stores

Event stores were seeded by different generations of scoring tools, so
the team roster may live in any subset of three tables:

    team_metadata   rich names, organization, city, country
    team            legacy layout with long/short names
    teams           numbers (plus advancement/division) only

Each layout is described by a TeamSource. Sources are read in priority
order and merged by team number; for every field the first non-blank
value wins.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from sqlalchemy import MetaData, Table, column, delete, select, table
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from pitstop.error_handlers.exceptions import ResourceNotFoundException, ValidationException
from pitstop.event_store import EventStoreResolver, table_columns, table_exists
from pitstop.event_store.schema import ensure_roster_tables
from pitstop.utils.timestamps import now_ms
from pitstop.utils.validators import validate_team_number_range
from .inspection_types import TeamIdentity, matches_search

logger = logging.getLogger(__name__)

DEFAULT_ADVANCEMENT = 0
DEFAULT_DIVISION = 1

# Values written to `teams` when a team is added by hand
TEAMS_ROW_DEFAULTS = {
    'advancement': DEFAULT_ADVANCEMENT,
    'division': DEFAULT_DIVISION,
    'inspire_eligible': 1,
    'promote_eligible': 1,
    'competing': 'Y',
}

IDENTITY_FIELDS = ('team_name', 'organization_school', 'city', 'country')


@dataclass(frozen=True)
class TeamSource:
    """
    One physical table layout that can contribute team identities.

    Attributes:
        table_name: Table to read
        number_column: Column holding the team number
        fields: Canonical field -> candidate columns, most preferred first
    """
    table_name: str
    number_column: str
    fields: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def read(self, conn) -> Dict[int, Dict[str, str]]:
        """
        Read {team_number: {field: value}} from this source.

        Only columns that actually exist are referenced. Returns an empty
        dict when the table or its number column is missing.
        """
        columns = table_columns(conn, self.table_name)
        if self.number_column not in columns:
            return {}

        present = {
            name: tuple(c for c in candidates if c in columns)
            for name, candidates in self.fields.items()
        }
        selected = sorted({c for candidates in present.values() for c in candidates})
        source = table(self.table_name, column(self.number_column), *[column(c) for c in selected])

        found = {}
        for row in conn.execute(select(source)).mappings():
            number = _parse_number(row[self.number_column])
            if number is None:
                continue
            values = {}
            for name, candidates in present.items():
                values[name] = next(
                    (_clean(row[c]) for c in candidates if _clean(row[c])), ''
                )
            found[number] = values
        return found

    def _number_table(self):
        return table(self.table_name, column(self.number_column))

    def contains(self, conn, team_number: int) -> bool:
        if self.number_column not in table_columns(conn, self.table_name):
            return False
        source = self._number_table()
        number = source.c[self.number_column]
        query = select(number).where(number == team_number).limit(1)
        return conn.execute(query).first() is not None

    def remove(self, conn, team_number: int) -> int:
        if self.number_column not in table_columns(conn, self.table_name):
            return 0
        source = self._number_table()
        result = conn.execute(
            delete(source).where(source.c[self.number_column] == team_number)
        )
        return result.rowcount


TEAM_SOURCES: List[TeamSource] = [
    TeamSource('team_metadata', 'team_number', {
        'team_name': ('team_name', 'short_name'),
        'organization_school': ('organization_school',),
        'city': ('city',),
        'country': ('country',),
    }),
    TeamSource('team', 'team_number', {
        'team_name': ('team_name_long', 'team_name_short'),
        'organization_school': ('school_name',),
        'city': ('city',),
        'country': ('country',),
    }),
    TeamSource('teams', 'number'),
]


def _clean(value) -> str:
    if value is None:
        return ''
    return str(value).strip()


def _as_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_number(value) -> Optional[int]:
    """Team number from a raw column value; None for blank, non-numeric or non-positive."""
    number = _as_int(value)
    if number is None or number <= 0:
        return None
    return number


def resolve_teams(conn, sources: Optional[List[TeamSource]] = None) -> List[TeamIdentity]:
    """
    Merge every available team source into canonical identities.

    Args:
        conn: Open event store connection
        sources: Sources in priority order (defaults to TEAM_SOURCES)

    Returns:
        List of TeamIdentity ordered by team number
    """
    merged: Dict[int, Dict[str, str]] = {}
    for source in sources or TEAM_SOURCES:
        for number, values in source.read(conn).items():
            current = merged.setdefault(number, {name: '' for name in IDENTITY_FIELDS})
            for name, value in values.items():
                if not current[name] and value:
                    current[name] = value

    return [
        TeamIdentity(
            team_number=number,
            team_name=values['team_name'] or f'Team {number}',
            organization_school=values['organization_school'],
            city=values['city'],
            country=values['country'],
        )
        for number, values in sorted(merged.items())
    ]


def find_team(conn, team_number: int) -> Optional[TeamIdentity]:
    for team in resolve_teams(conn):
        if team.team_number == team_number:
            return team
    return None


def team_in_roster(conn, team_number: int) -> bool:
    return any(source.contains(conn, team_number) for source in TEAM_SOURCES)


def _load_placements(conn) -> Dict[int, Tuple[int, int]]:
    """advancement/division per team from `teams`, where those columns exist."""
    columns = table_columns(conn, 'teams')
    if 'number' not in columns:
        return {}
    wanted = [c for c in ('advancement', 'division') if c in columns]
    source = table('teams', column('number'), *[column(c) for c in wanted])

    placements = {}
    for row in conn.execute(select(source)).mappings():
        number = _parse_number(row['number'])
        if number is None:
            continue
        advancement = _as_int(row.get('advancement'))
        division = _as_int(row.get('division'))
        placements[number] = (
            DEFAULT_ADVANCEMENT if advancement is None else advancement,
            DEFAULT_DIVISION if division is None else division,
        )
    return placements


def _roster_entry(team: TeamIdentity, placements: Dict[int, Tuple[int, int]]) -> dict:
    advancement, division = placements.get(
        team.team_number, (DEFAULT_ADVANCEMENT, DEFAULT_DIVISION)
    )
    return {**team.to_dict(), 'advancement': advancement, 'division': division}


class EventTeamService:
    """
    Roster maintenance for event stores.

    Reads go through resolve_teams; writes go to `teams` and
    `team_metadata`, creating either table when it is missing.
    """

    def __init__(self, resolver: EventStoreResolver):
        self.resolver = resolver

    def list_teams(self, event_code: str, search: Optional[str] = None) -> dict:
        with self.resolver.open(event_code) as conn:
            identities = resolve_teams(conn)
            placements = _load_placements(conn)

        teams = [
            _roster_entry(team, placements)
            for team in identities
            if matches_search(team, search)
        ]
        return {'eventCode': event_code, 'teams': teams}

    def get_team(self, event_code: str, team_number: int) -> dict:
        with self.resolver.open(event_code) as conn:
            team = find_team(conn, team_number)
            placements = _load_placements(conn) if team else {}

        if team is None:
            raise ResourceNotFoundException(
                f'Team {team_number} was not found for event "{event_code}".'
            )
        return _roster_entry(team, placements)

    def add_team(self, event_code: str, team_number: int, team_name: str,
                 organization_school: str = '', city: str = '', country: str = '') -> dict:
        """
        Add a team, or refresh its metadata if it already exists.

        Raises:
            ValidationException: If the number is out of range or the name is blank
        """
        validate_team_number_range(team_number)
        team_name = _require_name(team_name)

        with self.resolver.open(event_code) as conn:
            ensure_roster_tables(conn)
            teams_table = Table('teams', MetaData(), autoload_with=conn)
            values = {'number': team_number}
            values.update({
                name: default for name, default in TEAMS_ROW_DEFAULTS.items()
                if name in teams_table.c
            })
            conn.execute(
                sqlite_insert(teams_table).values(**values)
                .on_conflict_do_nothing(index_elements=['number'])
            )
            self._upsert_metadata(conn, team_number, team_name, organization_school, city, country)

        logger.info(f"Added team {team_number} to event {event_code}")
        return self.get_team(event_code, team_number)

    def update_team(self, event_code: str, team_number: int, team_name: str,
                    organization_school: str = '', city: str = '', country: str = '') -> dict:
        """
        Raises:
            ResourceNotFoundException: If the team is in none of the roster tables
        """
        validate_team_number_range(team_number)
        team_name = _require_name(team_name)

        with self.resolver.open(event_code) as conn:
            if not team_in_roster(conn, team_number):
                raise ResourceNotFoundException(
                    f'Team {team_number} was not found for event "{event_code}".'
                )
            ensure_roster_tables(conn)
            self._upsert_metadata(conn, team_number, team_name, organization_school, city, country)

        logger.info(f"Updated team {team_number} in event {event_code}")
        return self.get_team(event_code, team_number)

    def delete_team(self, event_code: str, team_number: int) -> None:
        """
        Remove a team from every roster table along with its inspection
        row and responses. Inspection history is kept.
        """
        with self.resolver.open(event_code) as conn:
            if not team_in_roster(conn, team_number):
                raise ResourceNotFoundException(
                    f'Team {team_number} was not found for event "{event_code}".'
                )
            for source in TEAM_SOURCES:
                source.remove(conn, team_number)
            for name in ('inspections', 'inspection_responses'):
                if table_exists(conn, name):
                    TeamSource(name, 'team_number').remove(conn, team_number)

        logger.info(f"Deleted team {team_number} from event {event_code}")

    @staticmethod
    def _upsert_metadata(conn, team_number: int, team_name: str,
                         organization_school: str, city: str, country: str) -> None:
        metadata_table = Table('team_metadata', MetaData(), autoload_with=conn)
        candidates = {
            'team_name': team_name,
            'short_name': team_name,
            'organization_school': _clean(organization_school),
            'city': _clean(city),
            'country': _clean(country),
            'updated_at': now_ms(),
        }
        values = {name: value for name, value in candidates.items() if name in metadata_table.c}

        stmt = sqlite_insert(metadata_table).values(team_number=team_number, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=['team_number'],
            set_={name: stmt.excluded[name] for name in values},
        )
        conn.execute(stmt)


def _require_name(team_name: Optional[str]) -> str:
    cleaned = _clean(team_name)
    if not cleaned:
        raise ValidationException('Team name is required.')
    return cleaned
