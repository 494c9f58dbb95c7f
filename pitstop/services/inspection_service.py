"""
Inspection workflow service

Robot inspection state per team, stored in the event's own SQLite store:

    NOT_STARTED -> IN_PROGRESS -> INCOMPLETE | PASSED

PASSED is only reachable through an ordinary status update when every
required checklist item has an answer. A lead inspector can force
PASSED with an override. Any status may later be changed again, so a
passed inspection can be re-opened. Every status change appends one
row to inspection_history.

Each public method opens the event store once, does all of its reads
and writes on that handle, and returns after the handle is released.
"""
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from pitstop.error_handlers.exceptions import ValidationException
from pitstop.event_store import EventStoreResolver
from pitstop.event_store.schema import (
    ensure_inspection_tables,
    inspection_history,
    inspection_responses,
    inspections,
)
from pitstop.utils.timestamps import ms_to_iso, now_ms
from .checklist import Checklist, calculate_progress
from .inspection_types import (
    HistoryAction,
    InspectionStatus,
    VALID_STATUSES,
    matches_search,
)
from .team_directory import find_team, resolve_teams

logger = logging.getLogger(__name__)


def ensure_inspection(conn, team_number: int) -> Mapping:
    """
    Insert a NOT_STARTED inspection row for the team if none exists.

    Returns:
        The team's current inspection row
    """
    conn.execute(
        sqlite_insert(inspections)
        .values(team_number=team_number, status=InspectionStatus.NOT_STARTED.value)
        .on_conflict_do_nothing(index_elements=['team_number'])
    )
    return conn.execute(
        select(inspections).where(inspections.c.team_number == team_number)
    ).mappings().one()


def load_responses(conn, team_number: int) -> Dict[str, Optional[str]]:
    rows = conn.execute(
        select(inspection_responses.c.item_key, inspection_responses.c.value)
        .where(inspection_responses.c.team_number == team_number)
    )
    return {row.item_key: row.value for row in rows}


def status_counts(statuses: Iterable[InspectionStatus]) -> Dict[str, int]:
    counts = {status.value: 0 for status in InspectionStatus}
    for status in statuses:
        counts[status.value] += 1
    return counts


def _status_fields(status: InspectionStatus) -> dict:
    return {
        'status': status.value,
        'statusCode': status.code,
        'statusLabel': status.label,
    }


def _record_history(conn, team_number: int, action: HistoryAction,
                    old_status: InspectionStatus, new_status: InspectionStatus,
                    changed_by: str, is_override: bool, changed_at: int) -> None:
    conn.execute(
        inspection_history.insert().values(
            team_number=team_number,
            action=action.value,
            old_status=old_status.value,
            new_status=new_status.value,
            is_override=1 if is_override else 0,
            changed_by=changed_by,
            changed_at=changed_at,
        )
    )


class InspectionService:
    """
    Inspection operations for every event.

    Args:
        resolver: Opens per-event stores
        checklist: The loaded, immutable checklist definition
    """

    def __init__(self, resolver: EventStoreResolver, checklist: Checklist):
        self.resolver = resolver
        self.checklist = checklist

    def get_checklist(self) -> dict:
        return self.checklist.to_dict()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_teams(self, event_code: str, search: Optional[str] = None) -> dict:
        """
        Every roster team with its inspection status and progress.

        `statusCounts` covers the teams that matched `search`;
        `totalTeams` is the size of the whole roster.
        """
        with self.resolver.open(event_code) as conn:
            ensure_inspection_tables(conn)
            roster = resolve_teams(conn)
            rows = {row.team_number: row for row in conn.execute(select(inspections))}
            responses = defaultdict(dict)
            for row in conn.execute(select(inspection_responses)):
                responses[row.team_number][row.item_key] = row.value

        required = self.checklist.required_keys
        teams = []
        statuses = []
        for team in roster:
            if not matches_search(team, search):
                continue
            row = rows.get(team.team_number)
            status = InspectionStatus.coerce(row.status if row else None)
            statuses.append(status)
            teams.append({
                **team.to_dict(),
                **_status_fields(status),
                'progress': calculate_progress(responses[team.team_number], required).to_dict(),
                'comment': row.comment if row else None,
                'updatedAt': ms_to_iso(row.updated_at) if row else None,
            })

        return {
            'eventCode': event_code,
            'teams': teams,
            'statusCounts': status_counts(statuses),
            'totalTeams': len(roster),
        }

    def get_public_status(self, event_code: str) -> dict:
        """Status board view: number, name and status only."""
        with self.resolver.open(event_code) as conn:
            ensure_inspection_tables(conn)
            roster = resolve_teams(conn)
            stored = {
                row.team_number: row.status
                for row in conn.execute(select(inspections.c.team_number, inspections.c.status))
            }

        teams = []
        statuses = []
        for team in roster:
            status = InspectionStatus.coerce(stored.get(team.team_number))
            statuses.append(status)
            teams.append({
                'teamNumber': team.team_number,
                'teamName': team.team_name,
                **_status_fields(status),
            })

        return {
            'eventCode': event_code,
            'teams': teams,
            'statusCounts': status_counts(statuses),
            'totalTeams': len(roster),
        }

    def get_detail(self, event_code: str, team_number: int) -> dict:
        with self.resolver.open(event_code) as conn:
            ensure_inspection_tables(conn)
            ensure_inspection(conn, team_number)
            return self._build_detail(conn, team_number)

    def get_history(self, event_code: str, team_number: int) -> dict:
        """History entries for one team, newest first."""
        with self.resolver.open(event_code) as conn:
            ensure_inspection_tables(conn)
            ensure_inspection(conn, team_number)
            rows = conn.execute(
                select(inspection_history)
                .where(inspection_history.c.team_number == team_number)
                .order_by(inspection_history.c.changed_at.desc(), inspection_history.c.id.desc())
            ).mappings().all()

        history = [
            {
                'id': row['id'],
                'action': row['action'],
                'oldStatus': row['old_status'],
                'newStatus': row['new_status'],
                'isOverride': bool(row['is_override']),
                'changedBy': row['changed_by'],
                'changedAt': ms_to_iso(row['changed_at']),
            }
            for row in rows
        ]
        return {'teamNumber': team_number, 'history': history}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_items(self, event_code: str, team_number: int,
                     items: List[Mapping[str, Optional[str]]]) -> dict:
        """
        Upsert checklist responses in one transaction.

        A NOT_STARTED inspection moves to IN_PROGRESS and gets its
        started_at stamp. If any item fails nothing is written.

        Args:
            items: [{'key': ..., 'value': ...}]; a None value clears the answer
        """
        with self.resolver.open(event_code) as conn:
            ensure_inspection_tables(conn)
            current = ensure_inspection(conn, team_number)
            now = now_ms()

            for item in items:
                stmt = sqlite_insert(inspection_responses).values(
                    team_number=team_number,
                    item_key=item['key'],
                    value=item.get('value'),
                    updated_at=now,
                )
                conn.execute(stmt.on_conflict_do_update(
                    index_elements=['team_number', 'item_key'],
                    set_={'value': stmt.excluded.value, 'updated_at': stmt.excluded.updated_at},
                ))

            changes = {'updated_at': now}
            if InspectionStatus.coerce(current['status']) is InspectionStatus.NOT_STARTED:
                changes.update(status=InspectionStatus.IN_PROGRESS.value, started_at=now)
                logger.info(
                    f"Inspection started for team {team_number} at {event_code}"
                )
            conn.execute(
                update(inspections).where(inspections.c.team_number == team_number).values(**changes)
            )
            return self._build_detail(conn, team_number)

    def update_status(self, event_code: str, team_number: int, status: str, actor: str) -> dict:
        """
        Set an inspection status and record the transition.

        Raises:
            ValidationException: If the status is unknown, or PASSED is
                requested while required items are unanswered
        """
        if status not in VALID_STATUSES:
            raise ValidationException(f'Invalid inspection status "{status}".')
        new_status = InspectionStatus(status)

        with self.resolver.open(event_code) as conn:
            ensure_inspection_tables(conn)
            current = ensure_inspection(conn, team_number)
            old_status = InspectionStatus.coerce(current['status'])

            if new_status is InspectionStatus.PASSED:
                progress = calculate_progress(
                    load_responses(conn, team_number), self.checklist.required_keys
                )
                if not progress.is_complete:
                    logger.warning(
                        f"Rejected PASSED for team {team_number} at {event_code}: "
                        f"{progress.missing_required} required items missing"
                    )
                    raise ValidationException(
                        f'Cannot mark as PASSED: {progress.missing_required} '
                        f'required items are not completed.',
                        details={'missingRequired': progress.missing_required}
                    )

            now = now_ms()
            conn.execute(
                update(inspections)
                .where(inspections.c.team_number == team_number)
                .values(
                    status=new_status.value,
                    finalized_at=now if new_status is InspectionStatus.PASSED else None,
                    updated_at=now,
                )
            )
            _record_history(conn, team_number, HistoryAction.STATUS_CHANGE,
                            old_status, new_status, actor, False, now)
            logger.info(
                f"Inspection status for team {team_number} at {event_code}: "
                f"{old_status.value} -> {new_status.value} by {actor}"
            )
            return self._build_detail(conn, team_number)

    def override_status(self, event_code: str, team_number: int, comment: str, actor: str) -> dict:
        """Force PASSED regardless of checklist progress."""
        with self.resolver.open(event_code) as conn:
            ensure_inspection_tables(conn)
            current = ensure_inspection(conn, team_number)
            old_status = InspectionStatus.coerce(current['status'])
            now = now_ms()

            conn.execute(
                update(inspections)
                .where(inspections.c.team_number == team_number)
                .values(
                    status=InspectionStatus.PASSED.value,
                    comment=comment,
                    finalized_at=now,
                    updated_at=now,
                )
            )
            _record_history(conn, team_number, HistoryAction.LEAD_OVERRIDE,
                            old_status, InspectionStatus.PASSED, actor, True, now)
            logger.info(
                f"Inspection for team {team_number} at {event_code} overridden to PASSED "
                f"by {actor} (was {old_status.value})"
            )
            return self._build_detail(conn, team_number)

    def save_comment(self, event_code: str, team_number: int, comment: str) -> None:
        with self.resolver.open(event_code) as conn:
            ensure_inspection_tables(conn)
            ensure_inspection(conn, team_number)
            conn.execute(
                update(inspections)
                .where(inspections.c.team_number == team_number)
                .values(comment=comment, updated_at=now_ms())
            )

    # ------------------------------------------------------------------

    def _build_detail(self, conn, team_number: int) -> dict:
        row = conn.execute(
            select(inspections).where(inspections.c.team_number == team_number)
        ).mappings().one()
        responses = load_responses(conn, team_number)
        status = InspectionStatus.coerce(row['status'])
        team = find_team(conn, team_number)

        return {
            'team': team.to_dict() if team else {'teamNumber': team_number, 'teamName': None},
            'inspection': {
                'id': str(team_number),
                **_status_fields(status),
                'comment': row['comment'],
                'startedAt': ms_to_iso(row['started_at']),
                'finalizedAt': ms_to_iso(row['finalized_at']),
                'updatedAt': ms_to_iso(row['updated_at']),
            },
            'progress': calculate_progress(responses, self.checklist.required_keys).to_dict(),
            'responses': responses,
            'checklist': self.checklist.to_dict(),
        }
