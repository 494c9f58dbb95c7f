"""
Tests for the inspection workflow service.

Tests cover:
- Event store resolution and handle release
- The status state machine and its PASSED gate
- Lead overrides and history recording
- Transaction rollback of item updates
- Team listing, search and the public status board
"""
import os
from contextlib import contextmanager

import pytest
from sqlalchemy import text

from pitstop.error_handlers import (
    DatabaseException,
    ResourceNotFoundException,
    ValidationException,
)
from pitstop.event_store import ensure_inspection_tables, table_exists
from pitstop.services import InspectionService, ensure_inspection

TEAM_42_ONLY = [{'number': 42, 'name': '', 'organization': '', 'city': '', 'country': ''}]


@pytest.fixture
def single_required_service(resolver, checklist_factory):
    """Checklist whose only required item is A."""
    return InspectionService(resolver, checklist_factory(required=('A',), optional=('N',)))


@pytest.fixture
def demo_store(event_store_factory):
    """Event demo1 with team 42 known only by number."""
    return event_store_factory('demo1', layout='minimal', teams=TEAM_42_ONLY)


class TestEventStoreResolver:
    """Tests for opening and releasing event stores."""

    @pytest.mark.unit
    def test_unknown_event(self, resolver):
        with pytest.raises(ResourceNotFoundException, match='Event "nope" was not found'):
            with resolver.open('nope'):
                pass

    @pytest.mark.unit
    def test_invalid_event_code_never_reaches_filesystem(self, resolver, event_factory):
        with pytest.raises(ResourceNotFoundException):
            with resolver.open('../demo1'):
                pass

    @pytest.mark.unit
    def test_missing_store_file(self, resolver, event_factory):
        event_factory(code='nofile')
        with pytest.raises(ResourceNotFoundException, match='Database file for event "nofile"'):
            with resolver.open('nofile'):
                pass

    @pytest.mark.unit
    def test_missing_store_is_not_created(self, inspection_service, event_factory, event_data_dir):
        event_factory(code='nofile')
        with pytest.raises(ResourceNotFoundException):
            inspection_service.list_teams('nofile')
        assert not os.path.exists(os.path.join(event_data_dir, 'nofile.db'))

    @pytest.mark.unit
    def test_handle_closed_after_success(self, resolver, demo_store):
        with resolver.open('demo1') as conn:
            captured = conn
            conn.execute(text('SELECT 1'))
        assert captured.closed

    @pytest.mark.unit
    def test_handle_closed_after_unexpected_error(self, resolver, demo_store):
        captured = None
        with pytest.raises(RuntimeError):
            with resolver.open('demo1') as conn:
                captured = conn
                raise RuntimeError('boom')
        assert captured is not None and captured.closed

    @pytest.mark.unit
    def test_handle_closed_after_validation_error(self, single_required_service, resolver, demo_store, monkeypatch):
        opened = []
        original_open = resolver.open

        @contextmanager
        def tracking_open(event_code):
            with original_open(event_code) as conn:
                opened.append(conn)
                yield conn

        monkeypatch.setattr(resolver, 'open', tracking_open)

        with pytest.raises(ValidationException):
            single_required_service.update_status('demo1', 42, 'PASSED', 'inspector1')

        assert len(opened) == 1
        assert opened[0].closed

    @pytest.mark.unit
    def test_store_errors_become_database_exceptions(self, resolver, demo_store):
        with pytest.raises(DatabaseException) as exc_info:
            with resolver.open('demo1') as conn:
                conn.execute(text('SELECT * FROM no_such_table'))
        assert exc_info.value.status_code == 500
        assert exc_info.value.details == {'event_code': 'demo1'}

    @pytest.mark.unit
    def test_ensure_inspection_tables_is_idempotent(self, resolver, demo_store):
        with resolver.open('demo1') as conn:
            ensure_inspection_tables(conn)
            ensure_inspection_tables(conn)
            assert table_exists(conn, 'inspections')
            assert table_exists(conn, 'inspection_responses')
            assert table_exists(conn, 'inspection_history')

    @pytest.mark.unit
    def test_ensure_inspection_keeps_existing_row(self, resolver, demo_store):
        with resolver.open('demo1') as conn:
            ensure_inspection_tables(conn)
            first = ensure_inspection(conn, 42)
            conn.execute(text("UPDATE inspections SET status = 'INCOMPLETE' WHERE team_number = 42"))
            second = ensure_inspection(conn, 42)

        assert first['status'] == 'NOT_STARTED'
        assert second['status'] == 'INCOMPLETE'


class TestInspectionScenarios:
    """End-to-end flows through the state machine."""

    @pytest.mark.unit
    def test_first_look_at_unnamed_team(self, single_required_service, demo_store):
        result = single_required_service.list_teams('demo1')

        team = result['teams'][0]
        assert team['teamName'] == 'Team 42'
        assert team['status'] == 'NOT_STARTED'
        assert team['statusCode'] == '0'
        assert team['statusLabel'] == 'Not Started'
        assert team['progress'] == {'completedRequired': 0, 'missingRequired': 1, 'totalRequired': 1}
        assert team['comment'] is None
        assert team['updatedAt'] is None

    @pytest.mark.unit
    def test_answer_then_pass(self, single_required_service, demo_store):
        service = single_required_service

        detail = service.update_items('demo1', 42, [{'key': 'A', 'value': 'ok'}])
        assert detail['inspection']['status'] == 'IN_PROGRESS'
        assert detail['inspection']['startedAt'] is not None
        assert detail['inspection']['finalizedAt'] is None
        assert detail['progress'] == {'completedRequired': 1, 'missingRequired': 0, 'totalRequired': 1}
        assert detail['responses'] == {'A': 'ok'}

        detail = service.update_status('demo1', 42, 'INCOMPLETE', 'inspector1')
        assert detail['inspection']['status'] == 'INCOMPLETE'
        assert detail['inspection']['finalizedAt'] is None

        detail = service.update_status('demo1', 42, 'PASSED', 'inspector1')
        assert detail['inspection']['status'] == 'PASSED'
        assert detail['inspection']['statusCode'] == '3'
        assert detail['inspection']['finalizedAt'] is not None
        assert detail['inspection']['finalizedAt'].endswith('Z')

        history = service.get_history('demo1', 42)
        assert history['teamNumber'] == 42
        transitions = [(h['oldStatus'], h['newStatus']) for h in reversed(history['history'])]
        assert transitions == [('IN_PROGRESS', 'INCOMPLETE'), ('INCOMPLETE', 'PASSED')]
        assert all(h['action'] == 'STATUS_CHANGE' for h in history['history'])
        assert all(h['isOverride'] is False for h in history['history'])
        assert all(h['changedBy'] == 'inspector1' for h in history['history'])

    @pytest.mark.unit
    def test_pass_rejected_while_required_item_missing(self, single_required_service, demo_store):
        service = single_required_service
        service.update_items('demo1', 42, [{'key': 'N', 'value': 'optional answer'}])
        before = service.get_detail('demo1', 42)

        with pytest.raises(ValidationException, match='1 required items are not completed') as exc_info:
            service.update_status('demo1', 42, 'PASSED', 'inspector1')
        assert exc_info.value.details == {'missingRequired': 1}

        after = service.get_detail('demo1', 42)
        assert after['inspection'] == before['inspection']
        assert after['inspection']['status'] == 'IN_PROGRESS'
        assert after['inspection']['finalizedAt'] is None
        assert service.get_history('demo1', 42)['history'] == []

    @pytest.mark.unit
    def test_rejection_is_repeatable(self, single_required_service, demo_store):
        """A rejected PASSED leaves no trace, however often it is attempted."""
        service = single_required_service
        for _ in range(3):
            with pytest.raises(ValidationException):
                service.update_status('demo1', 42, 'PASSED', 'inspector1')

        detail = service.get_detail('demo1', 42)
        assert detail['inspection']['status'] == 'NOT_STARTED'
        assert service.get_history('demo1', 42)['history'] == []

    @pytest.mark.unit
    def test_empty_string_answer_does_not_count(self, single_required_service, demo_store):
        service = single_required_service
        service.update_items('demo1', 42, [{'key': 'A', 'value': ''}])
        with pytest.raises(ValidationException):
            service.update_status('demo1', 42, 'PASSED', 'inspector1')

    @pytest.mark.unit
    def test_override_with_partial_progress(self, resolver, demo_store, checklist_factory):
        service = InspectionService(resolver, checklist_factory(required=('R1', 'R2', 'R3', 'R4', 'R5')))
        service.update_items('demo1', 42, [
            {'key': 'R1', 'value': 'ok'},
            {'key': 'R2', 'value': 'ok'},
            {'key': 'R3', 'value': 'ok'},
        ])

        detail = service.override_status('demo1', 42, 'forced due to time constraints', 'lead1')

        assert detail['inspection']['status'] == 'PASSED'
        assert detail['inspection']['comment'] == 'forced due to time constraints'
        assert detail['inspection']['finalizedAt'] is not None
        assert detail['progress']['completedRequired'] == 3
        assert detail['progress']['missingRequired'] == 2

        history = service.get_history('demo1', 42)['history']
        assert len(history) == 1
        assert history[0]['action'] == 'LEAD_OVERRIDE'
        assert history[0]['isOverride'] is True
        assert history[0]['oldStatus'] == 'IN_PROGRESS'
        assert history[0]['newStatus'] == 'PASSED'
        assert history[0]['changedBy'] == 'lead1'

    @pytest.mark.unit
    def test_override_from_not_started(self, single_required_service, demo_store):
        detail = single_required_service.override_status('demo1', 42, 'robot verified offline', 'lead1')

        assert detail['inspection']['status'] == 'PASSED'
        history = single_required_service.get_history('demo1', 42)['history']
        assert history[0]['oldStatus'] == 'NOT_STARTED'

    @pytest.mark.unit
    def test_passed_can_be_reopened(self, single_required_service, demo_store):
        service = single_required_service
        service.update_items('demo1', 42, [{'key': 'A', 'value': 'ok'}])
        service.update_status('demo1', 42, 'PASSED', 'inspector1')

        detail = service.update_status('demo1', 42, 'IN_PROGRESS', 'inspector2')

        assert detail['inspection']['status'] == 'IN_PROGRESS'
        assert detail['inspection']['finalizedAt'] is None
        latest = service.get_history('demo1', 42)['history'][0]
        assert (latest['oldStatus'], latest['newStatus']) == ('PASSED', 'IN_PROGRESS')

    @pytest.mark.unit
    def test_every_status_call_appends_one_entry(self, single_required_service, demo_store):
        service = single_required_service
        service.update_items('demo1', 42, [{'key': 'A', 'value': 'ok'}])
        calls = ['INCOMPLETE', 'INCOMPLETE', 'IN_PROGRESS', 'PASSED']

        previous = 'IN_PROGRESS'
        for count, status in enumerate(calls, start=1):
            service.update_status('demo1', 42, status, 'inspector1')
            history = service.get_history('demo1', 42)['history']
            assert len(history) == count
            assert history[0]['oldStatus'] == previous
            assert history[0]['newStatus'] == status
            previous = status

    @pytest.mark.unit
    @pytest.mark.parametrize('status', ['DONE', 'passed', '', 'FAILED'])
    def test_unknown_status_rejected(self, single_required_service, demo_store, status):
        with pytest.raises(ValidationException, match='Invalid inspection status'):
            single_required_service.update_status('demo1', 42, status, 'inspector1')

    @pytest.mark.unit
    def test_not_started_accepted_by_service(self, single_required_service, demo_store):
        detail = single_required_service.update_status('demo1', 42, 'NOT_STARTED', 'inspector1')
        assert detail['inspection']['status'] == 'NOT_STARTED'
        assert len(single_required_service.get_history('demo1', 42)['history']) == 1


class TestUpdateItems:
    """Tests for checklist answer updates."""

    @pytest.mark.unit
    def test_started_at_set_once(self, single_required_service, demo_store):
        service = single_required_service
        first = service.update_items('demo1', 42, [{'key': 'A', 'value': 'ok'}])
        second = service.update_items('demo1', 42, [{'key': 'N', 'value': '3'}])

        assert second['inspection']['status'] == 'IN_PROGRESS'
        assert second['inspection']['startedAt'] == first['inspection']['startedAt']

    @pytest.mark.unit
    def test_updates_do_not_reset_later_status(self, single_required_service, demo_store):
        service = single_required_service
        service.update_items('demo1', 42, [{'key': 'A', 'value': 'ok'}])
        service.update_status('demo1', 42, 'INCOMPLETE', 'inspector1')

        detail = service.update_items('demo1', 42, [{'key': 'N', 'value': '1'}])

        assert detail['inspection']['status'] == 'INCOMPLETE'

    @pytest.mark.unit
    def test_null_value_clears_answer(self, single_required_service, demo_store):
        service = single_required_service
        service.update_items('demo1', 42, [{'key': 'A', 'value': 'ok'}])
        detail = service.update_items('demo1', 42, [{'key': 'A', 'value': None}])

        assert detail['responses'] == {'A': None}
        assert detail['progress']['completedRequired'] == 0

    @pytest.mark.unit
    def test_item_updates_do_not_write_history(self, single_required_service, demo_store):
        single_required_service.update_items('demo1', 42, [{'key': 'A', 'value': 'ok'}])
        assert single_required_service.get_history('demo1', 42)['history'] == []

    @pytest.mark.unit
    def test_failed_batch_rolls_back(self, single_required_service, demo_store, store_query):
        """A failing item discards every write of the batch, including the promotion."""
        service = single_required_service
        service.get_detail('demo1', 42)

        with pytest.raises(DatabaseException):
            service.update_items('demo1', 42, [
                {'key': 'A', 'value': 'ok'},
                {'key': None, 'value': 'broken'},
            ])

        assert store_query(demo_store, 'SELECT * FROM inspection_responses') == []
        rows = store_query(demo_store, 'SELECT status, started_at FROM inspections WHERE team_number = 42')
        assert rows == [{'status': 'NOT_STARTED', 'started_at': None}]

        detail = service.get_detail('demo1', 42)
        assert detail['inspection']['status'] == 'NOT_STARTED'
        assert detail['inspection']['startedAt'] is None


class TestQueries:
    """Tests for listing, detail, history and the public board."""

    @pytest.mark.unit
    def test_list_search_and_counts(self, inspection_service, event_store_factory):
        event_store_factory('demo1', layout='rich')
        inspection_service.override_status('demo1', 7, 'ok', 'lead1')

        everything = inspection_service.list_teams('demo1')
        assert everything['totalTeams'] == 3
        assert everything['statusCounts'] == {
            'NOT_STARTED': 2, 'IN_PROGRESS': 0, 'INCOMPLETE': 0, 'PASSED': 1,
        }

        filtered = inspection_service.list_teams('demo1', '  CENTRAL ')
        assert [t['teamNumber'] for t in filtered['teams']] == [42]
        assert filtered['totalTeams'] == 3
        assert filtered['statusCounts'] == {
            'NOT_STARTED': 1, 'IN_PROGRESS': 0, 'INCOMPLETE': 0, 'PASSED': 0,
        }

        by_number = inspection_service.list_teams('demo1', '123')
        assert [t['teamNumber'] for t in by_number['teams']] == [1234]

        assert inspection_service.list_teams('demo1', 'zzz')['teams'] == []
        assert inspection_service.list_teams('demo1', '   ')['teams'] == everything['teams']

    @pytest.mark.unit
    def test_list_carries_comment_and_updated_at(self, inspection_service, event_store_factory):
        event_store_factory('demo1', layout='rich')
        inspection_service.save_comment('demo1', 42, 'bring the sizing box')

        team = next(t for t in inspection_service.list_teams('demo1')['teams'] if t['teamNumber'] == 42)

        assert team['comment'] == 'bring the sizing box'
        assert team['updatedAt'] is not None
        assert team['organizationSchool'] == 'Central High'

    @pytest.mark.unit
    def test_save_comment_leaves_status_and_history(self, inspection_service, event_store_factory):
        event_store_factory('demo1', layout='rich')
        inspection_service.save_comment('demo1', 42, 'first')
        inspection_service.save_comment('demo1', 42, 'second')

        detail = inspection_service.get_detail('demo1', 42)
        assert detail['inspection']['comment'] == 'second'
        assert detail['inspection']['status'] == 'NOT_STARTED'
        assert detail['inspection']['startedAt'] is None
        assert inspection_service.get_history('demo1', 42)['history'] == []

    @pytest.mark.unit
    def test_detail_shape(self, inspection_service, checklist, event_store_factory):
        event_store_factory('demo1', layout='rich')

        detail = inspection_service.get_detail('demo1', 42)

        assert set(detail) == {'team', 'inspection', 'progress', 'responses', 'checklist'}
        assert detail['team']['teamName'] == 'Gear Grinders'
        assert detail['inspection']['id'] == '42'
        assert set(detail['inspection']) == {
            'id', 'status', 'statusCode', 'statusLabel', 'comment',
            'startedAt', 'finalizedAt', 'updatedAt',
        }
        assert detail['checklist'] == checklist.to_dict()
        assert detail['progress']['totalRequired'] == 2

    @pytest.mark.unit
    def test_detail_for_team_outside_roster(self, inspection_service, event_store_factory):
        event_store_factory('demo1', layout='rich')
        detail = inspection_service.get_detail('demo1', 555)
        assert detail['team'] == {'teamNumber': 555, 'teamName': None}
        assert detail['inspection']['status'] == 'NOT_STARTED'

    @pytest.mark.unit
    def test_unknown_stored_status_reads_as_not_started(self, inspection_service, resolver, event_store_factory):
        event_store_factory('demo1', layout='rich')
        with resolver.open('demo1') as conn:
            ensure_inspection_tables(conn)
            conn.execute(text("INSERT INTO inspections (team_number, status) VALUES (42, 'ARCHIVED')"))

        team = next(t for t in inspection_service.list_teams('demo1')['teams'] if t['teamNumber'] == 42)
        assert team['status'] == 'NOT_STARTED'
        assert team['statusLabel'] == 'Not Started'

    @pytest.mark.unit
    def test_history_newest_first_with_id_tiebreak(self, single_required_service, demo_store, monkeypatch):
        monkeypatch.setattr('pitstop.services.inspection_service.now_ms', lambda: 1_767_261_600_000)
        service = single_required_service
        service.update_status('demo1', 42, 'IN_PROGRESS', 'a')
        service.update_status('demo1', 42, 'INCOMPLETE', 'b')
        service.override_status('demo1', 42, 'done', 'c')

        history = service.get_history('demo1', 42)['history']

        assert [h['changedBy'] for h in history] == ['c', 'b', 'a']
        assert [h['id'] for h in history] == sorted((h['id'] for h in history), reverse=True)
        assert history[0]['changedAt'] == '2026-01-01T10:00:00.000Z'

    @pytest.mark.unit
    def test_public_status_hides_details(self, inspection_service, event_store_factory):
        event_store_factory('demo1', layout='rich')
        inspection_service.save_comment('demo1', 42, 'private note')
        inspection_service.update_items('demo1', 42, [{'key': 'A', 'value': 'ok'}])

        board = inspection_service.get_public_status('demo1')

        assert board['eventCode'] == 'demo1'
        assert board['totalTeams'] == 3
        assert board['statusCounts']['IN_PROGRESS'] == 1
        for team in board['teams']:
            assert set(team) == {'teamNumber', 'teamName', 'status', 'statusCode', 'statusLabel'}
        assert [t['teamNumber'] for t in board['teams']] == [7, 42, 1234]

    @pytest.mark.unit
    def test_reads_create_workflow_tables(self, inspection_service, event_store_factory, store_query):
        path = event_store_factory('demo1', layout='minimal')
        inspection_service.get_public_status('demo1')
        tables = {row['name'] for row in store_query(path, "SELECT name FROM sqlite_master WHERE type = 'table'")}
        assert {'inspections', 'inspection_responses', 'inspection_history'} <= tables
