"""
Pytest configuration and fixtures for Pitstop tests.

This module provides shared fixtures for:
- Flask application with test configuration
- Global database setup and teardown
- Factories for events, users, sessions and event stores
- A small inspection checklist used instead of the packaged one
"""
import copy
import os

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import NullPool

from pitstop import create_app
from pitstop.extensions import db as _db
from pitstop.services import Checklist, EventTeamService, InspectionService


TEST_CHECKLIST = {
    'sections': [
        {'id': 'general', 'key': 'GENERAL', 'label': 'General', 'order': 1},
        {'id': 'electrical', 'key': 'ELECTRICAL', 'label': 'Electrical', 'order': 2},
    ],
    'items': [
        {'key': 'A', 'label': 'Team number displayed', 'sectionId': 'general',
         'required': True, 'inputType': 'CHECKBOX', 'ruleCode': 'R401'},
        {'key': 'B', 'label': 'Battery', 'sectionId': 'electrical',
         'required': True, 'inputType': 'SELECT', 'ruleCode': 'R602',
         'options': [
             {'key': 'legal', 'label': 'Legal', 'order': 1},
             {'key': 'other', 'label': 'Other', 'order': 2, 'isSentinel': True},
         ]},
        {'key': 'C', 'label': 'Robot weight', 'sectionId': 'general',
         'required': False, 'inputType': 'NUMBER', 'ruleCode': 'R103'},
    ],
}

# Same teams in every layout
SAMPLE_TEAMS = [
    {'number': 42, 'name': 'Gear Grinders', 'organization': 'Central High', 'city': 'Austin', 'country': 'USA'},
    {'number': 7, 'name': 'Lucky Sevens', 'organization': 'Northside Academy', 'city': 'Toronto', 'country': 'Canada'},
    {'number': 1234, 'name': 'Circuit Breakers', 'organization': '', 'city': 'Leeds', 'country': 'UK'},
]


def make_checklist(required=('A',), optional=()):
    """Checklist with one CHECKBOX item per key."""
    items = [
        {'key': key, 'label': f'Item {key}', 'sectionId': 'general',
         'required': True, 'inputType': 'CHECKBOX'}
        for key in required
    ]
    items += [
        {'key': key, 'label': f'Item {key}', 'sectionId': 'general',
         'required': False, 'inputType': 'CHECKBOX'}
        for key in optional
    ]
    return Checklist.from_dict({
        'sections': [{'id': 'general', 'key': 'GENERAL', 'label': 'General', 'order': 1}],
        'items': items,
    })


def build_event_store(path, layout='rich', teams=None, extra_sql=()):
    """
    Write an event store file the way the scoring tools lay it out.

    Layouts:
        rich     team_metadata + teams
        legacy   team (long/short names, school_name)
        minimal  teams with numbers only
        empty    no team tables at all
    """
    teams = SAMPLE_TEAMS if teams is None else teams
    statements = []

    if layout == 'rich':
        statements.append(
            "CREATE TABLE teams (number INTEGER PRIMARY KEY, advancement INTEGER NOT NULL, "
            "division INTEGER NOT NULL, inspire_eligible INTEGER NOT NULL, "
            "promote_eligible INTEGER NOT NULL, competing TEXT NOT NULL)"
        )
        statements.append(
            "CREATE TABLE team_metadata (team_number INTEGER PRIMARY KEY, team_name TEXT NOT NULL DEFAULT '', "
            "organization_school TEXT NOT NULL DEFAULT '', city TEXT NOT NULL DEFAULT '', "
            "country TEXT NOT NULL DEFAULT '', updated_at INTEGER NOT NULL DEFAULT 0)"
        )
        for team in teams:
            statements.append(
                f"INSERT INTO teams VALUES ({team['number']}, 0, 1, 1, 1, 'Y')"
            )
            statements.append(
                "INSERT INTO team_metadata (team_number, team_name, organization_school, city, country) "
                f"VALUES ({team['number']}, {_quote(team['name'])}, {_quote(team['organization'])}, "
                f"{_quote(team['city'])}, {_quote(team['country'])})"
            )
    elif layout == 'legacy':
        statements.append(
            "CREATE TABLE team (team_number INTEGER PRIMARY KEY, team_name_short TEXT NOT NULL, "
            "team_name_long TEXT, school_name TEXT, city TEXT NOT NULL, country TEXT NOT NULL)"
        )
        for team in teams:
            statements.append(
                f"INSERT INTO team VALUES ({team['number']}, 'T{team['number']}', {_quote(team['name'])}, "
                f"{_quote(team['organization'])}, {_quote(team['city'])}, {_quote(team['country'])})"
            )
    elif layout == 'minimal':
        statements.append("CREATE TABLE teams (number INTEGER PRIMARY KEY)")
        for team in teams:
            statements.append(f"INSERT INTO teams VALUES ({team['number']})")
    elif layout != 'empty':
        raise ValueError(f'Unknown layout {layout!r}')

    statements.extend(extra_sql)

    engine = create_engine(f'sqlite:///{path}', poolclass=NullPool)
    with engine.begin() as conn:
        # Creates the file even when there is nothing to write
        conn.execute(text('PRAGMA user_version = 1'))
        for statement in statements:
            conn.execute(text(statement))
    engine.dispose()
    return path


def _quote(value):
    if value is None:
        return 'NULL'
    return "'" + str(value).replace("'", "''") + "'"


def query_store(path, sql, **params):
    """Run a read query directly against an event store file."""
    engine = create_engine(f'sqlite:///{path}', poolclass=NullPool)
    with engine.connect() as conn:
        rows = conn.execute(text(sql), params).mappings().all()
    engine.dispose()
    return [dict(row) for row in rows]


@pytest.fixture(scope='session')
def app():
    """
    Create application for the tests.

    Uses TestingConfig with in-memory SQLite database.
    Scope is 'session' to reuse the same app across all tests.
    """
    app = create_app('testing')
    app.config.update({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'RATELIMIT_ENABLED': False,
    })

    return app


@pytest.fixture(scope='function')
def db(app):
    """
    Create database for the tests.

    Creates all tables before each test function and drops them after.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def event_data_dir(app, tmp_path, monkeypatch):
    """Point the event store resolver at a fresh directory for each test."""
    data_dir = tmp_path / 'event-data'
    data_dir.mkdir()
    monkeypatch.setitem(app.config, 'EVENT_DATA_DIR', str(data_dir))
    monkeypatch.setattr(app.extensions['event_store'], 'data_dir', str(data_dir))
    return str(data_dir)


@pytest.fixture
def checklist(app, monkeypatch):
    """Small checklist: A and B required, C optional. Also used by the app."""
    test_checklist = Checklist.from_dict(TEST_CHECKLIST)
    monkeypatch.setattr(app.extensions['inspection_service'], 'checklist', test_checklist)
    monkeypatch.setitem(app.extensions, 'checklist', test_checklist)
    return test_checklist


@pytest.fixture(scope='function')
def client(app, db, event_data_dir, checklist):
    """
    Create a test client for the app.
    """
    with app.test_client() as client:
        yield client


@pytest.fixture(scope='function')
def models(app, db):
    """Models registered by create_app()."""
    from pitstop.models import get_models
    return get_models()


@pytest.fixture
def resolver(app, db, event_data_dir):
    return app.extensions['event_store']


@pytest.fixture
def inspection_service(resolver, checklist):
    return InspectionService(resolver, checklist)


@pytest.fixture
def team_service(resolver):
    return EventTeamService(resolver)


@pytest.fixture
def checklist_data():
    """Fresh copy of the test checklist definition, safe to mutate."""
    return copy.deepcopy(TEST_CHECKLIST)


@pytest.fixture
def sample_teams():
    return copy.deepcopy(SAMPLE_TEAMS)


@pytest.fixture
def checklist_factory():
    """
    Build a checklist of CHECKBOX items.

    Usage:
        checklist = checklist_factory(required=('R1', 'R2'), optional=('N',))
    """
    return make_checklist


@pytest.fixture
def store_query():
    """
    Read rows straight from an event store file.

    Usage:
        rows = store_query(path, 'SELECT * FROM inspections')
    """
    return query_store


# =============================================================================
# Model Factories
# =============================================================================

@pytest.fixture
def event_factory(models, db):
    """
    Factory for creating Event rows.

    Usage:
        event = event_factory(code='demo1')
    """
    counter = [0]

    def _create_event(**kwargs):
        Event = models['Event']
        counter[0] += 1
        defaults = {
            'code': f'event{counter[0]}',
            'name': f'Test Event {counter[0]}',
            'type': 2,
            'status': 1,
            'finals': 0,
            'divisions': 1,
            'start': 1767261600000 + counter[0] * 86_400_000,
            'end': 1767290400000 + counter[0] * 86_400_000,
            'region': 'USTX',
        }
        defaults.update(kwargs)
        event = Event(**defaults)
        db.session.add(event)
        db.session.commit()
        return event

    return _create_event


@pytest.fixture
def event_store_factory(event_factory, event_data_dir):
    """
    Factory for an Event row plus its event store file.

    Usage:
        path = event_store_factory('demo1', layout='legacy')
        path = event_store_factory('demo1', teams=[{'number': 42, ...}])
    """
    def _create_store(code='demo1', layout='rich', teams=None, extra_sql=(), **event_fields):
        event_factory(code=code, **event_fields)
        path = os.path.join(event_data_dir, f'{code}.db')
        return build_event_store(path, layout=layout, teams=teams, extra_sql=extra_sql)

    return _create_store


@pytest.fixture
def user_factory(models, db):
    """
    Factory for creating users with role assignments.

    Usage:
        user = user_factory('inspector1', roles=[('INSPECTOR', 'demo1')])
        admin = user_factory('admin', roles=[('ADMIN', '*')])
    """
    def _create_user(username='inspector1', password='secret-password', roles=(), **kwargs):
        User = models['User']
        RoleAssignment = models['RoleAssignment']
        user = User(username=username, real_name=kwargs.pop('real_name', username.title()), **kwargs)
        user.set_password(password)
        for role, event in roles:
            user.roles.append(RoleAssignment(role=role, event=event))
        db.session.add(user)
        db.session.commit()
        return user

    return _create_user


@pytest.fixture
def auth_headers(models, db):
    """
    Issue a session for a user and return request headers carrying it.

    Usage:
        headers = auth_headers(user)
    """
    def _headers(user, duration_hours=12):
        UserSession = models['UserSession']
        user_session = UserSession.create_session(user_id=user.username, duration_hours=duration_hours)
        db.session.add(user_session)
        db.session.commit()
        return {'Authorization': f'Bearer {user_session.session_id}'}

    return _headers


@pytest.fixture
def inspector_headers(user_factory, auth_headers):
    return auth_headers(user_factory('inspector1', roles=[('INSPECTOR', 'demo1')]))


@pytest.fixture
def lead_headers(user_factory, auth_headers):
    return auth_headers(user_factory('lead1', roles=[('LEAD_INSPECTOR', 'demo1')]))


@pytest.fixture
def admin_headers(user_factory, auth_headers):
    return auth_headers(user_factory('admin', roles=[('ADMIN', '*')]))
