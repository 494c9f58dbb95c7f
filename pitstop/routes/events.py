"""
Event and team roster API Routes
"""
from flask import Blueprint, current_app, jsonify, request

from pitstop.error_handlers import ResourceNotFoundException, handle_errors
from pitstop.models import get_db, get_models
from pitstop.routes.auth import require_admin, require_authentication
from pitstop.schemas import AddTeamBody, UpdateTeamBody
from pitstop.utils.validators import is_valid_event_code, parse_body, parse_team_number, request_json_or_none

events_bp = Blueprint('events', __name__, url_prefix='/api/events')


def get_team_service():
    return current_app.extensions['team_service']


@events_bp.route('', methods=['GET'])
@handle_errors
@require_authentication()
def list_events():
    """All events, earliest start first"""
    db = get_db()
    Event = get_models()['Event']

    events = db.session.query(Event).order_by(Event.start, Event.code).all()
    return jsonify({
        'events': [event.to_dict() for event in events],
        'count': len(events)
    })


@events_bp.route('/<event_code>', methods=['GET'])
@handle_errors
@require_authentication()
def get_event(event_code):
    db = get_db()
    Event = get_models()['Event']

    event = db.session.get(Event, event_code) if is_valid_event_code(event_code) else None
    if event is None:
        raise ResourceNotFoundException(f'Event "{event_code}" was not found.')
    return jsonify(event.to_dict())


@events_bp.route('/<event_code>/teams', methods=['GET'])
@handle_errors
@require_authentication()
def list_event_teams(event_code):
    """
    Resolved team roster

    Query Parameters:
    - search: Filter on number, name, organization, city or country
    """
    return jsonify(get_team_service().list_teams(event_code, request.args.get('search')))


@events_bp.route('/<event_code>/teams', methods=['POST'])
@handle_errors
@require_admin()
def add_event_team(event_code):
    body = parse_body(AddTeamBody, request_json_or_none())
    team = get_team_service().add_team(
        event_code,
        body.team_number,
        body.team_name,
        organization_school=body.organization_school,
        city=body.city,
        country=body.country,
    )
    return jsonify(team), 201


@events_bp.route('/<event_code>/teams/<team>', methods=['PUT'])
@handle_errors
@require_admin()
def update_event_team(event_code, team):
    team_number = parse_team_number(team)
    body = parse_body(UpdateTeamBody, request_json_or_none())
    updated = get_team_service().update_team(
        event_code,
        team_number,
        body.team_name,
        organization_school=body.organization_school,
        city=body.city,
        country=body.country,
    )
    return jsonify(updated)


@events_bp.route('/<event_code>/teams/<team>', methods=['DELETE'])
@handle_errors
@require_admin()
def delete_event_team(event_code, team):
    """Remove a team together with its inspection record and answers"""
    team_number = parse_team_number(team)
    get_team_service().delete_team(event_code, team_number)
    return jsonify({'success': True})
