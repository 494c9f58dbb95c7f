"""
Inspection API Routes
Checklist, per-team inspection state, status changes and the public
status board for one event.
"""
from flask import Blueprint, current_app, g, jsonify, request

from pitstop.error_handlers import handle_errors
from pitstop.routes.auth import require_event_role
from pitstop.schemas import CommentBody, UpdateItemsBody, UpdateStatusBody
from pitstop.utils.validators import parse_body, parse_team_number, request_json_or_none

inspection_bp = Blueprint('inspection', __name__, url_prefix='/api/events')

INSPECTOR_ROLES = ('INSPECTOR', 'LEAD_INSPECTOR')


def get_inspection_service():
    return current_app.extensions['inspection_service']


@inspection_bp.route('/<event_code>/inspection/checklist', methods=['GET'])
@handle_errors
@require_event_role(*INSPECTOR_ROLES)
def get_checklist(event_code):
    """Static checklist definition (same for every event)"""
    service = get_inspection_service()
    service.resolver.assert_event_exists(event_code)
    return jsonify(service.get_checklist())


@inspection_bp.route('/<event_code>/inspection/teams', methods=['GET'])
@handle_errors
@require_event_role(*INSPECTOR_ROLES)
def list_teams(event_code):
    """
    Teams with inspection status and progress

    Query Parameters:
    - search: Filter on number, name, organization, city or country
    """
    search = request.args.get('search')
    return jsonify(get_inspection_service().list_teams(event_code, search))


@inspection_bp.route('/<event_code>/inspection/teams/<team>', methods=['GET'])
@handle_errors
@require_event_role(*INSPECTOR_ROLES)
def get_team_detail(event_code, team):
    team_number = parse_team_number(team)
    return jsonify(get_inspection_service().get_detail(event_code, team_number))


@inspection_bp.route('/<event_code>/inspection/teams/<team>/items', methods=['PATCH'])
@handle_errors
@require_event_role(*INSPECTOR_ROLES)
def update_items(event_code, team):
    """Save checklist answers; body {items: [{key, value}]}"""
    team_number = parse_team_number(team)
    body = parse_body(UpdateItemsBody, request_json_or_none())
    items = [item.model_dump() for item in body.items]
    return jsonify(get_inspection_service().update_items(event_code, team_number, items))


@inspection_bp.route('/<event_code>/inspection/teams/<team>/status', methods=['PATCH'])
@handle_errors
@require_event_role(*INSPECTOR_ROLES)
def update_status(event_code, team):
    team_number = parse_team_number(team)
    body = parse_body(UpdateStatusBody, request_json_or_none())
    detail = get_inspection_service().update_status(
        event_code, team_number, body.status, g.current_user.username
    )
    return jsonify(detail)


@inspection_bp.route('/<event_code>/inspection/teams/<team>/comment', methods=['POST'])
@handle_errors
@require_event_role(*INSPECTOR_ROLES)
def save_comment(event_code, team):
    team_number = parse_team_number(team)
    body = parse_body(CommentBody, request_json_or_none())
    get_inspection_service().save_comment(event_code, team_number, body.comment)
    return jsonify({'success': True})


@inspection_bp.route('/<event_code>/inspection/teams/<team>/override', methods=['POST'])
@handle_errors
@require_event_role('LEAD_INSPECTOR')
def override_status(event_code, team):
    """Force PASSED regardless of checklist progress (lead inspector only)"""
    team_number = parse_team_number(team)
    body = parse_body(CommentBody, request_json_or_none())
    detail = get_inspection_service().override_status(
        event_code, team_number, body.comment, g.current_user.username
    )
    return jsonify(detail)


@inspection_bp.route('/<event_code>/inspection/teams/<team>/history', methods=['GET'])
@handle_errors
@require_event_role(*INSPECTOR_ROLES)
def get_history(event_code, team):
    team_number = parse_team_number(team)
    return jsonify(get_inspection_service().get_history(event_code, team_number))


@inspection_bp.route('/<event_code>/inspection/public-status', methods=['GET'])
@handle_errors
def public_status(event_code):
    """Unauthenticated status board: team number, name and status only"""
    return jsonify(get_inspection_service().get_public_status(event_code))
