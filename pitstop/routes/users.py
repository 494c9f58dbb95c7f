"""
User account API Routes
Global admins list, create, edit and delete console accounts.
"""
import re

from flask import Blueprint, current_app, g, jsonify

from pitstop.error_handlers import ValidationException, handle_errors
from pitstop.routes.auth import require_global_admin
from pitstop.schemas import USERNAME_PATTERN, CreateUserBody, UpdateUserBody
from pitstop.utils.validators import parse_body, request_json_or_none

users_bp = Blueprint('users', __name__, url_prefix='/api/users')

USERNAME_RE = re.compile(USERNAME_PATTERN)


def get_user_service():
    return current_app.extensions['user_service']


def parse_username(username: str) -> str:
    if not USERNAME_RE.match(username):
        raise ValidationException('Invalid username.')
    return username


def _role_pairs(body):
    return [(assignment.role, assignment.event) for assignment in body.roles]


@users_bp.route('', methods=['GET'])
@handle_errors
@require_global_admin()
def list_users():
    """All accounts ordered by username"""
    return jsonify({'users': get_user_service().list_users()})


@users_bp.route('/<username>', methods=['GET'])
@handle_errors
@require_global_admin()
def get_user(username):
    return jsonify({'user': get_user_service().get_user(parse_username(username))})


@users_bp.route('', methods=['POST'])
@handle_errors
@require_global_admin()
def create_user():
    """
    Create an account

    Body: {username, password, passwordConfirm, realName?, roles: [{role, event}]}
    """
    body = parse_body(CreateUserBody, request_json_or_none())
    user = get_user_service().create_user(
        body.username, body.password, _role_pairs(body), real_name=body.real_name
    )
    return jsonify({'user': user}), 201


@users_bp.route('/<username>', methods=['PUT'])
@handle_errors
@require_global_admin()
def update_user(username):
    """Replace roles; a blank password leaves the current one in place"""
    username = parse_username(username)
    body = parse_body(UpdateUserBody, request_json_or_none())
    user = get_user_service().update_user(
        username, _role_pairs(body), password=body.password, real_name=body.real_name
    )
    return jsonify({'user': user})


@users_bp.route('/<username>', methods=['DELETE'])
@handle_errors
@require_global_admin()
def delete_user(username):
    get_user_service().delete_user(parse_username(username), g.current_user.username)
    return jsonify({'success': True})
