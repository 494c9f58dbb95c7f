"""
Validation utilities for Pitstop
Provides reusable validation helpers for API endpoints and services.
"""
import re
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from pitstop.error_handlers.exceptions import ValidationException

MAX_TEAM_NUMBER = 99_999
EVENT_CODE_PATTERN = re.compile(r'^[A-Za-z0-9_-]{1,64}$')

BodyModel = TypeVar('BodyModel', bound=BaseModel)


def parse_team_number(value: Any) -> int:
    """
    Parse a team number path segment.

    Args:
        value: Raw value from the URL

    Returns:
        int: Team number in 1..MAX_TEAM_NUMBER

    Raises:
        ValidationException: If the value is not a whole number in range

    Examples:
        >>> parse_team_number('42')
        42
        >>> parse_team_number('-1')
        ValidationException: Team number must be a whole number between 1 and 99999.
    """
    message = f'Team number must be a whole number between 1 and {MAX_TEAM_NUMBER}.'
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationException(message)

    if parsed <= 0 or parsed > MAX_TEAM_NUMBER:
        raise ValidationException(message)
    return parsed


def validate_team_number_range(team_number: int) -> int:
    """Ensure a team number being created falls within 1..MAX_TEAM_NUMBER."""
    if isinstance(team_number, bool) or not isinstance(team_number, int) \
            or team_number <= 0 or team_number > MAX_TEAM_NUMBER:
        raise ValidationException(
            f'Team number must be an integer between 1 and {MAX_TEAM_NUMBER}.'
        )
    return team_number


def is_valid_event_code(event_code: str) -> bool:
    """Event codes become file names, so only a safe character set is allowed."""
    return bool(event_code) and EVENT_CODE_PATTERN.match(event_code) is not None


def format_validation_issues(error: PydanticValidationError) -> str:
    """Collapse pydantic errors into one readable message."""
    issues = []
    for issue in error.errors():
        location = '.'.join(str(part) for part in issue.get('loc', ()))
        message = issue.get('msg', 'Invalid value')
        issues.append(f"{location}: {message}" if location else message)
    return '; '.join(issues)


def parse_body(model: Type[BodyModel], data: Any) -> BodyModel:
    """
    Validate a JSON request body against a pydantic model.

    Raises:
        ValidationException: If the body is missing or does not match
    """
    if data is None:
        raise ValidationException('Body must be valid JSON')
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationException(format_validation_issues(e))


def sanitize_request_data(data: str) -> str:
    """
    Remove sensitive data from request strings for safe logging.

    Examples:
        >>> sanitize_request_data('{"password": "secret123"}')
        '{"password": "[REDACTED]"}'
    """
    for field in ('password', 'token', 'secret', 'credential'):
        data = re.sub(
            rf'("{field}"\s*:\s*")[^"]*(")',
            r'\1[REDACTED]\2',
            data,
            flags=re.IGNORECASE
        )
    return data


def request_json_or_none() -> Dict[str, Any]:
    """Return the request JSON body, or None when it is absent or malformed."""
    from flask import request
    return request.get_json(silent=True)
