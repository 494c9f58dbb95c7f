"""
Health Check and Monitoring Endpoints
Provides endpoints for liveness, readiness and process status.
"""
from flask import Blueprint, jsonify, current_app
from datetime import datetime
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import sys
import psutil
import os

from pitstop.models import get_db

health_bp = Blueprint('health', __name__, url_prefix='/health')


@health_bp.route('/ping', methods=['GET'])
def ping():
    """
    Simple ping endpoint for basic connectivity checks.
    Returns: 200 OK with pong message
    """
    return jsonify({
        'status': 'ok',
        'message': 'pong',
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@health_bp.route('/live', methods=['GET'])
def liveness():
    """Liveness probe - the process is up and serving requests."""
    return jsonify({
        'status': 'alive',
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness():
    """
    Readiness probe - checks the global database and the event data directory.

    Returns:
        200: Application is ready
        503: Application is not ready
    """
    checks = {
        'database': False,
        'event_data_dir': False,
    }
    errors = []

    try:
        db = get_db()
        db.session.execute(text('SELECT 1'))
        checks['database'] = True
    except SQLAlchemyError as e:
        current_app.logger.error(f"Readiness database check failed: {e}")
        errors.append(f"Database: {str(e)}")

    data_dir = current_app.config.get('EVENT_DATA_DIR')
    if data_dir and os.path.isdir(data_dir):
        checks['event_data_dir'] = True
    else:
        errors.append(f"Event data directory not found: {data_dir}")

    all_checks_passed = all(checks.values())
    status_code = 200 if all_checks_passed else 503

    response = {
        'status': 'ready' if all_checks_passed else 'not_ready',
        'checks': checks,
        'timestamp': datetime.utcnow().isoformat()
    }

    if errors:
        response['errors'] = errors

    return jsonify(response), status_code


@health_bp.route('/status', methods=['GET'])
def status():
    """
    Process and host resource usage.

    Returns:
        200: Status information
    """
    process = psutil.Process()
    memory_info = process.memory_info()
    data_dir = current_app.config.get('EVENT_DATA_DIR')
    disk_usage = psutil.disk_usage(data_dir if data_dir and os.path.isdir(data_dir) else '/')

    event_stores = 0
    if data_dir and os.path.isdir(data_dir):
        event_stores = sum(1 for name in os.listdir(data_dir) if name.endswith('.db'))

    checklist = current_app.extensions['checklist']

    return jsonify({
        'status': 'operational',
        'timestamp': datetime.utcnow().isoformat(),
        'application': {
            'name': 'Pitstop',
            'debug': current_app.debug,
            'testing': current_app.testing,
        },
        'system': {
            'python_version': sys.version,
            'platform': sys.platform,
            'process_id': os.getpid(),
        },
        'resources': {
            'memory': {
                'used_mb': round(memory_info.rss / 1024 / 1024, 2),
                'percent': round(process.memory_percent(), 2),
            },
            'disk': {
                'total_gb': round(disk_usage.total / 1024 / 1024 / 1024, 2),
                'free_gb': round(disk_usage.free / 1024 / 1024 / 1024, 2),
                'percent': disk_usage.percent,
            }
        },
        'events': {
            'data_dir': data_dir,
            'stores': event_stores,
        },
        'checklist': {
            'sections': len(checklist.sections),
            'items': len(checklist.items),
            'required': len(checklist.required_keys),
        }
    }), 200
