"""
Gunicorn Configuration for Production Deployment
Pitstop event console API

Event stores are local SQLite files opened per request, so sync workers
are used; each request holds its store handle only for its own duration.

Usage:
    gunicorn --config gunicorn_config.py wsgi:app
"""
import multiprocessing
import os

# Server Socket
bind = os.getenv('GUNICORN_BIND', '0.0.0.0:8000')
backlog = int(os.getenv('GUNICORN_BACKLOG', '2048'))

# Worker Processes
workers = int(os.getenv('GUNICORN_WORKERS', multiprocessing.cpu_count() + 1))
worker_class = os.getenv('GUNICORN_WORKER_CLASS', 'sync')
max_requests = int(os.getenv('GUNICORN_MAX_REQUESTS', '5000'))
max_requests_jitter = int(os.getenv('GUNICORN_MAX_REQUESTS_JITTER', '500'))
timeout = int(os.getenv('GUNICORN_TIMEOUT', '60'))
keepalive = int(os.getenv('GUNICORN_KEEPALIVE', '5'))

# Logging
accesslog = os.getenv('GUNICORN_ACCESS_LOG', '-')  # '-' for stdout
errorlog = os.getenv('GUNICORN_ERROR_LOG', '-')    # '-' for stderr
loglevel = os.getenv('GUNICORN_LOG_LEVEL', 'info')
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process Naming
proc_name = 'pitstop'


def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info("Starting Pitstop")


def when_ready(server):
    """Called just after the server is started."""
    server.log.info("Pitstop is ready. Listening on: %s", bind)


def worker_abort(worker):
    """Called when a worker receives the SIGABRT signal."""
    worker.log.info("Worker received SIGABRT")


# Security
limit_request_line = int(os.getenv('GUNICORN_LIMIT_REQUEST_LINE', '4096'))
limit_request_fields = int(os.getenv('GUNICORN_LIMIT_REQUEST_FIELDS', '100'))
limit_request_field_size = int(os.getenv('GUNICORN_LIMIT_REQUEST_FIELD_SIZE', '8190'))

graceful_timeout = int(os.getenv('GUNICORN_GRACEFUL_TIMEOUT', '30'))

raw_env = [
    f"FLASK_ENV={os.getenv('FLASK_ENV', 'production')}",
]
