"""
Structured logging configuration.

Called once from create_app(). Supports text (human-readable) and JSON formats
via LOG_FORMAT env var. LOG_LEVEL defaults to INFO. Every record is tagged
with the organization of the request being served, so one practice's
activity can be filtered out of a shared log stream.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import has_request_context, request

from growth.config import DEFAULT_ORGANIZATION_ID

NO_ORGANIZATION = '-'


class OrganizationFilter(logging.Filter):
    """Attach organization_id (tenant header, else default) to each record."""

    def filter(self, record):
        if not hasattr(record, 'organization_id'):
            if has_request_context():
                record.organization_id = (request.headers.get('X-Organization-Id')
                                          or DEFAULT_ORGANIZATION_ID)
            else:
                record.organization_id = NO_ORGANIZATION
        return True


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production log aggregators."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'organization_id': getattr(record, 'organization_id', NO_ORGANIZATION),
            'message': record.getMessage(),
        }
        # Audit records carry their payload as a structured extra
        audit = getattr(record, 'audit', None)
        if audit is not None:
            entry['audit'] = audit
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s [org=%(organization_id)s]: %(message)s'

# Chatty at INFO: per-statement SQL echo and per-request access lines
_NOISY_LOGGERS = [
    'sqlalchemy.engine',
    'werkzeug',
]


def _level_from_env():
    level = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), None)
    # getattr can land on non-level module attributes such as BASIC_FORMAT
    return level if isinstance(level, int) else logging.INFO


def configure_logging(app=None):
    """
    Set up root logger with format/level from env vars.

    Environment variables:
        LOG_LEVEL  — Python log level name (default: INFO)
        LOG_FORMAT — "text" (default) or "json"
    """
    level = _level_from_env()

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any existing handlers to avoid duplicates on re-init
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(OrganizationFilter())

    if os.getenv('LOG_FORMAT', 'text').lower() == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.debug("Logging configured (level=%s)", logging.getLevelName(level))
