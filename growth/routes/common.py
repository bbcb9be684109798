"""
Request helpers shared by the API blueprints.
"""
from contextlib import contextmanager

from flask import request

from growth import database
from growth.config import DEFAULT_ORGANIZATION_ID
from growth.errors import BadRequestError
from growth.services.registry import build_services


def current_organization():
    """Tenant for this request: X-Organization-Id header, else the default."""
    return request.headers.get('X-Organization-Id') or DEFAULT_ORGANIZATION_ID


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequestError("Request body must be a JSON object")
    return data


def flag(data, name, default=False):
    value = data.get(name, default)
    if isinstance(value, str):
        return value.lower() in ('1', 'true', 'yes')
    return bool(value)


def optional_int(data, name):
    """Integer body field; numeric strings are accepted, bools are not."""
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, bool):
        raise BadRequestError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequestError(f"{name} must be an integer")


def int_arg(name, default):
    value = request.args.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise BadRequestError(f"{name} must be an integer")


@contextmanager
def services():
    """Services for the current organization on a fresh session."""
    session = database.get_session()
    try:
        yield build_services(session, current_organization())
    finally:
        session.close()
