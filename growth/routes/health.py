"""
Health check.
"""
from flask import Blueprint, jsonify

from growth.engine.config import load_growth_config

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy", "config_version": load_growth_config().version}), 200
