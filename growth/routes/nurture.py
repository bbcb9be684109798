"""
Nurture blueprint — sequence lifecycle, inbound responses and engagement.
"""
from flask import Blueprint, jsonify

from growth.errors import BadRequestError
from growth.routes.common import flag, json_body, optional_int, services

bp = Blueprint('nurture', __name__)


@bp.route('/api/nurture/sequences')
def list_sequences():
    with services() as svc:
        return jsonify(svc.nurture.get_sequences())


@bp.route('/api/nurture/analytics')
def nurture_analytics():
    with services() as svc:
        return jsonify(svc.nurture.get_nurture_analytics())


@bp.route('/api/leads/<int:lead_id>/nurture', methods=['POST'])
def start_nurture(lead_id):
    data = json_body()
    with services() as svc:
        return jsonify(svc.nurture.nurture_lead(
            lead_id, data.get('sequence_type'), immediate=flag(data, 'immediate', True),
        ))


@bp.route('/api/leads/<int:lead_id>/nurture/advance', methods=['POST'])
def advance_nurture(lead_id):
    data = json_body()
    skip_to = optional_int(data, 'skip_to')
    with services() as svc:
        return jsonify(svc.nurture.advance_nurture_step(
            lead_id, skip_to=skip_to, mark_engaged=flag(data, 'mark_engaged'),
        ))


@bp.route('/api/leads/<int:lead_id>/nurture/pause', methods=['POST'])
def pause_nurture(lead_id):
    data = json_body()
    with services() as svc:
        return jsonify(svc.nurture.pause_nurture(lead_id, data.get('reason')))


@bp.route('/api/leads/<int:lead_id>/nurture/resume', methods=['POST'])
def resume_nurture(lead_id):
    data = json_body()
    with services() as svc:
        return jsonify(svc.nurture.resume_nurture(lead_id, restart=flag(data, 'restart')))


@bp.route('/api/leads/<int:lead_id>/responses', methods=['POST'])
def handle_response(lead_id):
    data = json_body()
    if not data.get('response_type'):
        raise BadRequestError("response_type is required")
    with services() as svc:
        return jsonify(svc.nurture.handle_response(lead_id, data['response_type'], data.get('content')))


@bp.route('/api/leads/<int:lead_id>/engagement', methods=['POST'])
def record_engagement(lead_id):
    data = json_body()
    if not data.get('engagement_type'):
        raise BadRequestError("engagement_type is required")
    with services() as svc:
        return jsonify(svc.nurture.record_engagement(lead_id, data['engagement_type']))


@bp.route('/api/leads/<int:lead_id>/timing')
def optimal_timing(lead_id):
    with services() as svc:
        return jsonify(svc.nurture.get_optimal_timing(lead_id))
