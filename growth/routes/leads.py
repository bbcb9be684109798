"""
Lead blueprint — capture, scoring, status, routing, and lead analytics.
"""
from flask import Blueprint, jsonify

from growth.errors import BadRequestError
from growth.routes.common import flag, int_arg, json_body, optional_int, services

bp = Blueprint('leads', __name__)


# ── Capture + scoring ─────────────────────────────────────────────────────────

@bp.route('/api/leads', methods=['POST'])
def capture_lead():
    """Body: {source, contact: {...}, behavior: {...}}. Duplicates are merged."""
    data = json_body()
    if not data.get('source'):
        raise BadRequestError("source is required")
    with services() as svc:
        result = svc.leads.capture_lead(data['source'], data.get('contact'), data.get('behavior'))
    return jsonify(result), 201 if result['is_new'] else 200


@bp.route('/api/leads/<int:lead_id>/score', methods=['POST'])
def score_lead(lead_id):
    data = json_body()
    with services() as svc:
        return jsonify(svc.leads.score_lead(lead_id, force=flag(data, 'force')))


@bp.route('/api/leads/score', methods=['POST'])
def bulk_score_leads():
    data = json_body()
    lead_ids = data.get('lead_ids')
    if lead_ids is not None and not isinstance(lead_ids, list):
        raise BadRequestError("lead_ids must be a list")
    with services() as svc:
        return jsonify(svc.leads.bulk_score_leads(lead_ids, force=flag(data, 'force')))


@bp.route('/api/leads/<int:lead_id>/prediction')
def conversion_prediction(lead_id):
    with services() as svc:
        return jsonify(svc.leads.get_conversion_prediction(lead_id))


# ── Status + routing ──────────────────────────────────────────────────────────

@bp.route('/api/leads/<int:lead_id>/status', methods=['POST'])
def update_status(lead_id):
    data = json_body()
    if not data.get('status'):
        raise BadRequestError("status is required")
    with services() as svc:
        return jsonify(svc.leads.update_lead_status(lead_id, data['status'], data.get('note')))


@bp.route('/api/leads/<int:lead_id>/conversion', methods=['POST'])
def track_conversion(lead_id):
    data = json_body()
    with services() as svc:
        return jsonify(svc.leads.track_conversion(lead_id, data.get('patient_id')))


@bp.route('/api/leads/<int:lead_id>/assign', methods=['POST'])
def assign_lead(lead_id):
    data = json_body()
    with services() as svc:
        return jsonify(svc.leads.assign_lead(lead_id, optional_int(data, 'staff_id')))


@bp.route('/api/leads/<int:lead_id>/escalate', methods=['POST'])
def escalate_lead(lead_id):
    data = json_body()
    with services() as svc:
        return jsonify(svc.leads.escalate_hot_lead(
            lead_id, data.get('urgency_level', 'high'), data.get('reason', 'manual'),
        ))


# ── Read models ───────────────────────────────────────────────────────────────

@bp.route('/api/leads/rankings')
def priority_rankings():
    with services() as svc:
        return jsonify(svc.leads.get_priority_rankings(limit=int_arg('limit', 20)))


@bp.route('/api/leads/sources')
def source_analytics():
    with services() as svc:
        return jsonify(svc.leads.get_source_analytics())


@bp.route('/api/leads/<int:lead_id>/activity')
def lead_activity(lead_id):
    with services() as svc:
        return jsonify(svc.leads.get_lead_activity(lead_id, limit=int_arg('limit', 50)))


@bp.route('/api/leads/<int:lead_id>')
def get_lead(lead_id):
    with services() as svc:
        return jsonify(svc.leads.get_lead(lead_id).to_dict())
