"""
Patient blueprint — referral and reactivation opportunities.
"""
from flask import Blueprint, jsonify, request

from growth.errors import BadRequestError
from growth.routes.common import json_body, services

bp = Blueprint('patients', __name__)


def _criteria():
    """Criteria from the JSON body on POST, the query string on GET."""
    if request.method == 'POST':
        return json_body()
    return request.args.to_dict()


# ── Referrals ─────────────────────────────────────────────────────────────────

@bp.route('/api/patients/<patient_id>/referral')
def analyze_referral(patient_id):
    with services() as svc:
        return jsonify(svc.referrals.analyze_referral(patient_id))


@bp.route('/api/referrals/candidates', methods=['GET', 'POST'])
def referral_candidates():
    with services() as svc:
        return jsonify(svc.referrals.identify_referrers(_criteria()))


@bp.route('/api/patients/<patient_id>/referral/outreach', methods=['POST'])
def referral_outreach(patient_id):
    with services() as svc:
        return jsonify(svc.referrals.record_referral_outreach(patient_id))


# ── Reactivation ──────────────────────────────────────────────────────────────

@bp.route('/api/patients/<patient_id>/lapse')
def analyze_lapse(patient_id):
    with services() as svc:
        return jsonify(svc.reactivation.analyze_lapse(patient_id))


@bp.route('/api/reactivation/candidates', methods=['GET', 'POST'])
def reactivation_candidates():
    with services() as svc:
        return jsonify(svc.reactivation.identify_reactivation_candidates(_criteria()))


@bp.route('/api/patients/<patient_id>/reactivation/outreach', methods=['POST'])
def reactivation_outreach(patient_id):
    data = json_body()
    with services() as svc:
        return jsonify(svc.reactivation.record_reactivation_outreach(
            patient_id, data.get('offer_id'), data.get('channel'),
        ))


@bp.route('/api/patients/<patient_id>/reactivation/status', methods=['POST'])
def reactivation_status(patient_id):
    data = json_body()
    if not data.get('status'):
        raise BadRequestError("status is required")
    with services() as svc:
        return jsonify(svc.reactivation.update_reactivation_status(patient_id, data['status']))
