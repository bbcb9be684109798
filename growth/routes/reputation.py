"""
Reputation blueprint — platform snapshots and the aggregate score.
"""
from flask import Blueprint, jsonify, request

from growth.errors import BadRequestError
from growth.routes.common import int_arg, json_body, services

bp = Blueprint('reputation', __name__)

SNAPSHOT_FIELDS = ('response_rate', 'sentiment', 'rating_breakdown', 'has_negative_review')


@bp.route('/api/reputation/snapshots', methods=['POST'])
def record_snapshot():
    """Body: {platform, rating, review_count, response_rate?, sentiment?, ...}."""
    data = json_body()
    for name in ('platform', 'rating', 'review_count'):
        if data.get(name) is None:
            raise BadRequestError(f"{name} is required")
    extras = {k: data[k] for k in SNAPSHOT_FIELDS if k in data}
    with services() as svc:
        result = svc.reputation.record_snapshot(
            data['platform'], data['rating'], data['review_count'], **extras,
        )
    return jsonify(result), 201


@bp.route('/api/reputation/snapshots')
def list_snapshots():
    with services() as svc:
        return jsonify(svc.reputation.list_snapshots(
            request.args.get('platform'), limit=int_arg('limit', 100),
        ))


@bp.route('/api/reputation/score')
def reputation_score():
    with services() as svc:
        return jsonify(svc.reputation.get_reputation_score())
