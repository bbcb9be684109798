"""
Candidate-search criteria, validated once at the boundary.
"""
from dataclasses import dataclass, fields
from typing import Optional, Tuple

from growth.engine.reactivation import LAPSE_REASONS, UNKNOWN_REASON
from growth.errors import BadRequestError


def _as_int(name, value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequestError(f"Invalid value for {name}: {value!r}")


def _as_float(name, value):
    try:
        return float(value)
    except (TypeError, ValueError):
        raise BadRequestError(f"Invalid value for {name}: {value!r}")


def _as_bool(name, value):
    if isinstance(value, str):
        return value.lower() in ('1', 'true', 'yes')
    return bool(value)


def _as_reasons(name, value):
    if isinstance(value, str):
        value = [r for r in value.split(',') if r]
    return tuple(value)


def _parse(cls, data, converters):
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise BadRequestError(f"Unknown criteria: {', '.join(unknown)}")
    values = {
        name: converters[name](name, value)
        for name, value in data.items()
        if value is not None
    }
    return cls(**values)


@dataclass(frozen=True)
class ReferralCriteria:
    min_nps: float = 9.0
    min_referral_score: float = 50.0
    limit: int = 20
    include_recent_outreach: bool = False

    def __post_init__(self):
        if not 0 <= self.min_nps <= 10:
            raise BadRequestError("min_nps must be between 0 and 10")
        if not 0 <= self.min_referral_score <= 100:
            raise BadRequestError("min_referral_score must be between 0 and 100")
        if self.limit < 1:
            raise BadRequestError("limit must be at least 1")

    @classmethod
    def from_dict(cls, data):
        return _parse(cls, data, {
            'min_nps': _as_float,
            'min_referral_score': _as_float,
            'limit': _as_int,
            'include_recent_outreach': _as_bool,
        })


@dataclass(frozen=True)
class ReactivationCriteria:
    # None falls back to the engine's configured window
    min_days_lapsed: Optional[int] = None
    max_days_lapsed: Optional[int] = None
    min_score: float = 0.0
    limit: int = 50
    reasons: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.min_days_lapsed is not None and self.min_days_lapsed < 0:
            raise BadRequestError("min_days_lapsed must not be negative")
        if (self.min_days_lapsed is not None and self.max_days_lapsed is not None
                and self.max_days_lapsed < self.min_days_lapsed):
            raise BadRequestError("max_days_lapsed must not be below min_days_lapsed")
        if self.limit < 1:
            raise BadRequestError("limit must be at least 1")
        for reason in self.reasons:
            if reason not in LAPSE_REASONS and reason != UNKNOWN_REASON:
                raise BadRequestError(f"Unknown lapse reason: {reason}")

    @classmethod
    def from_dict(cls, data):
        return _parse(cls, data, {
            'min_days_lapsed': _as_int,
            'max_days_lapsed': _as_int,
            'min_score': _as_float,
            'limit': _as_int,
            'reasons': _as_reasons,
        })
