"""
Engine configuration — one frozen record per engine, defaults in code,
overrides from growth_config.yaml.

load_growth_config() resolves everything once and caches the result. A
missing or unreadable file falls back to the defaults; an unknown option is
a mistake in the file and raises.
"""
import logging
import os
from dataclasses import dataclass, field, fields, replace

import yaml

from growth.config import GROWTH_CONFIG_PATH
from growth.engine.assignment import AssignmentConfig
from growth.engine.lifecycle import LifecycleConfig
from growth.engine.nurture import NurtureConfig
from growth.engine.reactivation import ReactivationConfig
from growth.engine.referral import ReferralConfig
from growth.engine.reputation import ReputationConfig
from growth.engine.responses import ResponseConfig
from growth.engine.scoring import ScoringConfig
from growth.engine.timing import TimingConfig

logger = logging.getLogger('engine.config')

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), 'growth_config.yaml')

_growth_config = None


@dataclass(frozen=True)
class GrowthConfig:
    version: str = 'default'
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    nurture: NurtureConfig = field(default_factory=NurtureConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    responses: ResponseConfig = field(default_factory=ResponseConfig)
    referral: ReferralConfig = field(default_factory=ReferralConfig)
    reactivation: ReactivationConfig = field(default_factory=ReactivationConfig)
    reputation: ReputationConfig = field(default_factory=ReputationConfig)
    assignment: AssignmentConfig = field(default_factory=AssignmentConfig)


SECTIONS = {
    'scoring': ScoringConfig,
    'lifecycle': LifecycleConfig,
    'nurture': NurtureConfig,
    'timing': TimingConfig,
    'responses': ResponseConfig,
    'referral': ReferralConfig,
    'reactivation': ReactivationConfig,
    'reputation': ReputationConfig,
    'assignment': AssignmentConfig,
}


def _freeze(value):
    """YAML lists become tuples so tier tables stay immutable."""
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, dict):
        return {k: _freeze(v) for k, v in value.items()}
    return value


def _build_section(cls, overrides):
    if not isinstance(overrides, dict):
        raise ValueError(f"{cls.__name__} overrides must be a mapping")

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} option(s): {', '.join(unknown)}")

    defaults = cls()
    values = {}
    for key, value in overrides.items():
        value = _freeze(value)
        current = getattr(defaults, key)
        # Lookup tables merge so a file can adjust one entry
        if isinstance(current, dict) and isinstance(value, dict):
            value = {**current, **value}
        values[key] = value
    return replace(defaults, **values)


def build_config(raw) -> GrowthConfig:
    raw = raw or {}
    unknown = sorted(set(raw) - set(SECTIONS) - {'version'})
    if unknown:
        raise ValueError(f"Unknown config section(s): {', '.join(unknown)}")

    sections = {name: _build_section(cls, raw.get(name) or {}) for name, cls in SECTIONS.items()}
    return GrowthConfig(version=str(raw.get('version', 'default')), **sections)


def load_growth_config(path=None) -> GrowthConfig:
    """Load and cache the engine configuration."""
    global _growth_config
    if _growth_config is not None:
        return _growth_config

    path = path or GROWTH_CONFIG_PATH or DEFAULT_CONFIG_PATH
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load growth config from %s: %s. Using defaults.", path, e)
        _growth_config = GrowthConfig()
        return _growth_config

    _growth_config = build_config(raw)
    logger.info("Config loaded from YAML (version=%s)", _growth_config.version)
    return _growth_config
