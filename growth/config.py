"""
Centralized configuration — env vars, practice defaults, shared enumerations.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Engine thresholds (YAML overrides) ────────────────────────────────────────
GROWTH_CONFIG_PATH = os.getenv('GROWTH_CONFIG_PATH')

# ── Tenant ────────────────────────────────────────────────────────────────────
DEFAULT_ORGANIZATION_ID = os.getenv('DEFAULT_ORGANIZATION_ID', 'default')

# ── Practice defaults used in nurture content ─────────────────────────────────
PRACTICE_NAME = os.getenv('PRACTICE_NAME', 'Our Practice')
PRACTICE_PHONE = os.getenv('PRACTICE_PHONE', '')
PRACTICE_SUBDOMAIN = os.getenv('PRACTICE_SUBDOMAIN', 'practice')

# ── Lead acquisition channels ─────────────────────────────────────────────────
LEAD_SOURCES = [
    'website',
    'phone_call',
    'walk_in',
    'referral',
    'provider_referral',
    'google_search',
    'google_ads',
    'facebook_ads',
    'social_media',
    'insurance_directory',
    'other',
]

# ── Inbound replies and engagement events ─────────────────────────────────────
RESPONSE_TYPES = [
    'email_reply',
    'sms_reply',
    'call_request',
    'booking_attempt',
    'unsubscribe',
]

ENGAGEMENT_TYPES = [
    'email_opened',
    'link_clicked',
    'reply',
    'opt_out',
]

URGENCY_LEVELS = ['low', 'medium', 'high']

# ── Review platforms ──────────────────────────────────────────────────────────
REVIEW_PLATFORMS = [
    'google',
    'yelp',
    'facebook',
    'healthgrades',
]
