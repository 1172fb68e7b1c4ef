import random
import re
import string
from datetime import datetime

TRACKING_PREFIX = 'BLD'
TRACKING_ID_PATTERN = re.compile(r'^BLD-\d{8}-[0-9A-Z]{4}$')

_BASE36 = string.digits + string.ascii_uppercase

CRITICAL_WITHIN_HOURS = 6
URGENT_WITHIN_HOURS = 24


def generate_tracking_id(now=None):
    """
    Generate a public tracking id like ``BLD-20261019-7K2Q``.

    Short and readable over the phone, not a secret; uniqueness is enforced by
    the caller against the database.
    """
    now = now or datetime.utcnow()
    suffix = ''.join(random.choices(_BASE36, k=4))
    return f"{TRACKING_PREFIX}-{now.strftime('%Y%m%d')}-{suffix}"


def is_valid_tracking_id(value):
    return bool(value) and bool(TRACKING_ID_PATTERN.match(value))


def classify_urgency(needed_by, is_emergency=False, now=None):
    """
    Derive ``(urgency, is_emergency)`` from how soon blood is needed.

    Within 6 hours, or any explicitly flagged emergency, is critical and always
    an emergency; within 24 hours is urgent; anything later is normal.
    """
    now = now or datetime.utcnow()
    hours_until_needed = (needed_by - now).total_seconds() / 3600

    if is_emergency or hours_until_needed <= CRITICAL_WITHIN_HOURS:
        return 'critical', True
    if hours_until_needed <= URGENT_WITHIN_HOURS:
        return 'urgent', False
    return 'normal', False
