from datetime import datetime, timedelta

import pytest

from roktodan.utils.intake import (
    generate_tracking_id, classify_urgency, is_valid_tracking_id, TRACKING_ID_PATTERN
)

NOW = datetime(2026, 10, 19, 8, 0, 0)


def test_tracking_id_format():
    tracking_id = generate_tracking_id(NOW)
    assert TRACKING_ID_PATTERN.match(tracking_id)
    assert tracking_id.startswith('BLD-20261019-')


def test_tracking_ids_rarely_repeat():
    ids = {generate_tracking_id(NOW) for _ in range(200)}
    assert len(ids) > 190


@pytest.mark.parametrize('value,expected', [
    ('BLD-20261019-7K2Q', True),
    ('BLD-20261019-7k2q', False),
    ('BLD-2026101-7K2Q', False),
    ('XYZ-20261019-7K2Q', False),
    ('', False),
    (None, False),
])
def test_is_valid_tracking_id(value, expected):
    assert is_valid_tracking_id(value) is expected


@pytest.mark.parametrize('hours,expected', [
    (2, ('critical', True)),
    (3, ('critical', True)),
    (6, ('critical', True)),
    (12, ('urgent', False)),
    (24, ('urgent', False)),
    (72, ('normal', False)),
])
def test_classify_urgency_by_time(hours, expected):
    assert classify_urgency(NOW + timedelta(hours=hours), now=NOW) == expected


def test_explicit_emergency_is_always_critical():
    assert classify_urgency(NOW + timedelta(days=5), is_emergency=True, now=NOW) == ('critical', True)


def test_past_deadline_is_critical():
    assert classify_urgency(NOW - timedelta(hours=1), now=NOW) == ('critical', True)
