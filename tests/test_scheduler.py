from datetime import datetime, timedelta

from roktodan import db
from roktodan.models.donation import Notification
from roktodan.utils.scheduler import restore_donor_availability, run_daily_jobs


def test_restores_donors_past_deferral(make_user):
    now = datetime.utcnow()
    rested = make_user('donor', is_available=False, next_eligible_date=now - timedelta(days=1))
    resting = make_user('donor', is_available=False, next_eligible_date=now + timedelta(days=20))
    paused = make_user('donor', is_available=False)

    assert restore_donor_availability(now) == 1

    db.session.expire_all()
    assert rested.donor_profile.is_available is True
    assert resting.donor_profile.is_available is False
    assert paused.donor_profile.is_available is False

    reminders = Notification.query.filter_by(notification_type='donation_reminder').all()
    assert {n.user_id for n in reminders} == {rested.id}
    assert all(n.is_sent for n in reminders)


def test_nothing_to_restore(make_user):
    make_user('donor')
    assert restore_donor_availability() == 0
    assert Notification.query.count() == 0


def test_run_daily_jobs(app, make_user):
    donor = make_user('donor', is_available=False, next_eligible_date=datetime.utcnow() - timedelta(hours=1))

    run_daily_jobs(app)

    db.session.expire_all()
    assert donor.donor_profile.is_available is True
