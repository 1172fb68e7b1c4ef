import atexit
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from roktodan import db, scheduler
from roktodan.models.user import Donor
from roktodan.utils.notifications import send_donation_reminder

logger = logging.getLogger(__name__)


def restore_donor_availability(now=None):
    """
    Make donors available again once their deferral period has passed
    and send them an eligibility reminder. Returns the number of donors restored.
    """
    now = now or datetime.utcnow()
    donors = Donor.query.filter(
        Donor.is_available.is_(False),
        Donor.next_eligible_date.isnot(None),
        Donor.next_eligible_date <= now
    ).all()

    if not donors:
        return 0

    for donor in donors:
        donor.is_available = True
    db.session.commit()

    for donor in donors:
        send_donation_reminder(donor)
        logger.info(f"Donor {donor.id} is eligible again, availability restored")

    return len(donors)


def run_daily_jobs(app):
    with app.app_context():
        try:
            restored = restore_donor_availability()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Donor availability job failed: {str(e)}")
            return
        logger.info(f"Donor availability job finished, {restored} donor(s) restored")


def start_scheduler(app):
    """
    Start the background scheduler for automated tasks
    """
    if scheduler.running:
        return

    scheduler.add_job(
        func=run_daily_jobs,
        args=[app],
        trigger='interval',
        hours=24,  # Run once a day
        id='donor_availability_job',
        replace_existing=True,
        next_run_time=datetime.now()
    )
    scheduler.start()
    app.logger.info("Background scheduler started")

    atexit.register(lambda: scheduler.shutdown(wait=False) if scheduler.running else None)
