import logging

from sqlalchemy.exc import SQLAlchemyError

from roktodan import db
from roktodan.models.donation import AdminActivityLog

logger = logging.getLogger(__name__)


def log_admin_action(admin_user, action, entity_type, entity_id=None, details=None):
    """Record an admin action. Runs after the action has been committed."""
    try:
        db.session.add(AdminActivityLog(
            admin_id=admin_user.id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error logging admin action '{action}': {str(e)}")
