"""
Notification fan-out: one ``Notification`` row per delivery channel.

Delivery is best-effort. Callers commit their own work first; a failure here is
logged and reported in the result, never raised.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from roktodan import db
from roktodan.models.donation import Notification
from roktodan.models.user import User
from roktodan.utils.email import send_email
from roktodan.utils.sms import send_sms
from roktodan.utils.timezone import format_bst_datetime

logger = logging.getLogger(__name__)


def _default_methods(user, email, phone):
    methods = ['system'] if user is not None else []
    donor = user.donor_profile if user is not None else None

    if email and (donor is None or donor.email_notifications):
        methods.append('email')
    if phone and (donor is None or donor.sms_notifications):
        methods.append('sms')
    return methods


def _deliver(notification):
    if notification.delivery_method == 'email':
        sent = send_email(notification.recipient_email, notification.title, notification.message)
    elif notification.delivery_method == 'sms':
        sent, result = send_sms(notification.recipient_phone, f"{notification.title}: {notification.message}")
        if not sent:
            logger.warning(f"SMS notification not delivered: {result}")
    else:
        # System notifications are considered sent immediately
        sent = True

    if sent:
        notification.mark_as_sent()
    return sent


def send_notification(title, message, notification_type, user=None, email=None, phone=None,
                      delivery_methods=None, related_entity_type=None, related_entity_id=None):
    """
    Create and send a notification through the given delivery methods

    Args:
        title: Title of the notification
        message: Content of the notification
        notification_type: Type of notification (e.g., assignment_created)
        user: Account to notify; its email and phone are used unless overridden
        email, phone: Contact details for recipients without an account
        delivery_methods: Subset of (system, email, sms). If None, every channel
                          the recipient can be reached on and has opted into
        related_entity_type: Type of related entity (e.g., blood_request)
        related_entity_id: ID of the related entity

    Returns:
        Dictionary with the status of each delivery method
    """
    if user is not None:
        email = email or user.email
        phone = phone or user.phone

    if delivery_methods is None:
        delivery_methods = _default_methods(user, email, phone)

    results = {}
    try:
        for method in delivery_methods:
            if method == 'system' and user is None:
                continue
            if method == 'email' and not email:
                continue
            if method == 'sms' and not phone:
                continue

            notification = Notification(
                user_id=user.id if user is not None else None,
                recipient_email=email if method == 'email' else None,
                recipient_phone=phone if method == 'sms' else None,
                title=title,
                message=message,
                notification_type=notification_type,
                delivery_method=method,
                related_entity_type=related_entity_type,
                related_entity_id=related_entity_id
            )
            db.session.add(notification)
            results[method] = _deliver(notification)

        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error creating notification '{notification_type}': {str(e)}")
        return {'success': False, 'error': str(e)}

    return {'success': True, 'results': results}


def notify_admins(title, message, notification_type, related_entity_type=None, related_entity_id=None):
    admins = User.query.filter_by(role='admin').all()
    for admin in admins:
        send_notification(
            title, message, notification_type, user=admin,
            delivery_methods=['system', 'email'],
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id
        )
    return len(admins)


def notify_request_submitted(blood_request, body):
    return send_notification(
        f"Blood request received: {blood_request.tracking_id}",
        body,
        'request_submitted',
        email=blood_request.requester_email,
        delivery_methods=['email'],
        related_entity_type='blood_request',
        related_entity_id=blood_request.id
    )


def notify_assignment_created(assignment, assignee):
    blood_request = assignment.request
    if assignment.type == 'donor':
        title = "Blood donation request"
        message = (
            f"{blood_request.hospital_name} needs {blood_request.units_needed} unit(s) of "
            f"{blood_request.blood_group} blood by {format_bst_datetime(blood_request.needed_by)}. "
            f"Please accept or decline in your dashboard."
        )
    else:
        title = "New request assigned"
        message = (
            f"Request {blood_request.tracking_id} ({blood_request.blood_group}, {blood_request.urgency}) "
            f"has been assigned to you for coordination."
        )
    return send_notification(
        title, message, 'assignment_created', user=assignee.user,
        related_entity_type='assignment', related_entity_id=assignment.id
    )


def notify_assignment_rejected(assignment, assignee):
    blood_request = assignment.request
    name = assignee.user.full_name if assignee is not None and assignee.user else 'The assignee'
    return notify_admins(
        f"Assignment declined: {blood_request.tracking_id}",
        f"{name} declined the {assignment.type} assignment for request {blood_request.tracking_id}. "
        f"Please assign someone else.",
        'assignment_rejected',
        related_entity_type='blood_request',
        related_entity_id=blood_request.id
    )


def notify_donation_completed(donation):
    donor = donation.donor
    return send_notification(
        "Thank you for donating blood",
        f"Your donation of {donation.units_donated} unit(s) has been recorded. "
        f"You will be eligible to donate again from {format_bst_datetime(donor.next_eligible_date, '%d %b %Y')}.",
        'donation_completed', user=donor.user,
        related_entity_type='donation', related_entity_id=donation.id
    )


def send_donation_reminder(donor):
    """Tell a donor they are eligible to donate again."""
    name = donor.user.full_name if donor.user else 'there'
    return send_notification(
        "Donation Eligibility Reminder",
        f"Hello {name}, good news! You are now eligible to donate blood again. "
        f"Please consider donating to save lives!",
        'donation_reminder', user=donor.user,
        related_entity_type='donor', related_entity_id=donor.id
    )
