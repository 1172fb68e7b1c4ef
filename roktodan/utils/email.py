import smtplib
from datetime import datetime
from io import BytesIO

from flask import current_app
from flask_mail import Message
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from roktodan import mail
from roktodan.utils.timezone import format_bst_datetime, convert_to_bst, get_bst_now


def send_email(recipients, subject, body):
    """
    Send a plain-text email. Returns True when handed to the mail server.

    Delivery problems are logged and reported as False, never raised.
    """
    if isinstance(recipients, str):
        recipients = [recipients]
    recipients = [r for r in recipients if r]
    if not recipients:
        return False

    if current_app.config.get('MOCK_SERVICES'):
        current_app.logger.info(f"[MOCK] Email to {', '.join(recipients)}: {subject}")
        return True

    sender = current_app.config.get('MAIL_DEFAULT_SENDER')
    if not sender:
        current_app.logger.warning("MAIL_DEFAULT_SENDER not configured, skipping email")
        return False

    msg = Message(subject, recipients=recipients, sender=sender)
    msg.body = body
    try:
        mail.send(msg)
    except (smtplib.SMTPException, OSError) as e:
        current_app.logger.error(f"Error sending email to {', '.join(recipients)}: {str(e)}")
        return False
    return True


def request_submitted_body(blood_request):
    base_url = current_app.config.get('APP_BASE_URL', '').rstrip('/')
    return f'''Dear {blood_request.requester_name},

Your request for {blood_request.units_needed} unit(s) of {blood_request.blood_group} blood has been received.

Tracking ID: {blood_request.tracking_id}
Hospital: {blood_request.hospital_name}
Needed by: {format_bst_datetime(blood_request.needed_by)} (Bangladesh time)
Urgency: {blood_request.urgency}

Follow the progress of your request at:
{base_url}/track/{blood_request.tracking_id}

Our team will review it shortly.
'''


def certificate_number(donation):
    stamp = (donation.donation_date or datetime.utcnow()).strftime('%Y%m%d')
    return f"RKT-{stamp}-{donation.id:06d}"


def generate_donation_certificate(donation):
    """Render the donation certificate PDF and return it as a BytesIO."""
    buffer = BytesIO()

    c = canvas.Canvas(buffer, pagesize=landscape(A4))
    width, height = landscape(A4)
    font_name = 'Helvetica'

    # Border
    c.setStrokeColor(colors.HexColor('#dc2626'))
    c.setLineWidth(3)
    c.rect(0.5 * inch, 0.5 * inch, width - 1 * inch, height - 1 * inch)

    # Title
    c.setFont(font_name + '-Bold', 28)
    c.setFillColor(colors.HexColor('#dc2626'))
    c.drawCentredString(width / 2, height - 1.5 * inch, "Certificate of Blood Donation")
    c.setFillColor(colors.black)

    # Donor details
    c.setFont(font_name, 14)
    y_position = height - 2.6 * inch
    c.drawCentredString(width / 2, y_position, "This is to certify that")

    donor = donation.donor
    donor_name = donor.user.full_name if donor and donor.user else "Valued Donor"
    y_position -= 0.6 * inch
    c.setFont(font_name + '-Bold', 22)
    c.drawCentredString(width / 2, y_position, donor_name)

    blood_request = donation.request
    y_position -= 0.6 * inch
    c.setFont(font_name, 14)
    c.drawCentredString(
        width / 2, y_position,
        f"has donated {donation.units_donated} unit(s) of {donor.blood_group if donor else ''} blood"
    )
    if blood_request is not None:
        y_position -= 0.4 * inch
        c.drawCentredString(width / 2, y_position, f"at {blood_request.hospital_name}")

    y_position -= 0.4 * inch
    donated_on = convert_to_bst(donation.donation_date)
    c.drawCentredString(width / 2, y_position, f"on {donated_on.strftime('%d %B, %Y')}")

    y_position -= 0.8 * inch
    c.setFont(font_name + '-Oblique', 12)
    c.drawCentredString(width / 2, y_position, "Thank you for your generous contribution to saving lives!")

    if donation.is_verified and donation.verifier and donation.verifier.user:
        c.setFont(font_name, 11)
        c.drawString(1 * inch, 1.3 * inch, f"Verified by: {donation.verifier.user.full_name}")

    # Certificate ID and date
    c.setFont(font_name, 8)
    c.drawString(1 * inch, 1 * inch, f"Certificate ID: {donation.certificate_id or certificate_number(donation)}")
    c.drawRightString(width - 1 * inch, 1 * inch, f"Generated on: {get_bst_now().strftime('%d %B, %Y')}")

    c.showPage()
    c.save()

    buffer.seek(0)
    return buffer
