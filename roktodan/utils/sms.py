import requests
from flask import current_app
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

BD_COUNTRY_CODE = '+88'


def format_phone_number(phone_number):
    """Normalize a local number like ``01712345678`` to ``+8801712345678``."""
    if not phone_number:
        return phone_number
    phone_number = phone_number.strip().replace(' ', '').replace('-', '')
    if phone_number.startswith('+'):
        return phone_number
    if phone_number.startswith('88'):
        return '+' + phone_number
    return BD_COUNTRY_CODE + phone_number


def send_sms(to_number, message):
    """
    Send SMS using Twilio API

    Returns ``(sent, sid_or_error)``; never raises.
    """
    to_number = format_phone_number(to_number)

    if current_app.config.get('MOCK_SERVICES'):
        current_app.logger.info(f"[MOCK] SMS to {to_number}: {message}")
        return True, 'mock'

    account_sid = current_app.config.get('TWILIO_ACCOUNT_SID')
    auth_token = current_app.config.get('TWILIO_AUTH_TOKEN')
    from_number = current_app.config.get('TWILIO_PHONE_NUMBER')

    if not all([account_sid, auth_token, from_number]):
        current_app.logger.warning("Twilio not configured, skipping SMS notification")
        return False, "Twilio credentials not configured"

    try:
        client = Client(account_sid, auth_token)
        result = client.messages.create(
            body=message,
            from_=from_number,
            to=to_number
        )
    except (TwilioException, requests.RequestException) as e:
        current_app.logger.error(f"Error sending SMS to {to_number}: {str(e)}")
        return False, str(e)

    current_app.logger.info(f"SMS sent successfully. Message SID: {result.sid}")
    return True, result.sid
