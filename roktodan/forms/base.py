from datetime import datetime, timezone

from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import ImmutableMultiDict
from wtforms import DateTimeField, IntegerField
from wtforms.validators import ValidationError as FieldValidationError, StopValidation

from roktodan.errors import ValidationError


def strip_value(value):
    if value is None or isinstance(value, bool):
        return value
    return str(value).strip()


class Present:
    """
    Like InputRequired, but a JSON ``0`` or ``false`` counts as provided.
    """

    def __init__(self, message=None):
        self.message = message
        self.field_flags = {'required': True}

    def __call__(self, form, field):
        if field.raw_data and field.raw_data[0] is not None and field.raw_data[0] != '':
            return
        field.errors[:] = []
        raise StopValidation(self.message or field.gettext('This field is required.'))


class IsoDateTimeField(DateTimeField):
    """Accepts ISO-8601 strings (``Z`` or offsets allowed), stores naive UTC."""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        value = str(valuelist[0]).strip()
        if not value:
            self.data = None
            return
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            self.data = None
            raise FieldValidationError(self.gettext('Not a valid datetime value.'))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        self.data = parsed


class WholeNumberField(IntegerField):
    """IntegerField that rejects JSON floats with a fractional part instead of truncating them."""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        value = valuelist[0]
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if isinstance(value, (bool, float)):
            self.data = None
            raise FieldValidationError(self.gettext('Not a valid integer value.'))
        super().process_formdata([value])


class JsonForm(FlaskForm):
    """Form fed from a JSON object body; field ``name``s are the JSON keys."""

    class Meta:
        # CSRF is handled per request, API bodies carry no form token
        csrf = False

    @classmethod
    def from_json(cls, payload=None, **kwargs):
        if payload is None:
            payload = request.get_json(silent=True)
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationError('Request body must be a JSON object')
        formdata = ImmutableMultiDict([
            (key, value) for key, value in payload.items()
            if value is not None and not isinstance(value, (dict, list))
        ])
        return cls(formdata=formdata, **kwargs)

    def field_errors(self):
        return {field.name: list(field.errors) for field in self if field.errors}

    def validate_or_raise(self):
        if not self.validate():
            raise ValidationError('Validation failed', details=self.field_errors())
        return self
