from wtforms import StringField, FloatField, SelectField, BooleanField
from wtforms.validators import DataRequired, Length, NumberRange, Email, Optional, Regexp

from roktodan.forms.base import JsonForm, IsoDateTimeField, Present, WholeNumberField, strip_value
from roktodan.models.blood_request import BLOOD_GROUPS, GENDERS

BD_PHONE_PATTERN = r'^(\+88)?01[3-9]\d{8}$'

BLOOD_GROUP_CHOICES = [(group, group) for group in BLOOD_GROUPS]
GENDER_CHOICES = [(gender, gender.title()) for gender in GENDERS]


class BloodRequestForm(JsonForm):
    # Requester
    requester_name = StringField('Requester Name', name='requesterName', filters=[strip_value],
                                 validators=[DataRequired(), Length(min=2, max=100)])
    requester_phone = StringField('Requester Phone', name='requesterPhone', filters=[strip_value],
                                  validators=[DataRequired(), Regexp(
                                      BD_PHONE_PATTERN,
                                      message='Enter a valid Bangladeshi mobile number (e.g. 01712345678)')])
    requester_email = StringField('Requester Email', name='requesterEmail', filters=[strip_value],
                                  validators=[Optional(), Email()])

    # Patient
    patient_name = StringField('Patient Name', name='patientName', filters=[strip_value],
                               validators=[DataRequired(), Length(min=2, max=100)])
    patient_age = WholeNumberField('Patient Age', name='patientAge',
                                    validators=[Optional(), NumberRange(min=0, max=150)])
    patient_gender = SelectField('Patient Gender', name='patientGender', choices=GENDER_CHOICES,
                                 validators=[Optional()])

    # Blood requirement
    blood_group = SelectField('Blood Group', name='bloodGroup', choices=BLOOD_GROUP_CHOICES,
                              validators=[DataRequired(message='Select a blood group')])
    units_needed = WholeNumberField('Units Needed', name='unitsNeeded', default=1,
                                     validators=[Optional(), NumberRange(min=1, max=10)])

    # Hospital
    hospital_name = StringField('Hospital Name', name='hospitalName', filters=[strip_value],
                                validators=[DataRequired(), Length(min=2, max=200)])
    hospital_address = StringField('Hospital Address', name='hospitalAddress', filters=[strip_value],
                                   validators=[DataRequired(), Length(min=5, max=500)])

    # Location
    latitude = FloatField('Latitude', validators=[Present(), NumberRange(min=-90, max=90)])
    longitude = FloatField('Longitude', validators=[Present(), NumberRange(min=-180, max=180)])
    district = StringField('District', filters=[strip_value], validators=[DataRequired(message='Select a district')])
    division = StringField('Division', filters=[strip_value], validators=[DataRequired(message='Select a division')])

    # Additional
    reason = StringField('Reason', filters=[strip_value], validators=[Optional(), Length(max=500)])
    needed_by = IsoDateTimeField('Needed By', name='neededBy',
                                 validators=[Present(message='Tell us when the blood is needed')])
    is_emergency = BooleanField('Emergency', name='isEmergency')
