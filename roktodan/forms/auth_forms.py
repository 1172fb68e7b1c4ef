from wtforms import StringField, PasswordField, SelectField, FloatField, DateField
from wtforms.validators import DataRequired, Length, Email, NumberRange, Optional, Regexp, AnyOf, ValidationError

from roktodan.forms.base import JsonForm, IsoDateTimeField, strip_value
from roktodan.forms.request_forms import BD_PHONE_PATTERN, BLOOD_GROUP_CHOICES, GENDER_CHOICES
from roktodan.models.user import User


class LoginForm(JsonForm):
    email = StringField('Email', filters=[strip_value], validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[DataRequired()])


class _AccountForm(JsonForm):
    email = StringField('Email', filters=[strip_value], validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6, max=128)])
    full_name = StringField('Full Name', name='fullName', filters=[strip_value],
                            validators=[DataRequired(), Length(min=2, max=100)])
    phone = StringField('Phone Number', filters=[strip_value], validators=[
        DataRequired(),
        Regexp(BD_PHONE_PATTERN, message='Enter a valid Bangladeshi mobile number (e.g. 01712345678)')
    ])
    district = StringField('District', filters=[strip_value], validators=[Optional(), Length(max=50)])
    division = StringField('Division', filters=[strip_value], validators=[Optional(), Length(max=50)])
    address = StringField('Address', filters=[strip_value], validators=[Optional(), Length(max=500)])
    latitude = FloatField('Latitude', validators=[Optional(), NumberRange(min=-90, max=90)])
    longitude = FloatField('Longitude', validators=[Optional(), NumberRange(min=-180, max=180)])

    def validate_email(self, email):
        user = User.query.filter_by(email=email.data.lower()).first()
        if user:
            raise ValidationError('That email is already registered. Please choose a different one or login.')


class DonorRegistrationForm(_AccountForm):
    blood_group = SelectField('Blood Group', name='bloodGroup', choices=BLOOD_GROUP_CHOICES,
                              validators=[DataRequired(message='Select a blood group')])
    gender = SelectField('Gender', choices=GENDER_CHOICES, validators=[Optional()])
    date_of_birth = DateField('Date of Birth', name='dateOfBirth', validators=[Optional()])
    weight = FloatField('Weight (kg)', validators=[Optional(), NumberRange(min=45, max=250)])
    last_donation_date = IsoDateTimeField('Last Donation Date', name='lastDonationDate', validators=[Optional()])


class CreateUserForm(_AccountForm):
    role = StringField('Role', filters=[strip_value], validators=[
        DataRequired(), AnyOf(['volunteer', 'admin'], message='Role must be volunteer or admin')
    ])
    employee_id = StringField('Employee ID', name='employeeId', filters=[strip_value],
                              validators=[Optional(), Length(max=50)])
    department = StringField('Department', filters=[strip_value], validators=[Optional(), Length(max=100)])
    coverage_radius_km = FloatField('Coverage Radius (km)', name='coverageRadiusKm',
                                    validators=[Optional(), NumberRange(min=1, max=200)])
