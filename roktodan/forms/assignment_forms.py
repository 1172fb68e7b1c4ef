from wtforms import IntegerField, StringField, BooleanField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from roktodan.forms.base import JsonForm, Present, WholeNumberField, strip_value


class AssignForm(JsonForm):
    """Admin assignment of a volunteer or a donor; exactly one of the two ids."""
    volunteer_id = IntegerField('Volunteer', name='volunteerId', validators=[Optional()])
    donor_id = IntegerField('Donor', name='donorId', validators=[Optional()])
    notes = StringField('Notes', filters=[strip_value], validators=[Optional(), Length(max=1000)])

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators=extra_validators):
            return False
        if (self.volunteer_id.data is None) == (self.donor_id.data is None):
            self.volunteer_id.errors.append('Provide either volunteerId or donorId')
            return False
        return True


class AssignDonorForm(JsonForm):
    donor_id = IntegerField('Donor', name='donorId', validators=[DataRequired()])
    notes = StringField('Notes', filters=[strip_value], validators=[Optional(), Length(max=1000)])


class RespondForm(JsonForm):
    accept = BooleanField('Accept', validators=[Present(message='accept must be true or false')])
    note = StringField('Note', filters=[strip_value], validators=[Optional(), Length(max=1000)])


class CompleteDonationForm(JsonForm):
    assignment_id = IntegerField('Assignment', name='assignmentId', validators=[DataRequired()])
    request_id = IntegerField('Request', name='requestId', validators=[DataRequired()])
    units_donated = WholeNumberField('Units Donated', name='unitsDonated', default=1,
                                      validators=[Optional(), NumberRange(min=1, max=5)])
    donation_location = StringField('Donation Location', name='donationLocation', filters=[strip_value],
                                    validators=[Optional(), Length(max=200)])
    notes = StringField('Notes', filters=[strip_value], validators=[Optional(), Length(max=1000)])
