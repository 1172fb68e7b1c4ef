from wtforms import IntegerField, FloatField, StringField, BooleanField
from wtforms.validators import DataRequired, NumberRange, Optional, AnyOf

from roktodan.errors import ValidationError
from roktodan.forms.base import JsonForm, Present, strip_value
from roktodan.utils.mapbox import PROFILES

MAX_WAYPOINTS = 23


class DefaultingBooleanField(BooleanField):
    """Keeps its default when the key is absent instead of reading as False."""

    def process_formdata(self, valuelist):
        if valuelist:
            super().process_formdata(valuelist)


class PositionForm(JsonForm):
    latitude = FloatField('Latitude', validators=[Present(), NumberRange(min=-90, max=90)])
    longitude = FloatField('Longitude', validators=[Present(), NumberRange(min=-180, max=180)])
    bearing = FloatField('Bearing', validators=[Optional(), NumberRange(min=0, max=360)])
    speed = FloatField('Speed (km/h)', validators=[Optional(), NumberRange(min=0, max=300)])
    accuracy = FloatField('Accuracy (m)', validators=[Optional(), NumberRange(min=0)])
    altitude = FloatField('Altitude (m)', validators=[Optional()])


class RerouteForm(JsonForm):
    current_latitude = FloatField('Current Latitude', name='currentLatitude',
                                  validators=[Present(), NumberRange(min=-90, max=90)])
    current_longitude = FloatField('Current Longitude', name='currentLongitude',
                                   validators=[Present(), NumberRange(min=-180, max=180)])
    preserve_waypoints = DefaultingBooleanField('Preserve Waypoints', name='preserveWaypoints', default=True)


class ShareForm(JsonForm):
    expires_in_hours = IntegerField('Expires In (hours)', name='expiresInHours', default=24,
                                    validators=[Optional(), NumberRange(min=1, max=168)])


class RouteForm(JsonForm):
    """Scalar part of a route creation body; locations are nested objects."""
    assignment_id = IntegerField('Assignment', name='assignmentId', validators=[DataRequired()])
    profile = StringField('Profile', filters=[strip_value], default='driving-traffic',
                          validators=[Optional(), AnyOf(PROFILES)])
    create_share_link = BooleanField('Create Share Link', name='createShareLink')


def parse_location(payload, key, required=True):
    """Validate a ``{latitude, longitude, address?}`` object under ``key``."""
    value = (payload or {}).get(key)
    if value is None:
        if required:
            raise ValidationError('Validation failed', details={key: ['This field is required.']})
        return None
    if not isinstance(value, dict):
        raise ValidationError('Validation failed', details={key: ['Must be an object with latitude and longitude']})

    errors = []
    try:
        latitude = float(value.get('latitude'))
        longitude = float(value.get('longitude'))
    except (TypeError, ValueError):
        raise ValidationError('Validation failed', details={key: ['latitude and longitude must be numbers']})
    if not -90 <= latitude <= 90:
        errors.append('latitude must be between -90 and 90')
    if not -180 <= longitude <= 180:
        errors.append('longitude must be between -180 and 180')
    if errors:
        raise ValidationError('Validation failed', details={key: errors})

    location = {'latitude': latitude, 'longitude': longitude}
    if value.get('address'):
        location['address'] = str(value['address'])[:500]
    return location


def parse_waypoints(payload):
    waypoints = (payload or {}).get('waypoints') or []
    if not isinstance(waypoints, list):
        raise ValidationError('Validation failed', details={'waypoints': ['Must be a list of locations']})
    if len(waypoints) > MAX_WAYPOINTS:
        raise ValidationError('Validation failed', details={'waypoints': [f'At most {MAX_WAYPOINTS} waypoints']})
    return [parse_location({'waypoint': point}, 'waypoint') for point in waypoints]
