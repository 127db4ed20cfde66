"""
Transportation Forms
Input validation for trip records; JSON bodies are read the same way as form posts.
"""
from flask_wtf import FlaskForm
from wtforms import Form, BooleanField, DateField, IntegerField, SelectField, StringField, TextAreaField, TimeField
from wtforms.validators import DataRequired, InputRequired, Length, NumberRange, Optional

from models.transportation import STATUSES, TRANSPORTATION_TYPES, TRIP_TYPES

TIME_FORMATS = ['%H:%M', '%H:%M:%S']


def _choices(values):
    return [(v, v) for v in values]


class TransportationForm(FlaskForm):
    transportation_date = DateField('Date', validators=[DataRequired(message='Date is required')])
    # Drivers always file under their own account and session vehicle
    driver_id = IntegerField('Driver', validators=[Optional()])
    vehicle_id = IntegerField('Vehicle', validators=[Optional()])
    route_id = IntegerField('Route', validators=[Optional()])
    user_id = IntegerField('Service user', validators=[Optional()])
    transportation_type = SelectField('Type', choices=_choices(TRANSPORTATION_TYPES), default='normal')
    trip_type = SelectField('Trip', choices=_choices(TRIP_TYPES), default='one_way')
    passenger_count = IntegerField('Passengers', default=0, validators=[Optional(), NumberRange(min=0)])
    weather_condition = StringField('Weather', validators=[Optional(), Length(max=50)])
    special_notes = TextAreaField('Notes', validators=[Optional()])


class DuplicateCheckForm(FlaskForm):
    class Meta:
        csrf = False

    transportation_date = DateField('Date', validators=[DataRequired()])
    driver_id = IntegerField('Driver', validators=[DataRequired()])
    route_id = IntegerField('Route', validators=[Optional()])
    user_id = IntegerField('Service user', validators=[Optional()])


class TimeRecordForm(FlaskForm):
    time = TimeField('Time', format=TIME_FORMATS, validators=[DataRequired(message='Time is required')])
    status = SelectField('Status', choices=[('', '')] + _choices(STATUSES), default='', validators=[Optional()])
    odometer = IntegerField('Odometer', validators=[Optional(), NumberRange(min=0)])
    notes = TextAreaField('Notes', validators=[Optional()])
    oil_change = BooleanField('Oil changed')


class CompletionForm(FlaskForm):
    end_odometer = IntegerField('End odometer', validators=[InputRequired(), NumberRange(min=0)])
    vehicle_id = IntegerField('Vehicle', validators=[Optional()])


class OdometerCorrectionForm(FlaskForm):
    start_odometer = IntegerField('Start odometer', validators=[Optional(), NumberRange(min=0)])
    end_odometer = IntegerField('End odometer', validators=[Optional(), NumberRange(min=0)])


class DetailForm(Form):
    """One passenger leg; validated per item of a JSON list, so no CSRF field."""
    user_id = IntegerField('Service user', validators=[Optional()])
    destination_id = IntegerField('Destination', validators=[DataRequired(message='Destination is required')])
    pickup_time = TimeField('Pickup', format=TIME_FORMATS, validators=[Optional()])
    arrival_time = TimeField('Arrival', format=TIME_FORMATS, validators=[Optional()])
    departure_time = TimeField('Departure', format=TIME_FORMATS, validators=[Optional()])
    drop_off_time = TimeField('Drop-off', format=TIME_FORMATS, validators=[Optional()])
    health_condition = StringField('Health', validators=[Optional(), Length(max=255)])
    behavior_notes = TextAreaField('Behaviour', validators=[Optional()])
    assistance_required = StringField('Assistance', validators=[Optional(), Length(max=255)])
    remarks = TextAreaField('Remarks', validators=[Optional()])
