from flask_wtf import FlaskForm
from wtforms import IntegerField
from wtforms.validators import InputRequired, NumberRange, Optional


class OdometerForm(FlaskForm):
    current_odometer = IntegerField('Current odometer', validators=[InputRequired(), NumberRange(min=0)])
    last_oil_change_odometer = IntegerField('Last oil change', validators=[Optional(), NumberRange(min=0)])


class OilChangeForm(FlaskForm):
    odometer = IntegerField('Odometer at oil change', validators=[Optional(), NumberRange(min=0)])
