"""
Odometer Service
================
Reads and writes a vehicle's cumulative distance counter and derives the
oil-change schedule from it.

The counter only moves forward in normal operation (trip completion), but
``set_odometer`` deliberately allows any non-negative value so the office can
correct a mistyped reading.
"""
import logging

from flask import current_app

from extensions import db
from models.vehicles import Vehicle
from services.exceptions import InvalidOdometerError
from utils.db_helpers import get_or_raise, persistence_guard

logger = logging.getLogger(__name__)


def validate_reading(value):
    try:
        reading = int(value)
    except (TypeError, ValueError):
        reading = -1
    if reading < 0:
        raise InvalidOdometerError(f'Odometer reading must be a non-negative integer, got {value!r}')
    return reading


class OdometerService:

    @staticmethod
    def current_odometer(vehicle_id):
        """Return the vehicle's current reading; a vehicle never read yet counts as 0."""
        vehicle = get_or_raise(Vehicle, vehicle_id)
        return vehicle.current_odometer or 0

    @staticmethod
    def set_odometer(vehicle_id, value, last_oil_change_odometer=None, commit=True):
        """
        Overwrite the vehicle's current reading.

        Args:
            vehicle_id:                ID of the Vehicle.
            value:                     New reading in km.
            last_oil_change_odometer:  Optional reading of the latest oil change.
            commit:                    Pass False to leave the commit to the caller.

        Returns:
            The updated Vehicle.
        """
        value = validate_reading(value)
        vehicle = get_or_raise(Vehicle, vehicle_id)

        with persistence_guard(f'update odometer of vehicle {vehicle_id}'):
            vehicle.current_odometer = value
            if last_oil_change_odometer is not None:
                vehicle.last_oil_change_odometer = validate_reading(last_oil_change_odometer)
            if commit:
                db.session.commit()
            else:
                db.session.flush()

        logger.info(f"vehicle {vehicle_id}: odometer set to {value}")
        return vehicle

    @staticmethod
    def record_oil_change(vehicle_id, odometer):
        """Store the reading at which the vehicle's oil was last changed."""
        odometer = validate_reading(odometer)
        vehicle = get_or_raise(Vehicle, vehicle_id)

        with persistence_guard(f'record oil change of vehicle {vehicle_id}'):
            vehicle.last_oil_change_odometer = odometer
            db.session.commit()

        logger.info(f"vehicle {vehicle_id}: oil change recorded at {odometer}")
        return vehicle

    @staticmethod
    def oil_change_status(vehicle):
        """
        Distance since the last oil change and what to do about it.

        Returns a dict with ``km_since_last_change``, ``next_change_at``,
        ``remaining_km`` and ``status`` ('ok', 'warning' or 'due').
        """
        interval = current_app.config.get('OIL_CHANGE_INTERVAL_KM', 5000)
        warning_ratio = current_app.config.get('OIL_CHANGE_WARNING_RATIO', 0.8)

        current = vehicle.current_odometer or 0
        last_change = vehicle.last_oil_change_odometer or 0
        km_since = max(0, current - last_change)
        next_change_at = last_change + interval

        if km_since >= interval:
            status = 'due'
        elif km_since >= interval * warning_ratio:
            status = 'warning'
        else:
            status = 'ok'

        return {
            'vehicle_id': vehicle.id,
            'vehicle_no': vehicle.vehicle_no,
            'current_odometer': current,
            'last_oil_change_odometer': vehicle.last_oil_change_odometer,
            'km_since_last_change': km_since,
            'next_change_at': next_change_at,
            'remaining_km': max(0, next_change_at - current),
            'status': status,
        }

    @staticmethod
    def oil_change_overview(vehicles=None):
        """Oil-change status for each active vehicle, most urgent first."""
        if vehicles is None:
            vehicles = Vehicle.query.filter_by(is_active=True).order_by(Vehicle.vehicle_no).all()
        urgency = {'due': 0, 'warning': 1, 'ok': 2}
        statuses = [OdometerService.oil_change_status(v) for v in vehicles]
        return sorted(statuses, key=lambda s: (urgency[s['status']], -s['km_since_last_change']))
