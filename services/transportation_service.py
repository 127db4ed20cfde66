"""
Transportation Service
======================
Lifecycle of a single transportation (trip) record: duplicate prevention,
creation with odometer capture, start/end time recording, completion, detail
rows and deletion.

Duplicate policy
----------------
A driver can only run one trip per day for a given route, and one per day
for a given service user.  Individual trips (several passengers picked up
ad hoc) are exempt, so any number of them may exist for the same day.

Completion
----------
Completing a trip touches two rows: the record (end reading, status) and the
vehicle (current reading).  The record is committed first with
``vehicle_sync_pending=True``; the vehicle write then clears the flag.  If the
vehicle write fails the record stays completed and flagged, and
``PartialCompletionError`` tells the caller to call ``retry_vehicle_sync()``.

Primary entry points (called from blueprints)
---------------------------------------------
  check_duplicate()     - look for a conflicting record
  create()              - insert a pending record, start reading captured from the vehicle
  record_time()         - driver taps start / end
  complete()            - close the trip and advance the vehicle odometer
  retry_vehicle_sync()  - repeat the vehicle half of a partial completion
  add_details()         - attach passenger legs (all or nothing)
  delete()              - remove a record and its details
  history_for_code()    - records visible through a management code
"""
import logging

from sqlalchemy.orm import joinedload, selectinload

from extensions import db
from models.management_codes import ManagementCode
from models.transportation import (
    STATUSES, TRANSPORTATION_TYPES, TRIP_TYPES,
    TransportationDetail, TransportationRecord,
)
from models.users import Driver
from models.vehicles import Vehicle
from services.exceptions import (
    DuplicateTripError, InvalidOdometerError, NotFoundError,
    PartialCompletionError, PersistenceError, ValidationError,
)
from services.odometer_service import OdometerService, validate_reading
from utils.db_helpers import get_or_raise, persistence_guard

logger = logging.getLogger(__name__)

DETAIL_FIELDS = (
    'user_id', 'destination_id',
    'pickup_time', 'arrival_time', 'departure_time', 'drop_off_time',
    'health_condition', 'behavior_notes', 'assistance_required', 'remarks',
)


def _check_order(start_odometer, end_odometer):
    if start_odometer is not None and end_odometer is not None and end_odometer < start_odometer:
        raise InvalidOdometerError(
            f'End odometer {end_odometer} is below start odometer {start_odometer}'
        )


def _passenger_count(value):
    try:
        count = int(value or 0)
    except (TypeError, ValueError):
        count = -1
    if count < 0:
        raise ValidationError(f'Passenger count must be a non-negative integer, got {value!r}')
    return count


def _check_choice(value, choices, field):
    if value not in choices:
        raise ValidationError(f"Invalid {field} {value!r}; expected one of {', '.join(choices)}")
    return value


class TransportationService:

    @staticmethod
    def check_duplicate(transportation_date, driver_id, user_id=None, route_id=None):
        """
        Look for a record that would conflict with a new trip.

        Route trips match on (date, driver, route); trips booked for a service
        user match on (date, driver, user).  With neither there is nothing to
        compare against and the check reports no duplicate.

        Returns:
            dict with ``exists`` (bool) and ``record`` (the match or None).
        """
        query = TransportationRecord.query.filter_by(
            transportation_date=transportation_date,
            driver_id=driver_id,
        )
        if route_id is not None:
            query = query.filter_by(route_id=route_id)
        elif user_id is not None:
            query = query.filter_by(user_id=user_id)
        else:
            return {'exists': False, 'record': None}

        with persistence_guard('duplicate check'):
            record = query.order_by(TransportationRecord.created_at).first()

        return {'exists': record is not None, 'record': record}

    @staticmethod
    def create(form):
        """
        Create a pending transportation record.

        Args:
            form: mapping with ``transportation_date``, ``driver_id``,
                  ``vehicle_id`` and optionally ``route_id``, ``user_id``,
                  ``transportation_type``, ``trip_type``, ``passenger_count``,
                  ``weather_condition``, ``special_notes``,
                  ``management_code_id``.  Any start or end reading in the
                  form is ignored; the start reading is taken from the vehicle.

        Raises:
            DuplicateTripError: a conflicting record exists (nothing written).
            NotFoundError:      driver or vehicle missing.
            PersistenceError:   the insert failed (rolled back).
        """
        transportation_type = _check_choice(
            form.get('transportation_type') or 'normal', TRANSPORTATION_TYPES, 'transportation type'
        )
        trip_type = _check_choice(form.get('trip_type') or 'one_way', TRIP_TYPES, 'trip type')
        passenger_count = _passenger_count(form.get('passenger_count'))

        transportation_date = form['transportation_date']
        driver = get_or_raise(Driver, form['driver_id'])
        vehicle_id = form['vehicle_id']

        if transportation_type != 'individual':
            existing = TransportationService.check_duplicate(
                transportation_date,
                driver.id,
                user_id=form.get('user_id'),
                route_id=form.get('route_id'),
            )
            if existing['exists']:
                logger.warning(
                    f"duplicate trip rejected: date={transportation_date} driver={driver.id} "
                    f"matches record {existing['record'].id}"
                )
                raise DuplicateTripError(existing['record'])

        start_odometer = OdometerService.current_odometer(vehicle_id)

        record = TransportationRecord(
            transportation_date=transportation_date,
            driver_id=driver.id,
            vehicle_id=vehicle_id,
            route_id=form.get('route_id'),
            user_id=form.get('user_id'),
            management_code_id=form.get('management_code_id') or driver.management_code_id,
            transportation_type=transportation_type,
            trip_type=trip_type,
            status='pending',
            start_odometer=start_odometer,
            passenger_count=passenger_count,
            weather_condition=form.get('weather_condition'),
            special_notes=form.get('special_notes'),
        )
        with persistence_guard('create transportation record'):
            db.session.add(record)
            db.session.commit()

        logger.info(
            f"record {record.id} created: {transportation_date} driver={driver.id} "
            f"vehicle={vehicle_id} start_odometer={start_odometer}"
        )
        return record

    @staticmethod
    def complete(record_id, end_odometer, vehicle_id):
        """
        Close a trip: end reading and status on the record, then the vehicle odometer.

        Calling again with the same reading leaves the same end state.  The
        vehicle must be the one the record was filed with, so a retry of the
        vehicle step always targets the vehicle named here.

        Raises:
            InvalidOdometerError:   reading negative or below the start reading.
            ValidationError:        vehicle_id is not the record's vehicle.
            NotFoundError:          record or vehicle missing.
            PersistenceError:       the record write failed (nothing changed).
            PartialCompletionError: the record was completed but the vehicle was not.
        """
        end_odometer = validate_reading(end_odometer)
        record = get_or_raise(TransportationRecord, record_id)
        get_or_raise(Vehicle, vehicle_id)
        if vehicle_id != record.vehicle_id:
            raise ValidationError(
                f'Record {record_id} was filed with vehicle {record.vehicle_id}, not {vehicle_id}'
            )
        _check_order(record.start_odometer, end_odometer)

        with persistence_guard(f'complete record {record_id}'):
            record.end_odometer = end_odometer
            record.status = 'completed'
            record.vehicle_sync_pending = True
            db.session.commit()

        logger.info(f"record {record_id} completed at {end_odometer}")
        return TransportationService._sync_vehicle(record, vehicle_id)

    @staticmethod
    def retry_vehicle_sync(record_id):
        """Apply a completed record's end reading to its vehicle if that step is still pending."""
        record = get_or_raise(TransportationRecord, record_id)
        if not record.vehicle_sync_pending:
            return record
        return TransportationService._sync_vehicle(record, record.vehicle_id)

    @staticmethod
    def _sync_vehicle(record, vehicle_id):
        record_id = record.id
        end_odometer = record.end_odometer
        try:
            OdometerService.set_odometer(vehicle_id, end_odometer, commit=False)
            with persistence_guard(f'clear vehicle sync flag on record {record_id}'):
                record.vehicle_sync_pending = False
                db.session.commit()
        except (PersistenceError, NotFoundError) as exc:
            logger.error(
                f"record {record_id}: vehicle {vehicle_id} odometer not updated to {end_odometer}: {exc}"
            )
            raise PartialCompletionError(record_id, vehicle_id, end_odometer, cause=exc) from exc
        return record

    @staticmethod
    def record_time(record_id, phase, at, status=None, odometer=None, notes=None, oil_change=False):
        """
        Record the driver's start or end time.

        Args:
            record_id:   ID of the TransportationRecord.
            phase:       'start' or 'end'.
            at:          datetime.time of the event.
            status:      Overrides the default status (in_progress / completed).
            odometer:    Optional reading for the matching end of the trip.
            notes:       Replaces ``special_notes`` when given.
            oil_change:  With phase 'end' and a reading, also records an oil change.
        """
        if phase not in ('start', 'end'):
            raise ValidationError(f"Unknown phase {phase!r}; expected 'start' or 'end'")
        if status is not None:
            _check_choice(status, STATUSES, 'status')
        if odometer is not None:
            odometer = validate_reading(odometer)

        record = get_or_raise(TransportationRecord, record_id)

        if phase == 'start':
            if odometer is not None:
                _check_order(odometer, record.end_odometer)
            record.start_time = at
            record.status = status or 'in_progress'
            if odometer is not None:
                record.start_odometer = odometer
        else:
            if odometer is not None:
                _check_order(record.start_odometer, odometer)
            record.end_time = at
            record.status = status or 'completed'
            if odometer is not None:
                record.end_odometer = odometer

        if notes is not None:
            record.special_notes = notes

        with persistence_guard(f'record {phase} time on record {record_id}'):
            db.session.commit()

        if oil_change and phase == 'end' and odometer is not None:
            OdometerService.record_oil_change(record.vehicle_id, odometer)

        return record

    @staticmethod
    def update_odometer(record_id, start_odometer=None, end_odometer=None):
        """Correct either reading on a record by hand."""
        record = get_or_raise(TransportationRecord, record_id)
        new_start = validate_reading(start_odometer) if start_odometer is not None else record.start_odometer
        new_end = validate_reading(end_odometer) if end_odometer is not None else record.end_odometer
        _check_order(new_start, new_end)

        with persistence_guard(f'update odometer on record {record_id}'):
            record.start_odometer = new_start
            record.end_odometer = new_end
            db.session.commit()
        return record

    @staticmethod
    def add_details(record_id, details):
        """
        Attach passenger legs to a record in one batch.

        Either every row is stored or none is.

        Args:
            record_id: ID of the owning TransportationRecord.
            details:   iterable of mappings; keys outside DETAIL_FIELDS are ignored.
        """
        record = get_or_raise(TransportationRecord, record_id)
        rows = [
            TransportationDetail(
                transportation_record_id=record.id,
                **{k: v for k, v in detail.items() if k in DETAIL_FIELDS}
            )
            for detail in details
        ]
        if not rows:
            return []

        with persistence_guard(f'insert {len(rows)} details for record {record_id}'):
            db.session.add_all(rows)
            db.session.commit()

        logger.info(f"record {record_id}: {len(rows)} detail row(s) added")
        return rows

    @staticmethod
    def delete(record_id):
        """Delete a record; its detail rows are removed with it."""
        record = get_or_raise(TransportationRecord, record_id)
        with persistence_guard(f'delete record {record_id}'):
            db.session.delete(record)
            db.session.commit()
        logger.info(f"record {record_id} deleted")

    @staticmethod
    def history_for_code(code):
        """Records filed under a management code, newest first, with their details."""
        management_code = ManagementCode.query.filter_by(code=code, is_active=True).first()
        if management_code is None:
            raise NotFoundError(ManagementCode, code)

        return TransportationRecord.query.options(
            joinedload(TransportationRecord.driver),
            joinedload(TransportationRecord.vehicle),
            selectinload(TransportationRecord.details),
        ).filter_by(
            management_code_id=management_code.id
        ).order_by(
            TransportationRecord.transportation_date.desc(),
            TransportationRecord.created_at.desc(),
        ).all()
