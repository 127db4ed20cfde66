"""
Tests for TransportationService: duplicate prevention, creation, completion,
time recording, detail rows, deletion and management-code history.
"""
from datetime import date, time

import pytest

from extensions import db
from models.transportation import TransportationDetail, TransportationRecord
from models.vehicles import Vehicle
from services.exceptions import (
    DuplicateTripError, InvalidOdometerError, NotFoundError,
    PartialCompletionError, PersistenceError, ValidationError,
)
from services.odometer_service import OdometerService
from services.transportation_service import TransportationService

TRIP_DATE = date(2024, 1, 10)


def _form(driver, vehicle, **extra):
    form = {
        'transportation_date': TRIP_DATE,
        'driver_id': driver.id,
        'vehicle_id': vehicle.id,
    }
    form.update(extra)
    return form


# ---------------------------------------------------------------------------
# check_duplicate()
# ---------------------------------------------------------------------------

class TestCheckDuplicate:
    def test_no_route_and_no_user_never_matches(self, app, driver, vehicle, make_record):
        make_record(driver, vehicle)
        result = TransportationService.check_duplicate(TRIP_DATE, driver.id)
        assert result == {'exists': False, 'record': None}

    def test_matches_same_route(self, app, driver, vehicle, route, make_record):
        existing = make_record(driver, vehicle, route_id=route.id)
        result = TransportationService.check_duplicate(TRIP_DATE, driver.id, route_id=route.id)
        assert result['exists'] is True
        assert result['record'].id == existing.id

    def test_matches_same_service_user(self, app, driver, vehicle, service_user, make_record):
        existing = make_record(driver, vehicle, user_id=service_user.id)
        result = TransportationService.check_duplicate(TRIP_DATE, driver.id, user_id=service_user.id)
        assert result['exists'] is True
        assert result['record'].id == existing.id

    def test_other_day_is_not_a_duplicate(self, app, driver, vehicle, route, make_record):
        make_record(driver, vehicle, route_id=route.id)
        result = TransportationService.check_duplicate(date(2024, 1, 11), driver.id, route_id=route.id)
        assert result['exists'] is False

    def test_other_driver_is_not_a_duplicate(self, app, driver, other_driver, vehicle, route, make_record):
        make_record(driver, vehicle, route_id=route.id)
        result = TransportationService.check_duplicate(TRIP_DATE, other_driver.id, route_id=route.id)
        assert result['exists'] is False


# ---------------------------------------------------------------------------
# create()
# ---------------------------------------------------------------------------

class TestCreate:
    def test_start_odometer_taken_from_vehicle(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        assert record.start_odometer == 1200
        assert record.end_odometer is None
        assert record.status == 'pending'

    def test_supplied_readings_are_ignored(self, app, driver, vehicle):
        """Only the vehicle decides where a trip starts."""
        record = TransportationService.create(
            _form(driver, vehicle, start_odometer=9999, end_odometer=1300)
        )
        assert record.start_odometer == 1200
        assert record.end_odometer is None

    def test_vehicle_never_read_starts_at_zero(self, app, driver, management_code):
        van = Vehicle(vehicle_no='NEW-1', management_code_id=management_code.id)
        db.session.add(van)
        db.session.commit()

        record = TransportationService.create(_form(driver, van))
        assert record.start_odometer == 0

    def test_management_code_defaults_to_drivers(self, app, driver, vehicle, management_code):
        record = TransportationService.create(_form(driver, vehicle))
        assert record.management_code_id == management_code.id

    def test_route_duplicate_rejected(self, app, driver, vehicle, route):
        first = TransportationService.create(_form(driver, vehicle, route_id=route.id, passenger_count=3))

        with pytest.raises(DuplicateTripError) as exc_info:
            TransportationService.create(_form(driver, vehicle, route_id=route.id, passenger_count=5))

        assert exc_info.value.record.id == first.id
        assert TransportationRecord.query.count() == 1, "the rejected trip must not be stored"
        assert db.session.get(TransportationRecord, first.id).passenger_count == 3, \
            "the existing record must be left untouched"

    def test_service_user_duplicate_rejected(self, app, driver, vehicle, service_user):
        TransportationService.create(_form(driver, vehicle, user_id=service_user.id, transportation_type='medical'))
        with pytest.raises(DuplicateTripError):
            TransportationService.create(_form(driver, vehicle, user_id=service_user.id))

    def test_individual_trips_never_duplicate(self, app, driver, vehicle, route):
        for _ in range(3):
            TransportationService.create(
                _form(driver, vehicle, route_id=route.id, transportation_type='individual')
            )
        assert TransportationRecord.query.count() == 3

    def test_unknown_driver_raises(self, app, vehicle):
        with pytest.raises(NotFoundError):
            TransportationService.create({
                'transportation_date': TRIP_DATE, 'driver_id': 999, 'vehicle_id': vehicle.id,
            })

    def test_unknown_vehicle_raises(self, app, driver):
        with pytest.raises(NotFoundError):
            TransportationService.create({
                'transportation_date': TRIP_DATE, 'driver_id': driver.id, 'vehicle_id': 999,
            })
        assert TransportationRecord.query.count() == 0

    def test_invalid_type_rejected(self, app, driver, vehicle):
        with pytest.raises(ValidationError):
            TransportationService.create(_form(driver, vehicle, transportation_type='taxi'))

    def test_negative_passenger_count_rejected(self, app, driver, vehicle):
        with pytest.raises(ValidationError):
            TransportationService.create(_form(driver, vehicle, passenger_count=-1))

    def test_non_numeric_passenger_count_rejected(self, app, driver, vehicle):
        with pytest.raises(ValidationError):
            TransportationService.create(_form(driver, vehicle, passenger_count='three'))
        assert TransportationRecord.query.count() == 0


# ---------------------------------------------------------------------------
# complete() and retry_vehicle_sync()
# ---------------------------------------------------------------------------

class TestComplete:
    def test_completes_record_and_advances_vehicle(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))

        TransportationService.complete(record.id, 1500, vehicle.id)

        record = db.session.get(TransportationRecord, record.id)
        assert record.status == 'completed'
        assert record.end_odometer == 1500
        assert record.distance == 300
        assert record.vehicle_sync_pending is False
        assert db.session.get(Vehicle, vehicle.id).current_odometer == 1500

    def test_completing_twice_gives_same_state(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        TransportationService.complete(record.id, 1500, vehicle.id)
        TransportationService.complete(record.id, 1500, vehicle.id)

        assert db.session.get(TransportationRecord, record.id).end_odometer == 1500
        assert db.session.get(Vehicle, vehicle.id).current_odometer == 1500

    def test_end_below_start_rejected(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))

        with pytest.raises(InvalidOdometerError):
            TransportationService.complete(record.id, 1100, vehicle.id)

        assert db.session.get(TransportationRecord, record.id).status == 'pending'
        assert db.session.get(Vehicle, vehicle.id).current_odometer == 1200

    def test_negative_reading_rejected(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        with pytest.raises(InvalidOdometerError):
            TransportationService.complete(record.id, -5, vehicle.id)

    def test_missing_record_raises(self, app, vehicle):
        with pytest.raises(NotFoundError):
            TransportationService.complete(999, 1500, vehicle.id)

    def test_other_vehicle_rejected(self, app, driver, vehicle, management_code):
        """Completion may only advance the vehicle the trip was filed with."""
        spare = Vehicle(vehicle_no='SHIN-202', current_odometer=800, management_code_id=management_code.id)
        db.session.add(spare)
        db.session.commit()
        record = TransportationService.create(_form(driver, vehicle))

        with pytest.raises(ValidationError):
            TransportationService.complete(record.id, 1500, spare.id)

        assert db.session.get(TransportationRecord, record.id).status == 'pending'
        assert db.session.get(Vehicle, spare.id).current_odometer == 800
        assert db.session.get(Vehicle, vehicle.id).current_odometer == 1200

    def test_missing_vehicle_leaves_record_alone(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        with pytest.raises(NotFoundError):
            TransportationService.complete(record.id, 1500, 999)
        assert db.session.get(TransportationRecord, record.id).status == 'pending'

    def test_vehicle_failure_reports_partial_completion(self, app, driver, vehicle, monkeypatch):
        record = TransportationService.create(_form(driver, vehicle))

        def broken_set_odometer(vehicle_id, value, last_oil_change_odometer=None, commit=True):
            raise PersistenceError('update vehicle odometer', RuntimeError('database is locked'))

        monkeypatch.setattr(OdometerService, 'set_odometer', staticmethod(broken_set_odometer))

        with pytest.raises(PartialCompletionError) as exc_info:
            TransportationService.complete(record.id, 1500, vehicle.id)

        assert exc_info.value.record_id == record.id
        assert exc_info.value.to_dict()['retry'] == f'/transportation/{record.id}/retry-vehicle-sync'

        record = db.session.get(TransportationRecord, record.id)
        assert record.status == 'completed', "the record half of the completion is kept"
        assert record.vehicle_sync_pending is True
        assert db.session.get(Vehicle, vehicle.id).current_odometer == 1200

        monkeypatch.undo()
        TransportationService.retry_vehicle_sync(record.id)

        assert db.session.get(TransportationRecord, record.id).vehicle_sync_pending is False
        assert db.session.get(Vehicle, vehicle.id).current_odometer == 1500

    def test_retry_without_pending_sync_is_a_no_op(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        TransportationService.complete(record.id, 1500, vehicle.id)
        OdometerService.set_odometer(vehicle.id, 1600)

        TransportationService.retry_vehicle_sync(record.id)

        assert db.session.get(Vehicle, vehicle.id).current_odometer == 1600, \
            "a finished sync must not be replayed over a later reading"


# ---------------------------------------------------------------------------
# record_time() and update_odometer()
# ---------------------------------------------------------------------------

class TestRecordTime:
    def test_start_sets_time_and_in_progress(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        TransportationService.record_time(record.id, 'start', time(8, 30))

        record = db.session.get(TransportationRecord, record.id)
        assert record.start_time == time(8, 30)
        assert record.status == 'in_progress'

    def test_end_with_reading_and_oil_change(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        TransportationService.record_time(
            record.id, 'end', time(9, 15), odometer=1260, notes='Heavy traffic', oil_change=True,
        )

        record = db.session.get(TransportationRecord, record.id)
        assert record.end_time == time(9, 15)
        assert record.status == 'completed'
        assert record.end_odometer == 1260
        assert record.special_notes == 'Heavy traffic'
        assert db.session.get(Vehicle, vehicle.id).last_oil_change_odometer == 1260

    def test_explicit_status_wins(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        TransportationService.record_time(record.id, 'end', time(9, 0), status='cancelled')
        assert db.session.get(TransportationRecord, record.id).status == 'cancelled'

    def test_end_reading_below_start_rejected(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        with pytest.raises(InvalidOdometerError):
            TransportationService.record_time(record.id, 'end', time(9, 0), odometer=1000)

    def test_unknown_phase_rejected(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        with pytest.raises(ValidationError):
            TransportationService.record_time(record.id, 'lunch', time(12, 0))

    def test_update_odometer_corrects_readings(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        TransportationService.update_odometer(record.id, start_odometer=1150, end_odometer=1250)

        record = db.session.get(TransportationRecord, record.id)
        assert (record.start_odometer, record.end_odometer) == (1150, 1250)

    def test_update_odometer_keeps_order(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        with pytest.raises(InvalidOdometerError):
            TransportationService.update_odometer(record.id, end_odometer=100)


# ---------------------------------------------------------------------------
# add_details() and delete()
# ---------------------------------------------------------------------------

class TestDetails:
    def test_adds_all_rows(self, app, driver, vehicle, destination, service_user):
        record = TransportationService.create(_form(driver, vehicle))
        rows = TransportationService.add_details(record.id, [
            {'user_id': service_user.id, 'destination_id': destination.id, 'pickup_time': time(8, 5)},
            {'user_id': None, 'destination_id': destination.id, 'remarks': 'Escort'},
        ])

        assert len(rows) == 2
        assert TransportationDetail.query.filter_by(transportation_record_id=record.id).count() == 2

    def test_unknown_keys_are_ignored(self, app, driver, vehicle, destination):
        record = TransportationService.create(_form(driver, vehicle))
        rows = TransportationService.add_details(record.id, [
            {'destination_id': destination.id, 'transportation_record_id': 12345, 'colour': 'blue'},
        ])
        assert rows[0].transportation_record_id == record.id

    def test_empty_list_writes_nothing(self, app, driver, vehicle):
        record = TransportationService.create(_form(driver, vehicle))
        assert TransportationService.add_details(record.id, []) == []

    def test_batch_is_all_or_nothing(self, app, driver, vehicle, destination):
        record = TransportationService.create(_form(driver, vehicle))

        with pytest.raises(PersistenceError):
            TransportationService.add_details(record.id, [
                {'destination_id': destination.id},
                {'destination_id': 9999},  # no such destination
            ])

        assert TransportationDetail.query.count() == 0, \
            "a failing row must roll back the whole batch"

    def test_missing_record_raises(self, app, destination):
        with pytest.raises(NotFoundError):
            TransportationService.add_details(999, [{'destination_id': destination.id}])

    def test_delete_removes_details(self, app, driver, vehicle, destination):
        record = TransportationService.create(_form(driver, vehicle))
        TransportationService.add_details(record.id, [
            {'destination_id': destination.id}, {'destination_id': destination.id},
        ])

        TransportationService.delete(record.id)

        assert db.session.get(TransportationRecord, record.id) is None
        assert TransportationDetail.query.count() == 0

    def test_delete_missing_record_raises(self, app):
        with pytest.raises(NotFoundError):
            TransportationService.delete(999)


# ---------------------------------------------------------------------------
# history_for_code()
# ---------------------------------------------------------------------------

class TestHistory:
    def test_newest_first(self, app, driver, vehicle, make_record):
        older = make_record(driver, vehicle, transportation_date=date(2024, 1, 9))
        newer = make_record(driver, vehicle, transportation_date=date(2024, 1, 10))

        records = TransportationService.history_for_code('SUNRISE1')
        assert [r.id for r in records] == [newer.id, older.id]

    def test_other_codes_excluded(self, app, driver, vehicle, make_record):
        from models.management_codes import ManagementCode
        other = ManagementCode(code='OTHER001', organization_name='Elsewhere')
        db.session.add(other)
        db.session.commit()
        make_record(driver, vehicle)

        assert TransportationService.history_for_code('OTHER001') == []

    def test_unknown_code_raises(self, app):
        with pytest.raises(NotFoundError):
            TransportationService.history_for_code('NOPE')

    def test_inactive_code_raises(self, app, management_code):
        management_code.is_active = False
        db.session.commit()
        with pytest.raises(NotFoundError):
            TransportationService.history_for_code('SUNRISE1')
