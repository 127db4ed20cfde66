"""
Tests for ReportService: completion rates, per-driver, per-vehicle, per-route
and monthly figures, date ranges and management-code scoping.
"""
from datetime import date

import pytest

from extensions import db
from models.management_codes import ManagementCode
from models.routes import Route
from models.transportation import TransportationRecord
from models.users import Driver
from models.vehicles import Vehicle
from services.report_service import ReportService, completion_rate


@pytest.fixture
def week(driver, other_driver, vehicle, route, make_record):
    """Four trips in January and one in February, three of them completed."""
    make_record(driver, vehicle, route_id=route.id, status='completed')
    make_record(driver, vehicle, transportation_date=date(2024, 1, 11), route_id=route.id, status='completed')
    make_record(driver, vehicle, transportation_date=date(2024, 1, 12), status='pending')
    make_record(other_driver, vehicle, transportation_date=date(2024, 1, 12), status='cancelled')
    make_record(other_driver, vehicle, transportation_date=date(2024, 2, 1), route_id=route.id,
                status='completed')


# ---------------------------------------------------------------------------
# completion_rate()
# ---------------------------------------------------------------------------

class TestCompletionRate:
    @pytest.mark.parametrize('completed, total, expected', [
        (1, 3, 33),
        (2, 3, 67),
        (1, 2, 50),
        (1, 8, 13),
        (3, 3, 100),
    ])
    def test_whole_percent_rounded_half_up(self, completed, total, expected):
        assert completion_rate(completed, total) == expected

    def test_no_trips_is_zero(self):
        assert completion_rate(0, 0) == 0


# ---------------------------------------------------------------------------
# Breakdowns
# ---------------------------------------------------------------------------

class TestBreakdowns:
    def test_status_counts_list_every_status(self, app, week):
        assert ReportService.status_counts() == {
            'pending': 1, 'in_progress': 0, 'completed': 3, 'cancelled': 1,
        }

    def test_status_counts_on_empty_table(self, app):
        assert set(ReportService.status_counts().values()) == {0}

    def test_by_driver(self, app, week, driver, other_driver):
        rows = {r['driver_name']: r for r in ReportService.by_driver()}

        taro = rows['Taro Suzuki']
        assert taro['driver_id'] == driver.id
        assert (taro['total_trips'], taro['completed_trips'], taro['completion_rate']) == (3, 2, 67)

        hanako = rows['Hanako Sato']
        assert (hanako['total_trips'], hanako['completed_trips'], hanako['completion_rate']) == (2, 1, 50)

    def test_drivers_sorted_by_name(self, app, week):
        assert [r['driver_name'] for r in ReportService.by_driver()] == ['Hanako Sato', 'Taro Suzuki']

    def test_driver_without_trips_is_left_out(self, app, week, management_code):
        idle = Driver(name='Aoi Kato', employee_no='D003', management_code_id=management_code.id)
        idle.set_pin('4321')
        db.session.add(idle)
        db.session.commit()

        assert 'Aoi Kato' not in [r['driver_name'] for r in ReportService.by_driver()]

    def test_by_vehicle(self, app, week, vehicle):
        assert ReportService.by_vehicle() == [{
            'vehicle_id': vehicle.id,
            'vehicle_no': 'SHIN-101',
            'total_trips': 5,
            'completed_trips': 3,
            'completion_rate': 60,
        }]

    def test_by_route_skips_trips_without_route(self, app, week, route):
        rows = ReportService.by_route()
        assert rows == [{
            'route_id': route.id,
            'route_name': 'Morning North',
            'total_trips': 3,
            'completed_trips': 3,
            'completion_rate': 100,
        }]

    def test_routes_follow_display_order(self, app, driver, vehicle, route, make_record):
        first = Route(route_name='Z Evening', route_code='EV-1', display_order=-1)
        db.session.add(first)
        db.session.commit()
        make_record(driver, vehicle, route_id=route.id)
        make_record(driver, vehicle, route_id=first.id)

        assert [r['route_name'] for r in ReportService.by_route()] == ['Z Evening', 'Morning North']

    def test_by_month(self, app, week):
        months = ReportService.by_month()
        assert [m['month'] for m in months] == ['2024-01', '2024-02']
        assert (months[0]['total_trips'], months[0]['completed_trips']) == (4, 2)
        assert months[1]['completion_rate'] == 100
        assert 'year' not in months[0]


# ---------------------------------------------------------------------------
# Scope
# ---------------------------------------------------------------------------

class TestScope:
    def test_date_range_is_inclusive(self, app, week):
        counts = ReportService.status_counts(date_from=date(2024, 1, 11), date_to=date(2024, 1, 12))
        assert sum(counts.values()) == 3

    def test_open_ended_range(self, app, week):
        assert sum(ReportService.status_counts(date_from=date(2024, 2, 1)).values()) == 1
        assert sum(ReportService.status_counts(date_to=date(2024, 1, 10)).values()) == 1

    def test_other_management_code_is_excluded(self, app, week, management_code):
        other = ManagementCode(code='OTHER001', organization_name='Hillside Care Home')
        db.session.add(other)
        db.session.commit()
        driver = Driver(name='Jiro Ito', employee_no='D900', management_code_id=other.id)
        driver.set_pin('9999')
        van = Vehicle(vehicle_no='HILL-900', management_code_id=other.id)
        db.session.add_all([driver, van])
        db.session.commit()
        db.session.add(TransportationRecord(transportation_date=date(2024, 1, 10), driver_id=driver.id,
                                            vehicle_id=van.id, management_code_id=other.id,
                                            status='completed'))
        db.session.commit()

        mine = ReportService.summary(management_code_id=management_code.id)
        assert mine['total_trips'] == 5
        assert 'HILL-900' not in [v['vehicle_no'] for v in mine['vehicles']]

        theirs = ReportService.summary(management_code_id=other.id)
        assert theirs['total_trips'] == 1
        assert [d['driver_name'] for d in theirs['drivers']] == ['Jiro Ito']

        assert ReportService.summary()['total_trips'] == 6, "no code means every record"


# ---------------------------------------------------------------------------
# summary()
# ---------------------------------------------------------------------------

class TestSummary:
    def test_summary_totals(self, app, week):
        report = ReportService.summary(date_from=date(2024, 1, 1), date_to=date(2024, 1, 31))

        assert report['date_from'] == '2024-01-01'
        assert report['date_to'] == '2024-01-31'
        assert report['total_trips'] == 4
        assert report['status_counts']['completed'] == 2
        assert report['completion_rate'] == 50
        assert len(report['drivers']) == 2
        assert len(report['vehicles']) == 1
        assert [m['month'] for m in report['months']] == ['2024-01']

    def test_empty_summary(self, app):
        report = ReportService.summary()
        assert report['total_trips'] == 0
        assert report['completion_rate'] == 0
        assert report['date_from'] is None
        assert report['drivers'] == report['vehicles'] == report['routes'] == report['months'] == []
