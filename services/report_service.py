"""
Report Service
==============
Trip counts and completion rates for the office reports: overall, per
driver, per vehicle, per route and per month.

Every figure counts transportation records in the requested date range
(inclusive) and management code.  A completion rate is the share of records
with status ``completed``, as a whole percentage rounded half up; a group
with no records has a rate of 0.  Records without a route are left out of the
per-route figures only.
"""
import logging

from sqlalchemy import case, extract, func

from extensions import db
from models.routes import Route
from models.transportation import STATUSES, TransportationRecord
from models.users import Driver
from models.vehicles import Vehicle

logger = logging.getLogger(__name__)


def completion_rate(completed, total):
    if not total:
        return 0
    return (completed * 100 + total // 2) // total


def _completed_count():
    return func.coalesce(
        func.sum(case((TransportationRecord.status == 'completed', 1), else_=0)), 0
    )


def _scoped(query, management_code_id, date_from, date_to):
    if management_code_id is not None:
        query = query.filter(TransportationRecord.management_code_id == management_code_id)
    if date_from:
        query = query.filter(TransportationRecord.transportation_date >= date_from)
    if date_to:
        query = query.filter(TransportationRecord.transportation_date <= date_to)
    return query


def _rows(rows, *keys):
    result = []
    for row in rows:
        *values, total, completed = row
        data = dict(zip(keys, values))
        data.update(
            total_trips=total,
            completed_trips=int(completed),
            completion_rate=completion_rate(int(completed), total),
        )
        result.append(data)
    return result


class ReportService:

    @staticmethod
    def status_counts(management_code_id=None, date_from=None, date_to=None):
        """Number of records per status, every status present (0 when unused)."""
        query = db.session.query(TransportationRecord.status, func.count(TransportationRecord.id))
        query = _scoped(query, management_code_id, date_from, date_to)
        counts = dict(query.group_by(TransportationRecord.status).all())
        return {status: counts.get(status, 0) for status in STATUSES}

    @staticmethod
    def by_driver(management_code_id=None, date_from=None, date_to=None):
        query = db.session.query(
            Driver.id, Driver.name,
            func.count(TransportationRecord.id), _completed_count(),
        ).join(TransportationRecord, TransportationRecord.driver_id == Driver.id)
        query = _scoped(query, management_code_id, date_from, date_to)
        rows = query.group_by(Driver.id, Driver.name).order_by(Driver.name).all()
        return _rows(rows, 'driver_id', 'driver_name')

    @staticmethod
    def by_vehicle(management_code_id=None, date_from=None, date_to=None):
        query = db.session.query(
            Vehicle.id, Vehicle.vehicle_no,
            func.count(TransportationRecord.id), _completed_count(),
        ).join(TransportationRecord, TransportationRecord.vehicle_id == Vehicle.id)
        query = _scoped(query, management_code_id, date_from, date_to)
        rows = query.group_by(Vehicle.id, Vehicle.vehicle_no).order_by(Vehicle.vehicle_no).all()
        return _rows(rows, 'vehicle_id', 'vehicle_no')

    @staticmethod
    def by_route(management_code_id=None, date_from=None, date_to=None):
        query = db.session.query(
            Route.id, Route.route_name,
            func.count(TransportationRecord.id), _completed_count(),
        ).join(TransportationRecord, TransportationRecord.route_id == Route.id)
        query = _scoped(query, management_code_id, date_from, date_to)
        rows = query.group_by(Route.id, Route.route_name).order_by(Route.display_order, Route.route_name).all()
        return _rows(rows, 'route_id', 'route_name')

    @staticmethod
    def by_month(management_code_id=None, date_from=None, date_to=None):
        """One row per calendar month with trips, oldest first; ``month`` is ``YYYY-MM``."""
        year = extract('year', TransportationRecord.transportation_date)
        month = extract('month', TransportationRecord.transportation_date)
        query = db.session.query(
            year, month,
            func.count(TransportationRecord.id), _completed_count(),
        )
        query = _scoped(query, management_code_id, date_from, date_to)
        rows = query.group_by(year, month).order_by(year, month).all()
        result = _rows(rows, 'year', 'month')
        for row in result:
            row['month'] = f"{int(row.pop('year')):04d}-{int(row['month']):02d}"
        return result

    @staticmethod
    def summary(management_code_id=None, date_from=None, date_to=None):
        """Everything the reports page shows, in one dict."""
        scope = dict(management_code_id=management_code_id, date_from=date_from, date_to=date_to)
        statuses = ReportService.status_counts(**scope)
        total = sum(statuses.values())

        logger.info(f"report built: code={management_code_id} {date_from}..{date_to} total={total}")
        return {
            'date_from': date_from.isoformat() if date_from else None,
            'date_to': date_to.isoformat() if date_to else None,
            'total_trips': total,
            'status_counts': statuses,
            'completion_rate': completion_rate(statuses['completed'], total),
            'drivers': ReportService.by_driver(**scope),
            'vehicles': ReportService.by_vehicle(**scope),
            'routes': ReportService.by_route(**scope),
            'months': ReportService.by_month(**scope),
        }
