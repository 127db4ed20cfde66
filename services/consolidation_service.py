"""
Consolidation Service
=====================
Merges transportation records that were created more than once for the same
day, driver and vehicle (the outbound and return legs of a round trip used to
be filed separately).

For every (date, driver, vehicle) group with more than one record:

  1. The earliest created record survives; ties keep fetch order (id).
  2. The survivor becomes a round trip carrying the group's total passengers.
  3. Every other record hands its detail rows to the survivor and is deleted.

Each group is committed on its own.  A group that fails is rolled back,
logged and reported, and the remaining groups are still processed, so an
interrupted run never leaves a half-merged group behind.

Only one run may be active at a time; ``run_exclusive()`` guards the job with a
row in ``job_locks``.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from models.job_locks import JobLock
from models.transportation import TransportationRecord
from services.exceptions import ConsolidationInProgressError
from utils.db_helpers import persistence_guard

logger = logging.getLogger(__name__)

LOCK_NAME = 'consolidate_duplicates'


def _now():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _group_key(record):
    return (record.transportation_date, record.driver_id, record.vehicle_id)


@dataclass
class ConsolidationReport:
    """Outcome of one consolidation run."""

    groups_found: int = 0
    groups_consolidated: int = 0
    records_removed: int = 0
    details_moved: int = 0
    failures: list = field(default_factory=list)

    @property
    def success(self):
        return not self.failures

    def to_dict(self):
        return {
            'success': self.success,
            'groups_found': self.groups_found,
            'groups_consolidated': self.groups_consolidated,
            'records_removed': self.records_removed,
            'details_moved': self.details_moved,
            'failures': self.failures,
            'message': f'Consolidated {self.groups_consolidated} duplicate group(s)',
        }


class ConsolidationService:

    @staticmethod
    def find_duplicate_groups():
        """
        Return lists of records sharing (date, driver, vehicle), survivor first.

        Records are read newest date first and, within a date, oldest created
        first, so index 0 of each group is always the survivor.
        """
        records = TransportationRecord.query.order_by(
            TransportationRecord.transportation_date.desc(),
            TransportationRecord.created_at.asc(),
            TransportationRecord.id.asc(),
        ).all()

        groups = {}
        for record in records:
            groups.setdefault(_group_key(record), []).append(record)
        return [group for group in groups.values() if len(group) > 1]

    @staticmethod
    def consolidate_duplicates():
        """Merge every duplicate group; see the module docstring for the rules."""
        report = ConsolidationReport()
        groups = ConsolidationService.find_duplicate_groups()
        report.groups_found = len(groups)

        for group in groups:
            survivor, donors = group[0], group[1:]
            key = _group_key(survivor)
            survivor_id = survivor.id
            try:
                moved = ConsolidationService._merge_group(survivor, donors)
            except Exception as exc:
                # One bad group must not stop the rest of the batch
                db.session.rollback()
                logger.exception(f"consolidation of group {key} (survivor {survivor_id}) failed")
                report.failures.append({
                    'transportation_date': key[0].isoformat(),
                    'driver_id': key[1],
                    'vehicle_id': key[2],
                    'survivor_id': survivor_id,
                    'error': str(exc),
                })
                continue

            report.groups_consolidated += 1
            report.records_removed += len(donors)
            report.details_moved += moved
            logger.info(
                f"group {key}: kept record {survivor_id}, removed {len(donors)}, moved {moved} detail(s)"
            )

        logger.info(
            f"consolidation finished: {report.groups_consolidated}/{report.groups_found} groups, "
            f"{len(report.failures)} failure(s)"
        )
        return report

    @staticmethod
    def _merge_group(survivor, donors):
        """Fold *donors* into *survivor* and commit; returns the number of details moved."""
        group = [survivor] + donors
        survivor.trip_type = 'round_trip'
        survivor.passenger_count = sum(r.passenger_count or 0 for r in group)

        moved = 0
        for donor in donors:
            for detail in list(donor.details):
                detail.record = survivor
                moved += 1
            db.session.flush()
            db.session.delete(donor)

        db.session.commit()
        return moved

    # ------------------------------------------------------------------
    # Single-flight guard
    # ------------------------------------------------------------------

    @staticmethod
    def acquire_lock():
        """Take the consolidation lock, clearing a stale one first."""
        now = _now()
        ttl = current_app.config['CONSOLIDATION_LOCK_TTL']

        with persistence_guard('clear stale consolidation lock'):
            JobLock.query.filter(
                JobLock.name == LOCK_NAME,
                JobLock.expires_at < now,
            ).delete(synchronize_session=False)
            db.session.commit()

        if db.session.get(JobLock, LOCK_NAME) is not None:
            raise ConsolidationInProgressError('Duplicate consolidation is already running')

        # The primary key still rejects a run that started since the check
        try:
            db.session.add(JobLock(name=LOCK_NAME, acquired_at=now, expires_at=now + ttl))
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConsolidationInProgressError('Duplicate consolidation is already running')

    @staticmethod
    def release_lock():
        with persistence_guard('release consolidation lock'):
            JobLock.query.filter_by(name=LOCK_NAME).delete(synchronize_session=False)
            db.session.commit()

    @staticmethod
    def run_exclusive():
        """Run ``consolidate_duplicates()`` unless another run holds the lock."""
        ConsolidationService.acquire_lock()
        try:
            return ConsolidationService.consolidate_duplicates()
        finally:
            ConsolidationService.release_lock()
