from flask import jsonify
from . import maintenance_bp
from services.consolidation_service import ConsolidationService
from services.report_service import ReportService
from utils.db_helpers import get_management_code_id
from utils.request_data import date_arg


@maintenance_bp.route('/admin/consolidate', methods=['POST'])
def consolidate():
    """Merge duplicate transportation records (one run at a time)"""
    report = ConsolidationService.run_exclusive()
    status = 200 if report.success else 207
    return jsonify(report.to_dict()), status


@maintenance_bp.route('/admin/duplicates')
def duplicates():
    """Preview of the groups a consolidation run would merge"""
    groups = ConsolidationService.find_duplicate_groups()
    return jsonify([
        {
            'transportation_date': group[0].transportation_date.isoformat(),
            'driver_id': group[0].driver_id,
            'vehicle_id': group[0].vehicle_id,
            'survivor_id': group[0].id,
            'record_ids': [r.id for r in group],
        }
        for group in groups
    ])


@maintenance_bp.route('/admin/reports')
def reports():
    """Trip counts and completion rates for the account's management code"""
    return jsonify(ReportService.summary(
        management_code_id=get_management_code_id(),
        date_from=date_arg('from'),
        date_to=date_arg('to'),
    ))
