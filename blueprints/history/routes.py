from flask import jsonify
from . import history_bp
from extensions import limiter
from services.transportation_service import TransportationService


@history_bp.route('/history/<code>')
@limiter.limit("30 per minute")
def lookup(code):
    """Trip history for a management code, details included"""
    records = TransportationService.history_for_code(code.strip())
    return jsonify({
        'code': code,
        'records': [
            dict(
                r.to_dict(include_details=True),
                driver_name=r.driver.name,
                vehicle_no=r.vehicle.vehicle_no,
            )
            for r in records
        ],
    })
