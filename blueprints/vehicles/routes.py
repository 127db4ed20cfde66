from flask import jsonify
from . import vehicles_bp
from .forms import OdometerForm, OilChangeForm
from models.vehicles import Vehicle
from services.odometer_service import OdometerService
from utils.db_helpers import management_get_or_raise, management_query
from utils.permissions import admin_required
from utils.request_data import request_formdata


@vehicles_bp.route('/vehicles')
def index():
    """Active vehicles with their oil-change status"""
    vehicles = management_query(Vehicle).filter_by(is_active=True).order_by(Vehicle.vehicle_no).all()
    return jsonify([
        dict(v.to_dict(), oil_change=OdometerService.oil_change_status(v))
        for v in vehicles
    ])


@vehicles_bp.route('/vehicles/oil-change')
def oil_change_overview():
    """Vehicles ordered by how urgently they need an oil change"""
    vehicles = management_query(Vehicle).filter_by(is_active=True).all()
    return jsonify(OdometerService.oil_change_overview(vehicles))


@vehicles_bp.route('/vehicles/<int:vehicle_id>/odometer')
def odometer(vehicle_id):
    vehicle = management_get_or_raise(Vehicle, vehicle_id)
    return jsonify({
        'vehicle_id': vehicle_id,
        'current_odometer': vehicle.current_odometer or 0,
    })


@vehicles_bp.route('/vehicles/<int:vehicle_id>/odometer', methods=['PUT'])
@admin_required
def set_odometer(vehicle_id):
    """Manual correction; the reading may go down"""
    management_get_or_raise(Vehicle, vehicle_id)
    form = OdometerForm(formdata=request_formdata())
    if not form.validate_on_submit():
        return jsonify({'success': False, 'errors': form.errors}), 400

    vehicle = OdometerService.set_odometer(
        vehicle_id,
        form.current_odometer.data,
        last_oil_change_odometer=form.last_oil_change_odometer.data,
    )
    return jsonify({'success': True, 'vehicle': vehicle.to_dict()})


@vehicles_bp.route('/vehicles/<int:vehicle_id>/oil-change', methods=['POST'])
def record_oil_change(vehicle_id):
    """Record an oil change, at the current reading unless one is given"""
    form = OilChangeForm(formdata=request_formdata())
    if not form.validate_on_submit():
        return jsonify({'success': False, 'errors': form.errors}), 400

    vehicle = management_get_or_raise(Vehicle, vehicle_id)
    odometer = form.odometer.data
    if odometer is None:
        odometer = vehicle.current_odometer or 0
    vehicle = OdometerService.record_oil_change(vehicle_id, odometer)
    return jsonify({'success': True, 'oil_change': OdometerService.oil_change_status(vehicle)})
