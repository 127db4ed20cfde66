import csv
import io
from flask import Response, abort, jsonify, request, session
from flask_login import current_user
from datetime import datetime
from . import transportation_bp
from .forms import (
    CompletionForm, DetailForm, DuplicateCheckForm, OdometerCorrectionForm,
    TimeRecordForm, TransportationForm,
)
from models.transportation import TransportationRecord
from models.users import Driver
from models.vehicles import Vehicle
from services.transportation_service import TransportationService
from utils.db_helpers import management_get_or_raise, management_query
from utils.permissions import admin_required
from utils.request_data import date_arg, request_formdata

EXPORT_COLUMNS = (
    'id', 'transportation_date', 'driver_name', 'vehicle_no', 'route_name',
    'transportation_type', 'trip_type', 'status', 'passenger_count', 'weather_condition',
    'start_time', 'end_time', 'start_odometer', 'end_odometer', 'distance',
    'special_notes',
)


def _form_errors(form):
    return jsonify({'success': False, 'errors': form.errors}), 400


def _get_record(record_id):
    """Fetch a record the signed-in account may work on."""
    record = management_get_or_raise(TransportationRecord, record_id)
    if not current_user.is_admin and record.driver_id != current_user.id:
        abort(403)
    return record


def _filtered_records():
    """Records visible to the signed-in account, filtered by query string, newest first"""
    query = management_query(TransportationRecord)
    if not current_user.is_admin:
        query = query.filter_by(driver_id=current_user.id)

    date_from = date_arg('from')
    date_to = date_arg('to')
    if date_from:
        query = query.filter(TransportationRecord.transportation_date >= date_from)
    if date_to:
        query = query.filter(TransportationRecord.transportation_date <= date_to)

    driver_id = request.args.get('driver_id', type=int)
    if driver_id:
        query = query.filter_by(driver_id=driver_id)
    vehicle_id = request.args.get('vehicle_id', type=int)
    if vehicle_id:
        query = query.filter_by(vehicle_id=vehicle_id)
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)

    return query.order_by(
        TransportationRecord.transportation_date.desc(),
        TransportationRecord.created_at.desc(),
    ).all()


@transportation_bp.route('/transportation')
def index():
    """Transportation records, newest first, filtered by query string"""
    return jsonify([r.to_dict() for r in _filtered_records()])


@transportation_bp.route('/transportation/export.csv')
def export_csv():
    """The same records as the list view, as a CSV download"""
    records = _filtered_records()

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for r in records:
        data = r.to_dict()
        data.update(
            driver_name=r.driver.name,
            vehicle_no=r.vehicle.vehicle_no,
            route_name=r.route.route_name if r.route else '',
        )
        writer.writerow(['' if data[c] is None else data[c] for c in EXPORT_COLUMNS])

    filename = f'transportation_records_{datetime.now():%Y%m%d}.csv'
    return Response(
        # BOM so spreadsheet apps detect UTF-8
        '\ufeff' + output.getvalue(),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


@transportation_bp.route('/transportation/check-duplicate')
def check_duplicate():
    form = DuplicateCheckForm(formdata=request.args)
    if not form.validate():
        return _form_errors(form)
    management_get_or_raise(Driver, form.driver_id.data)

    result = TransportationService.check_duplicate(
        form.transportation_date.data,
        form.driver_id.data,
        user_id=form.user_id.data,
        route_id=form.route_id.data,
    )
    return jsonify({
        'exists': result['exists'],
        'record': result['record'].to_dict() if result['record'] else None,
    })


@transportation_bp.route('/transportation', methods=['POST'])
def create():
    """Create a pending record; the start odometer is read from the vehicle"""
    form = TransportationForm(formdata=request_formdata())
    if not form.validate_on_submit():
        return _form_errors(form)

    data = {name: field.data for name, field in form._fields.items() if name != 'csrf_token'}
    if current_user.is_admin:
        if not data['driver_id'] or not data['vehicle_id']:
            return jsonify({'success': False, 'error': 'driver_id and vehicle_id are required'}), 400
    else:
        data['driver_id'] = current_user.id
        data['vehicle_id'] = data['vehicle_id'] or session.get('vehicle_id')
        if not data['vehicle_id']:
            return jsonify({'success': False, 'error': 'No vehicle selected for this shift'}), 400

    # Both must belong to the signed-in account's management code
    management_get_or_raise(Driver, data['driver_id'])
    management_get_or_raise(Vehicle, data['vehicle_id'])

    record = TransportationService.create(data)
    return jsonify({'success': True, 'record': record.to_dict()}), 201


@transportation_bp.route('/transportation/<int:record_id>')
def show(record_id):
    record = _get_record(record_id)
    return jsonify(record.to_dict(include_details=True))


@transportation_bp.route('/transportation/<int:record_id>/<any(start, end):phase>', methods=['POST'])
def record_time(record_id, phase):
    """Driver taps start or end of the trip"""
    _get_record(record_id)
    form = TimeRecordForm(formdata=request_formdata())
    if not form.validate_on_submit():
        return _form_errors(form)

    record = TransportationService.record_time(
        record_id,
        phase,
        form.time.data,
        status=form.status.data or None,
        odometer=form.odometer.data,
        notes=form.notes.data,
        oil_change=form.oil_change.data,
    )
    return jsonify({'success': True, 'record': record.to_dict()})


@transportation_bp.route('/transportation/<int:record_id>/complete', methods=['POST'])
def complete(record_id):
    record = _get_record(record_id)
    form = CompletionForm(formdata=request_formdata())
    if not form.validate_on_submit():
        return _form_errors(form)

    record = TransportationService.complete(
        record_id,
        form.end_odometer.data,
        form.vehicle_id.data or record.vehicle_id,
    )
    return jsonify({'success': True, 'record': record.to_dict()})


@transportation_bp.route('/transportation/<int:record_id>/retry-vehicle-sync', methods=['POST'])
def retry_vehicle_sync(record_id):
    _get_record(record_id)
    record = TransportationService.retry_vehicle_sync(record_id)
    return jsonify({'success': True, 'record': record.to_dict()})


@transportation_bp.route('/transportation/<int:record_id>/details', methods=['POST'])
def add_details(record_id):
    """Attach passenger legs; the body is a JSON list or ``{"details": [...]}``"""
    _get_record(record_id)
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        payload = payload.get('details')
    if not isinstance(payload, list) or not payload:
        return jsonify({'success': False, 'error': 'Expected a non-empty list of details'}), 400

    details = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            return jsonify({'success': False, 'error': f'Detail {index} is not an object'}), 400
        form = DetailForm(formdata=request_formdata(item))
        if not form.validate():
            return jsonify({'success': False, 'index': index, 'errors': form.errors}), 400
        details.append(form.data)

    rows = TransportationService.add_details(record_id, details)
    return jsonify({'success': True, 'details': [d.to_dict() for d in rows]}), 201


@transportation_bp.route('/transportation/<int:record_id>/odometer', methods=['PATCH'])
@admin_required
def update_odometer(record_id):
    _get_record(record_id)
    form = OdometerCorrectionForm(formdata=request_formdata())
    if not form.validate_on_submit():
        return _form_errors(form)

    record = TransportationService.update_odometer(
        record_id,
        start_odometer=form.start_odometer.data,
        end_odometer=form.end_odometer.data,
    )
    return jsonify({'success': True, 'record': record.to_dict()})


@transportation_bp.route('/transportation/<int:record_id>', methods=['DELETE'])
@admin_required
def delete(record_id):
    _get_record(record_id)
    TransportationService.delete(record_id)
    return jsonify({'success': True})
