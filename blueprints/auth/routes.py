"""
Authentication Routes
Administrator and driver login/logout with lockout and rate limiting
"""
from flask import jsonify, session
from flask_login import login_user, logout_user, current_user, login_required
from datetime import datetime
from . import auth_bp
from .forms import LoginForm, DriverLoginForm
from models.users import Administrator, Driver
from models.vehicles import Vehicle
from extensions import limiter


def _locked_response(account):
    minutes_left = int((account.locked_until - datetime.utcnow()).total_seconds() / 60) + 1
    return jsonify({
        'success': False,
        'error': f'Account temporarily locked due to multiple failed login attempts. '
                 f'Try again in {minutes_left} minutes.'
    }), 423


def _failed_response(account):
    account.record_failed_login()
    if account.is_locked():
        return jsonify({'success': False, 'error': 'Account locked due to too many failed attempts.'}), 401
    return jsonify({'success': False, 'error': 'Invalid credentials.'}), 401


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    """Administrator login"""
    form = LoginForm()
    if not form.validate_on_submit():
        return jsonify({'success': False, 'errors': form.errors}), 400

    email = form.email.data.strip().lower()
    admin = Administrator.query.filter_by(email=email).first()

    if not admin:
        # Generic error to prevent account enumeration
        return jsonify({'success': False, 'error': 'Invalid credentials.'}), 401
    if admin.is_locked():
        return _locked_response(admin)
    if not admin.is_active:
        return jsonify({'success': False, 'error': 'This account has been deactivated.'}), 403
    if not admin.check_password(form.password.data):
        return _failed_response(admin)

    login_user(admin, remember=form.remember.data)
    admin.update_last_login()
    admin.reset_failed_logins()
    return jsonify({'success': True, 'role': 'admin', 'name': admin.name})


@auth_bp.route('/driver/login', methods=['POST'])
@limiter.limit("10 per minute")
def driver_login():
    """Driver login; the chosen vehicle is kept in the server-side session"""
    form = DriverLoginForm()
    if not form.validate_on_submit():
        return jsonify({'success': False, 'errors': form.errors}), 400

    driver = Driver.query.filter_by(employee_no=form.employee_no.data.strip()).first()

    if not driver:
        return jsonify({'success': False, 'error': 'Invalid credentials.'}), 401
    if driver.is_locked():
        return _locked_response(driver)
    if not driver.is_active:
        return jsonify({'success': False, 'error': 'This account has been deactivated.'}), 403
    if not driver.check_pin(form.pin.data):
        return _failed_response(driver)

    vehicle = None
    if form.vehicle_no.data:
        query = Vehicle.query.filter_by(vehicle_no=form.vehicle_no.data.strip(), is_active=True)
        if driver.management_code_id is not None:
            query = query.filter_by(management_code_id=driver.management_code_id)
        vehicle = query.first()
        if vehicle is None:
            return jsonify({'success': False, 'error': 'Unknown vehicle.'}), 400

    login_user(driver)
    driver.update_last_login()
    driver.reset_failed_logins()
    session['vehicle_id'] = vehicle.id if vehicle else None

    return jsonify({
        'success': True,
        'role': 'driver',
        'driver': driver.to_dict(),
        'vehicle': vehicle.to_dict() if vehicle else None,
    })


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    session.pop('vehicle_id', None)
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/me')
@login_required
def me():
    """Who is signed in, as the server sees it"""
    return jsonify({
        'role': current_user.role,
        'name': current_user.name,
        'management_code_id': current_user.management_code_id,
        'vehicle_id': session.get('vehicle_id'),
    })
