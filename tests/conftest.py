"""
Shared pytest fixtures for the welfare transport test suite.

All tests run against an in-memory SQLite database (TestingConfig) with
foreign keys switched on.  A single app context is pushed for the whole
session so that SQLAlchemy objects remain attached throughout.  After each
test, clean_db wipes all rows so tests are fully independent.
"""
from datetime import date

import pytest
from flask import g, request_started

from app import create_app
from extensions import db as _db


# ---------------------------------------------------------------------------
# Application / database lifecycle
# ---------------------------------------------------------------------------

@pytest.fixture(scope='session')
def app():
    """Create a test Flask application with an in-memory SQLite database."""
    application = create_app('testing')

    # Requests reuse the pushed app context, so g would carry one client's
    # login into the next request; make every request load its own user
    def forget_user(sender, **extra):
        g.pop('_login_user', None)
    request_started.connect(forget_user, application, weak=False)

    ctx = application.app_context()
    ctx.push()
    _db.create_all()
    yield application
    _db.session.remove()
    _db.drop_all()
    ctx.pop()


@pytest.fixture(autouse=True)
def clean_db(app):
    """Wipe every table after each test so tests never share state."""
    yield
    # The shared app context keeps Flask-Login's cached user on g
    g.pop('_login_user', None)
    _db.session.rollback()
    for table in reversed(_db.metadata.sorted_tables):
        _db.session.execute(table.delete())
    _db.session.commit()
    _db.session.expunge_all()


# ---------------------------------------------------------------------------
# Common model helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def management_code(app):
    from models.management_codes import ManagementCode
    code = ManagementCode(code='SUNRISE1', organization_name='Sunrise Day Centre')
    _db.session.add(code)
    _db.session.commit()
    return code


@pytest.fixture
def driver(app, management_code):
    from models.users import Driver
    d = Driver(name='Taro Suzuki', employee_no='D001', management_code_id=management_code.id)
    d.set_pin('1234')
    _db.session.add(d)
    _db.session.commit()
    return d


@pytest.fixture
def other_driver(app, management_code):
    from models.users import Driver
    d = Driver(name='Hanako Sato', employee_no='D002', management_code_id=management_code.id)
    d.set_pin('5678')
    _db.session.add(d)
    _db.session.commit()
    return d


@pytest.fixture
def admin(app, management_code):
    from models.users import Administrator
    a = Administrator(email='office@example.com', name='Office Admin',
                      management_code_id=management_code.id)
    a.set_password('TestPass1!')
    _db.session.add(a)
    _db.session.commit()
    return a


@pytest.fixture
def vehicle(app, management_code):
    from models.vehicles import Vehicle
    v = Vehicle(vehicle_no='SHIN-101', vehicle_name='Hiace', current_odometer=1200,
                last_oil_change_odometer=0, management_code_id=management_code.id)
    _db.session.add(v)
    _db.session.commit()
    return v


@pytest.fixture
def route(app):
    from models.routes import Route
    r = Route(route_name='Morning North', route_code='MN-1')
    _db.session.add(r)
    _db.session.commit()
    return r


@pytest.fixture
def destination(app, route):
    from models.routes import Destination
    d = Destination(route_id=route.id, name='Sunrise Day Centre', destination_type='facility')
    _db.session.add(d)
    _db.session.commit()
    return d


@pytest.fixture
def service_user(app, management_code):
    from models.service_users import ServiceUser
    u = ServiceUser(user_no='U001', name='Kenji Tanaka', management_code_id=management_code.id)
    _db.session.add(u)
    _db.session.commit()
    return u


@pytest.fixture
def make_record(app, management_code):
    """Insert a TransportationRecord directly, bypassing the service rules."""
    from models.transportation import TransportationRecord

    def _make(driver, vehicle, transportation_date=date(2024, 1, 10), created_at=None, **fields):
        record = TransportationRecord(
            transportation_date=transportation_date,
            driver_id=driver.id,
            vehicle_id=vehicle.id,
            management_code_id=management_code.id,
            **fields
        )
        if created_at is not None:
            record.created_at = created_at
        _db.session.add(record)
        _db.session.commit()
        return record
    return _make


# ---------------------------------------------------------------------------
# Logged-in clients
# ---------------------------------------------------------------------------

@pytest.fixture
def admin_client(app, admin):
    client = app.test_client()
    response = client.post('/login', json={'email': 'office@example.com', 'password': 'TestPass1!'})
    assert response.status_code == 200
    return client


@pytest.fixture
def driver_client(app, driver, vehicle):
    client = app.test_client()
    response = client.post('/driver/login', json={
        'employee_no': 'D001', 'pin': '1234', 'vehicle_no': 'SHIN-101',
    })
    assert response.status_code == 200
    return client
