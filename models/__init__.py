# Models package - Import all models for Flask-SQLAlchemy

from models.job_locks import JobLock
from models.management_codes import ManagementCode
from models.routes import Route, Destination
from models.service_users import ServiceUser
from models.transportation import TransportationRecord, TransportationDetail
from models.users import Administrator, Driver
from models.vehicles import Vehicle

__all__ = [
    'Administrator',
    'Destination',
    'Driver',
    'JobLock',
    'ManagementCode',
    'Route',
    'ServiceUser',
    'TransportationDetail',
    'TransportationRecord',
    'Vehicle',
]
