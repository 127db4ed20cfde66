"""
Errors raised by the transportation services.

Every service failure derives from ``TransportError`` so blueprints can map
the whole family to JSON responses in one handler.  Store failures are never
retried here; callers decide whether to try again.
"""


class TransportError(Exception):
    """Base class for service-level failures."""

    status_code = 500
    code = 'TRANSPORT_ERROR'

    def to_dict(self):
        return {'code': self.code, 'message': str(self)}


class NotFoundError(TransportError):
    status_code = 404
    code = 'NOT_FOUND'

    def __init__(self, model, record_id):
        self.model = model
        self.record_id = record_id
        name = getattr(model, '__name__', model)
        super().__init__(f'{name} {record_id} not found')


class DuplicateTripError(TransportError):
    """Creation blocked because a matching record already exists."""

    status_code = 409
    code = 'DUPLICATE_TRIP'

    def __init__(self, record):
        self.record = record
        super().__init__(
            f'A transportation record already exists for {record.transportation_date} '
            f'and driver {record.driver_id} (record {record.id})'
        )

    def to_dict(self):
        data = super().to_dict()
        data['existing_record'] = self.record.to_dict()
        return data


class PersistenceError(TransportError):
    """The database rejected a write or read; wraps the SQLAlchemy error."""

    code = 'PERSISTENCE_ERROR'

    def __init__(self, action, cause):
        self.action = action
        self.cause = cause
        super().__init__(f'{action} failed: {cause}')


class PartialCompletionError(TransportError):
    """The record was completed but the vehicle odometer was not advanced."""

    status_code = 502
    code = 'PARTIAL_COMPLETION'

    def __init__(self, record_id, vehicle_id, end_odometer, cause=None):
        self.record_id = record_id
        self.vehicle_id = vehicle_id
        self.end_odometer = end_odometer
        self.cause = cause
        super().__init__(
            f'Record {record_id} completed at {end_odometer} km but vehicle '
            f'{vehicle_id} was not updated'
        )

    def to_dict(self):
        data = super().to_dict()
        data.update({
            'record_id': self.record_id,
            'vehicle_id': self.vehicle_id,
            'end_odometer': self.end_odometer,
            'retry': f'/transportation/{self.record_id}/retry-vehicle-sync',
        })
        return data


class ValidationError(TransportError, ValueError):
    """Input the services refuse before touching the database."""

    status_code = 400
    code = 'VALIDATION_ERROR'


class InvalidOdometerError(ValidationError):
    code = 'INVALID_ODOMETER'


class ConsolidationInProgressError(TransportError):
    status_code = 409
    code = 'CONSOLIDATION_RUNNING'
