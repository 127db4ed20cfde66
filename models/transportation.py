from extensions import db
from datetime import datetime, timezone


TRANSPORTATION_TYPES = ('normal', 'medical', 'emergency', 'outing', 'individual')
TRIP_TYPES = ('one_way', 'round_trip')
STATUSES = ('pending', 'in_progress', 'completed', 'cancelled')


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _time_str(value):
    return value.strftime('%H:%M:%S') if value else None


class TransportationRecord(db.Model):
    __tablename__ = 'transportation_records'
    __table_args__ = (
        db.CheckConstraint('passenger_count >= 0', name='ck_transportation_passenger_count'),
        db.CheckConstraint('start_odometer IS NULL OR start_odometer >= 0', name='ck_transportation_start_odometer'),
        db.CheckConstraint('end_odometer IS NULL OR end_odometer >= 0', name='ck_transportation_end_odometer'),
    )

    id = db.Column(db.Integer, primary_key=True)
    transportation_date = db.Column(db.Date, nullable=False, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('drivers.id'), nullable=False, index=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id'), nullable=False, index=True)
    route_id = db.Column(db.Integer, db.ForeignKey('routes.id'), nullable=True)
    # The service user a one-to-one trip was booked for
    user_id = db.Column(db.Integer, db.ForeignKey('service_users.id'), nullable=True)
    management_code_id = db.Column(db.Integer, db.ForeignKey('management_codes.id'), nullable=True, index=True)

    transportation_type = db.Column(db.String(20), nullable=False, default='normal')  # see TRANSPORTATION_TYPES
    trip_type = db.Column(db.String(20), nullable=False, default='one_way')  # one_way, round_trip
    status = db.Column(db.String(20), nullable=False, default='pending')  # see STATUSES

    # Odometer readings in km
    start_odometer = db.Column(db.Integer)
    end_odometer = db.Column(db.Integer)
    # Set between the record write and the vehicle write of a completion
    vehicle_sync_pending = db.Column(db.Boolean, default=False, nullable=False)

    passenger_count = db.Column(db.Integer, default=0, nullable=False)
    start_time = db.Column(db.Time)
    end_time = db.Column(db.Time)

    # Round trip legs
    outbound_start_time = db.Column(db.Time)
    outbound_end_time = db.Column(db.Time)
    return_start_time = db.Column(db.Time)
    return_end_time = db.Column(db.Time)
    outbound_passenger_count = db.Column(db.Integer, default=0)
    return_passenger_count = db.Column(db.Integer, default=0)

    weather_condition = db.Column(db.String(50))
    special_notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    driver = db.relationship('Driver', back_populates='transportation_records')
    vehicle = db.relationship('Vehicle', back_populates='transportation_records')
    route = db.relationship('Route')
    user = db.relationship('ServiceUser')
    management_code = db.relationship('ManagementCode')
    details = db.relationship('TransportationDetail', back_populates='record',
                              lazy=True, order_by='TransportationDetail.id',
                              cascade='all, delete-orphan', passive_deletes=True)

    @property
    def distance(self):
        """Kilometres driven, once both readings are known."""
        if self.start_odometer is None or self.end_odometer is None:
            return None
        return self.end_odometer - self.start_odometer

    def to_dict(self, include_details=False):
        data = {
            'id': self.id,
            'transportation_date': self.transportation_date.isoformat(),
            'driver_id': self.driver_id,
            'vehicle_id': self.vehicle_id,
            'route_id': self.route_id,
            'user_id': self.user_id,
            'management_code_id': self.management_code_id,
            'transportation_type': self.transportation_type,
            'trip_type': self.trip_type,
            'status': self.status,
            'start_odometer': self.start_odometer,
            'end_odometer': self.end_odometer,
            'distance': self.distance,
            'vehicle_sync_pending': self.vehicle_sync_pending,
            'passenger_count': self.passenger_count,
            'start_time': _time_str(self.start_time),
            'end_time': _time_str(self.end_time),
            'weather_condition': self.weather_condition,
            'special_notes': self.special_notes,
        }
        if include_details:
            data['details'] = [d.to_dict() for d in self.details]
        return data

    def __repr__(self):
        return f'<TransportationRecord {self.transportation_date}: driver={self.driver_id} vehicle={self.vehicle_id} {self.status}>'


class TransportationDetail(db.Model):
    """One passenger's leg within a transportation record."""
    __tablename__ = 'transportation_details'

    id = db.Column(db.Integer, primary_key=True)
    transportation_record_id = db.Column(
        db.Integer,
        db.ForeignKey('transportation_records.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    user_id = db.Column(db.Integer, db.ForeignKey('service_users.id'), nullable=True)
    destination_id = db.Column(db.Integer, db.ForeignKey('destinations.id'), nullable=False)

    pickup_time = db.Column(db.Time)
    arrival_time = db.Column(db.Time)
    departure_time = db.Column(db.Time)
    drop_off_time = db.Column(db.Time)

    health_condition = db.Column(db.String(255))
    behavior_notes = db.Column(db.Text)
    assistance_required = db.Column(db.String(255))
    remarks = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    record = db.relationship('TransportationRecord', back_populates='details')
    user = db.relationship('ServiceUser')
    destination = db.relationship('Destination')

    def to_dict(self):
        return {
            'id': self.id,
            'transportation_record_id': self.transportation_record_id,
            'user_id': self.user_id,
            'destination_id': self.destination_id,
            'pickup_time': _time_str(self.pickup_time),
            'arrival_time': _time_str(self.arrival_time),
            'departure_time': _time_str(self.departure_time),
            'drop_off_time': _time_str(self.drop_off_time),
            'health_condition': self.health_condition,
            'behavior_notes': self.behavior_notes,
            'assistance_required': self.assistance_required,
            'remarks': self.remarks,
        }

    def __repr__(self):
        return f'<TransportationDetail record={self.transportation_record_id} user={self.user_id}>'
