from extensions import db
from datetime import datetime, timezone


class Vehicle(db.Model):
    __tablename__ = 'vehicles'

    id = db.Column(db.Integer, primary_key=True)
    management_code_id = db.Column(db.Integer, db.ForeignKey('management_codes.id'), nullable=True, index=True)
    vehicle_no = db.Column(db.String(20), nullable=False, unique=True)  # licence plate
    vehicle_name = db.Column(db.String(100))  # Hiace, Caravan
    vehicle_type = db.Column(db.String(50))  # minivan, wheelchair van
    capacity = db.Column(db.Integer)
    fuel_type = db.Column(db.String(20))
    wheelchair_accessible = db.Column(db.Boolean, default=False, nullable=False)

    # Odometer readings in km
    current_odometer = db.Column(db.Integer)
    last_oil_change_odometer = db.Column(db.Integer)

    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None))
    updated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None), onupdate=lambda: datetime.now(timezone.utc).replace(tzinfo=None))

    # Relationships
    transportation_records = db.relationship('TransportationRecord', back_populates='vehicle', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'vehicle_no': self.vehicle_no,
            'vehicle_name': self.vehicle_name,
            'vehicle_type': self.vehicle_type,
            'capacity': self.capacity,
            'wheelchair_accessible': self.wheelchair_accessible,
            'current_odometer': self.current_odometer,
            'last_oil_change_odometer': self.last_oil_change_odometer,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<Vehicle {self.vehicle_no}: {self.vehicle_name}>'
