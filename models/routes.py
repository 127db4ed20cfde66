from extensions import db
from datetime import datetime, timezone


DESTINATION_TYPES = ('home', 'facility', 'medical', 'other')


class Route(db.Model):
    __tablename__ = 'routes'

    id = db.Column(db.Integer, primary_key=True)
    route_name = db.Column(db.String(100), nullable=False)
    route_code = db.Column(db.String(20), nullable=False, unique=True)
    start_location = db.Column(db.String(255))
    end_location = db.Column(db.String(255))
    estimated_minutes = db.Column(db.Integer)
    distance_km = db.Column(db.Numeric(6, 1))
    display_order = db.Column(db.Integer, default=0, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None))

    destinations = db.relationship('Destination', back_populates='route', lazy=True,
                                   order_by='Destination.display_order',
                                   cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Route {self.route_code}: {self.route_name}>'


class Destination(db.Model):
    __tablename__ = 'destinations'

    id = db.Column(db.Integer, primary_key=True)
    route_id = db.Column(db.Integer, db.ForeignKey('routes.id'), nullable=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    address = db.Column(db.String(255))
    destination_type = db.Column(db.String(20), nullable=False, default='other')  # see DESTINATION_TYPES
    display_order = db.Column(db.Integer, default=0, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None))

    route = db.relationship('Route', back_populates='destinations')

    def __repr__(self):
        return f'<Destination {self.name} ({self.destination_type})>'
