from extensions import db
from datetime import datetime, timezone


class ServiceUser(db.Model):
    """A person who rides with the service (not a login account)."""
    __tablename__ = 'service_users'

    id = db.Column(db.Integer, primary_key=True)
    management_code_id = db.Column(db.Integer, db.ForeignKey('management_codes.id'), nullable=True, index=True)
    user_no = db.Column(db.String(20), nullable=False, unique=True)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(30))
    address = db.Column(db.String(255))
    emergency_contact = db.Column(db.String(100))
    emergency_phone = db.Column(db.String(30))
    wheelchair_user = db.Column(db.Boolean, default=False, nullable=False)
    special_notes = db.Column(db.Text)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None))

    def __repr__(self):
        return f'<ServiceUser {self.user_no}: {self.name}>'
