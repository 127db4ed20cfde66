"""
Management codes group drivers, vehicles, service users and trip records
under one operating organisation.  The code itself doubles as the lookup
token families use to read trip history without logging in.
"""
import secrets
from datetime import datetime, timezone
from extensions import db


def generate_code():
    """Eight upper-case hex characters, e.g. ``'3FA91C0B'``."""
    return secrets.token_hex(4).upper()


class ManagementCode(db.Model):
    __tablename__ = 'management_codes'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, nullable=False, index=True, default=generate_code)
    organization_name = db.Column(db.String(100), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None), nullable=False)

    def __repr__(self):
        return f'<ManagementCode {self.code}: {self.organization_name}>'
