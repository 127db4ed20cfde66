"""
Login accounts
Administrators sign in with email and password, drivers with their employee
number and a numeric PIN.  Both share the same lockout rules.
"""
from extensions import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime


class LoginSecurityMixin:
    """Failed-login counting and temporary lockout shared by every account type."""

    failed_login_attempts = db.Column(db.Integer, default=0, nullable=False)
    locked_until = db.Column(db.DateTime)
    last_login = db.Column(db.DateTime)

    def update_last_login(self):
        """Update the last login timestamp"""
        self.last_login = datetime.utcnow()
        db.session.commit()

    def is_locked(self):
        """Check if account is locked due to failed login attempts"""
        if self.locked_until and self.locked_until > datetime.utcnow():
            return True
        return False

    def record_failed_login(self):
        """Record a failed login attempt and lock if threshold exceeded"""
        from flask import current_app
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1

        max_attempts = current_app.config.get('MAX_LOGIN_ATTEMPTS', 5)
        lockout_duration = current_app.config.get('LOCKOUT_DURATION')

        if self.failed_login_attempts >= max_attempts and lockout_duration:
            self.locked_until = datetime.utcnow() + lockout_duration

        db.session.commit()

    def reset_failed_logins(self):
        """Reset failed login attempts after successful login"""
        self.failed_login_attempts = 0
        self.locked_until = None
        db.session.commit()


class Administrator(LoginSecurityMixin, UserMixin, db.Model):
    """Office staff account with access to master data and maintenance jobs."""
    __tablename__ = 'admin_users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    management_code_id = db.Column(db.Integer, db.ForeignKey('management_codes.id'), nullable=True, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    role = 'admin'

    def get_id(self):
        return f'admin:{self.id}'

    @property
    def is_admin(self):
        return True

    def set_password(self, password):
        """Hash and set the administrator's password"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if provided password matches the hash"""
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<Administrator {self.email}>'


class Driver(LoginSecurityMixin, UserMixin, db.Model):
    __tablename__ = 'drivers'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    employee_no = db.Column(db.String(20), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120))
    pin_hash = db.Column(db.String(255))
    driver_license_number = db.Column(db.String(30))
    management_code_id = db.Column(db.Integer, db.ForeignKey('management_codes.id'), nullable=True, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    management_code = db.relationship('ManagementCode')
    transportation_records = db.relationship('TransportationRecord', back_populates='driver', lazy=True)

    role = 'driver'

    def get_id(self):
        return f'driver:{self.id}'

    @property
    def is_admin(self):
        return False

    def set_pin(self, pin):
        self.pin_hash = generate_password_hash(pin)

    def check_pin(self, pin):
        # Drivers without a PIN cannot sign in
        if not self.pin_hash:
            return False
        return check_password_hash(self.pin_hash, pin)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'employee_no': self.employee_no,
            'management_code_id': self.management_code_id,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<Driver {self.employee_no}: {self.name}>'
