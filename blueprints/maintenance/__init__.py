from flask import Blueprint
from flask_login import login_required

maintenance_bp = Blueprint('maintenance', __name__)

# Section access (admins only) is enforced by utils.permissions
@maintenance_bp.before_request
@login_required
def require_login():
    pass

from . import routes
