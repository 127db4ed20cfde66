from flask import Blueprint
from flask_login import login_required

transportation_bp = Blueprint('transportation', __name__)

# Require authentication for all routes in this blueprint
@transportation_bp.before_request
@login_required
def require_login():
    pass

from . import routes
