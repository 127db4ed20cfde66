from flask import Blueprint

# Public: families look up trips with the management code they were given
history_bp = Blueprint('history', __name__)

from . import routes
