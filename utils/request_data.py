"""Turn request bodies and query strings into values the views can use."""
from datetime import datetime

from flask import request
from werkzeug.datastructures import MultiDict

from services.exceptions import ValidationError


def request_formdata(payload=None):
    """Return form posts unchanged and JSON objects as a MultiDict.

    Null values are dropped so optional fields stay empty instead of failing
    their type conversion; nested lists and objects are left to the caller.
    """
    if payload is None:
        if not request.is_json:
            return request.form
        payload = request.get_json(silent=True) or {}
    return MultiDict({
        key: value for key, value in payload.items()
        if value is not None and not isinstance(value, (list, dict))
    })


def date_arg(name):
    """Read an optional ``YYYY-MM-DD`` query-string argument as a date."""
    value = request.args.get(name)
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f'{name} must use YYYY-MM-DD')
