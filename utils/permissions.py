"""
Permission helpers for role-level access control.

Sections map to URL prefixes.  Each section lists the roles allowed in it:

    key                URL prefix(es)              roles
    ─────────────────  ──────────────────────────  ──────────────
    transportation     /transportation             admin, driver
    vehicles           /vehicles                   admin, driver
    maintenance        /admin                      admin

``/history`` and the login routes are public.  Roles always come from the
account row loaded by Flask-Login, never from anything the client sends.
"""
from functools import wraps

from flask import request, abort
from flask_login import current_user

# Maps URL path-prefix → section key.
SECTION_MAP = [
    ('/transportation', 'transportation'),
    ('/vehicles',       'vehicles'),
    ('/admin',          'maintenance'),
]

SECTION_ROLES = {
    'transportation': {'admin', 'driver'},
    'vehicles':       {'admin', 'driver'},
    'maintenance':    {'admin'},
}


def section_for_path(path):
    """Return the section key matching *path*, or ``None`` for un-protected routes."""
    for prefix, key in SECTION_MAP:
        if path == prefix or path.startswith(prefix + '/'):
            return key
    return None


def can_access_section(section_key):
    if not current_user.is_authenticated:
        return False
    return current_user.role in SECTION_ROLES.get(section_key, set())


def check_section_access():
    """Call from a ``before_request`` hook to enforce role restrictions.

    Does nothing for anonymous users (``login_required`` handles those).
    Raises 403 if the account's role is not allowed in the section.
    """
    if not current_user.is_authenticated:
        return
    section = section_for_path(request.path)
    if section is None:
        return
    if not can_access_section(section):
        abort(403)


def admin_required(view):
    """Restrict a single view to administrators inside a shared section."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated or not current_user.is_admin:
            abort(403)
        return view(*args, **kwargs)
    return wrapped
