"""
Database helpers shared by the transportation services.

Usage
-----
::

    from utils.db_helpers import get_or_raise, persistence_guard

    vehicle = get_or_raise(Vehicle, vehicle_id)       # NotFoundError if missing

    with persistence_guard('update vehicle odometer'):
        vehicle.current_odometer = 1500
        db.session.commit()                          # PersistenceError on failure
"""
import logging
import sqlite3
from contextlib import contextmanager

from flask_login import current_user
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from services.exceptions import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)


@event.listens_for(Engine, 'connect')
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_or_raise(model, record_id):
    """Fetch *model* by primary key or raise ``NotFoundError``."""
    obj = db.session.get(model, record_id)
    if obj is None:
        raise NotFoundError(model, record_id)
    return obj


def get_management_code_id():
    """Return the signed-in account's ``management_code_id``, or ``None``."""
    if current_user.is_authenticated:
        return current_user.management_code_id
    return None


def management_query(model):
    """Return a query on *model* limited to the signed-in account's management code.

    Accounts without a management code (system administrators) see every row;
    anonymous requests see none.
    """
    if not hasattr(model, 'management_code_id'):
        raise AttributeError(
            f"management_query() called on {model.__name__} but it has no management_code_id column."
        )
    if not current_user.is_authenticated:
        return model.query.filter(model.id == -1)
    code_id = get_management_code_id()
    if code_id is None:
        return model.query
    return model.query.filter_by(management_code_id=code_id)


def management_get_or_raise(model, record_id):
    """Fetch *model* by primary key within the signed-in account's management code.

    A row filed under another code is reported as missing, not forbidden, so
    its existence is not revealed.
    """
    obj = management_query(model).filter_by(id=record_id).first()
    if obj is None:
        raise NotFoundError(model, record_id)
    return obj


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

@contextmanager
def persistence_guard(action):
    """Roll back and re-raise SQLAlchemy failures as ``PersistenceError``."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(f"{action} failed: {exc}")
        raise PersistenceError(action, exc) from exc
