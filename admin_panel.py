"""
Flask-Admin panel for master data (drivers, vehicles, routes, service users)
Accessible at /admin/panel - restricted to administrators
"""
from flask import abort
from flask_admin import Admin, AdminIndexView, expose
from flask_admin.contrib.sqla import ModelView
from flask_admin.theme import Bootstrap4Theme
from flask_login import current_user


def _is_admin():
    return current_user.is_authenticated and current_user.is_admin


# ---------------------------------------------------------------------------
# Base secure views
# ---------------------------------------------------------------------------

class SecureAdminIndexView(AdminIndexView):
    """Admin home page - checks for admin role before rendering."""

    @expose('/')
    def index(self):
        if not _is_admin():
            abort(403)
        return super().index()

    def is_accessible(self):
        return _is_admin()

    def inaccessible_callback(self, name, **kwargs):
        abort(403)


class SecureModelView(ModelView):
    """Full CRUD model view - admin only."""

    can_export = True
    page_size = 50
    column_display_pk = True

    def __init__(self, model, session, **kwargs):
        # Prefix endpoints so they never clash with the JSON blueprints
        if 'endpoint' not in kwargs:
            kwargs['endpoint'] = f'admin_{model.__name__.lower()}'

        # Every table scoped by management code gets that filter automatically
        if hasattr(model, 'management_code_id'):
            existing = list(getattr(self.__class__, 'column_filters', None) or [])
            if 'management_code_id' not in existing:
                existing.insert(0, 'management_code_id')
            self.column_filters = existing

        super().__init__(model, session, **kwargs)

    def is_accessible(self):
        return _is_admin()

    def inaccessible_callback(self, name, **kwargs):
        abort(403)


class ReadOnlyModelView(SecureModelView):
    """Read-only model view for operational tables."""

    can_create = False
    can_edit = False
    can_delete = False


# ---------------------------------------------------------------------------
# Customised model views
# ---------------------------------------------------------------------------

class AdministratorAdminView(SecureModelView):
    column_exclude_list = ['password_hash']
    form_excluded_columns = ['password_hash', 'failed_login_attempts', 'locked_until', 'last_login']
    column_searchable_list = ['email', 'name']
    column_filters = ['is_active']


class DriverAdminView(SecureModelView):
    column_exclude_list = ['pin_hash']
    form_excluded_columns = ['pin_hash', 'failed_login_attempts', 'locked_until', 'last_login',
                             'transportation_records']
    column_searchable_list = ['name', 'employee_no']
    column_filters = ['is_active']


class VehicleAdminView(SecureModelView):
    column_searchable_list = ['vehicle_no', 'vehicle_name']
    column_filters = ['vehicle_type', 'wheelchair_accessible', 'is_active']
    form_excluded_columns = ['transportation_records']


class RouteAdminView(SecureModelView):
    column_searchable_list = ['route_name', 'route_code']
    column_filters = ['is_active']
    column_default_sort = 'display_order'


class ServiceUserAdminView(SecureModelView):
    column_searchable_list = ['user_no', 'name']
    column_filters = ['wheelchair_user', 'is_active']


class TransportationRecordAdminView(ReadOnlyModelView):
    column_filters = ['transportation_date', 'status', 'transportation_type', 'trip_type',
                      'driver_id', 'vehicle_id']
    column_default_sort = ('transportation_date', True)


# ---------------------------------------------------------------------------
# Admin factory
# ---------------------------------------------------------------------------

def init_admin(app, db):
    """Create the Flask-Admin instance and register all model views."""

    admin = Admin(
        app,
        name='Transport Admin',
        theme=Bootstrap4Theme(),
        index_view=SecureAdminIndexView(url='/admin/panel'),
        url='/admin/panel',
    )

    from models.management_codes import ManagementCode
    from models.users import Administrator, Driver
    from models.vehicles import Vehicle
    from models.routes import Route, Destination
    from models.service_users import ServiceUser
    from models.transportation import TransportationRecord, TransportationDetail

    # Accounts
    admin.add_view(AdministratorAdminView(Administrator, db.session, name='Administrators', category='Accounts'))
    admin.add_view(DriverAdminView(Driver, db.session, name='Drivers', category='Accounts'))
    admin.add_view(SecureModelView(ManagementCode, db.session, name='Management Codes', category='Accounts'))

    # Master data
    admin.add_view(VehicleAdminView(Vehicle, db.session, name='Vehicles', category='Master'))
    admin.add_view(RouteAdminView(Route, db.session, name='Routes', category='Master'))
    admin.add_view(SecureModelView(Destination, db.session, name='Destinations', category='Master'))
    admin.add_view(ServiceUserAdminView(ServiceUser, db.session, name='Service Users', category='Master'))

    # Operations
    admin.add_view(TransportationRecordAdminView(TransportationRecord, db.session, name='Records', category='Transportation'))
    admin.add_view(ReadOnlyModelView(TransportationDetail, db.session, name='Details', category='Transportation'))

    return admin
