import os
import logging
import click
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError
from config import config
from extensions import db, migrate, login_manager, csrf, limiter


def configure_logging(app):
    """Configure application logging"""
    if not app.debug and not app.testing:
        # Create logs directory if it doesn't exist
        if not os.path.exists('logs'):
            os.mkdir('logs')

        # File handler for errors
        file_handler = RotatingFileHandler(
            'logs/welfare_transport.log',
            maxBytes=10240000,  # 10MB
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s '
            '[in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        # Service modules log through their own module loggers
        logging.getLogger('services').addHandler(file_handler)
        logging.getLogger('services').setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Welfare transport startup')
    else:
        # Development logging to console
        app.logger.setLevel(logging.DEBUG)
        logging.getLogger('services').setLevel(logging.DEBUG)
        app.logger.info('Welfare transport startup (DEBUG mode)')


def create_app(config_name=None):
    """Application factory pattern"""

    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)

    # Configure logging
    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # Add security headers
    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses"""
        headers = app.config.get('SECURITY_HEADERS', {})
        for header, value in headers.items():
            response.headers[header] = value
        return response

    # User loader callback for Flask-Login; ids look like 'admin:1' or 'driver:7'
    @login_manager.user_loader
    def load_user(user_id):
        from models.users import Administrator, Driver
        kind, _, pk = user_id.partition(':')
        model = {'admin': Administrator, 'driver': Driver}.get(kind)
        if model is None or not pk.isdigit():
            return None
        return db.session.get(model, int(pk))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Login required'}), 401

    # Import models to ensure they're registered with SQLAlchemy
    with app.app_context():
        import models
        import utils.db_helpers  # registers the SQLite foreign-key pragma

    # Register blueprints
    from blueprints.auth import auth_bp
    from blueprints.transportation import transportation_bp
    from blueprints.vehicles import vehicles_bp
    from blueprints.history import history_bp
    from blueprints.maintenance import maintenance_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(transportation_bp)
    app.register_blueprint(vehicles_bp)
    app.register_blueprint(history_bp)
    app.register_blueprint(maintenance_bp)

    # ── Role-level access enforcement ─────────────────────────────────────
    @app.before_request
    def enforce_section_access():
        """Abort 403 when an account's role is not allowed in a section."""
        from utils.permissions import check_section_access
        check_section_access()

    # Create database tables
    with app.app_context():
        db.create_all()

    # Register Flask-Admin (must come after db.init_app and all models are loaded)
    from admin_panel import init_admin
    init_admin(app, db)
    csrf.exempt(app.blueprints['admin'])

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_commands(app)

    return app


def register_error_handlers(app):
    """Register global error handlers"""
    from services.exceptions import TransportError

    @app.errorhandler(TransportError)
    def transport_error(error):
        if error.status_code >= 500:
            app.logger.error(f'{error.code}: {error}')
        return jsonify(dict(error.to_dict(), success=False)), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'success': False, 'error': 'Not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f'Internal Server Error: {error}')
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    @app.errorhandler(403)
    def forbidden_error(error):
        return jsonify({'success': False, 'error': 'Forbidden'}), 403

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return jsonify({'success': False, 'error': f'CSRF token validation failed: {error.description}'}), 400


def register_commands(app):
    """Register Flask CLI commands."""

    @app.cli.group()
    def transport():
        """Transportation record maintenance."""
        pass

    @transport.command('consolidate')
    @click.option('--dry-run', is_flag=True, help='List duplicate groups without merging them.')
    def consolidate(dry_run):
        """Merge duplicate records sharing date, driver and vehicle."""
        from services.consolidation_service import ConsolidationService
        from services.exceptions import ConsolidationInProgressError

        if dry_run:
            groups = ConsolidationService.find_duplicate_groups()
            click.echo(f'{len(groups)} duplicate group(s)')
            for group in groups:
                first = group[0]
                click.echo(
                    f'  {first.transportation_date} driver={first.driver_id} vehicle={first.vehicle_id}: '
                    f'keep {first.id}, merge {", ".join(str(r.id) for r in group[1:])}'
                )
            return

        try:
            report = ConsolidationService.run_exclusive()
        except ConsolidationInProgressError as exc:
            click.echo(f'ERROR: {exc}', err=True)
            raise SystemExit(1)

        click.echo(
            f'Consolidated {report.groups_consolidated}/{report.groups_found} group(s), '
            f'removed {report.records_removed} record(s), moved {report.details_moved} detail(s)'
        )
        for failure in report.failures:
            click.echo(f'  FAILED survivor {failure["survivor_id"]}: {failure["error"]}', err=True)

    @transport.command('oil-changes')
    def oil_changes():
        """List vehicles due or nearly due for an oil change."""
        from services.odometer_service import OdometerService
        statuses = OdometerService.oil_change_overview()
        click.echo(f'{"Vehicle":<12} {"Odometer":>10} {"Since change":>13} {"Status":<8}')
        click.echo('-' * 46)
        for s in statuses:
            click.echo(f'{s["vehicle_no"]:<12} {s["current_odometer"]:>10} {s["km_since_last_change"]:>13} {s["status"]:<8}')

    @app.cli.group()
    def codes():
        """Manage management codes."""
        pass

    @codes.command('create')
    @click.argument('organization_name')
    def create_code(organization_name):
        """Create a management code for ORGANIZATION_NAME."""
        from models.management_codes import ManagementCode
        code = ManagementCode(organization_name=organization_name)
        db.session.add(code)
        db.session.commit()
        click.echo(f'SUCCESS: {code.code} created for "{organization_name}"')


if __name__ == '__main__':
    app = create_app()
    # SECURITY: Only bind to localhost in development
    # Never use 0.0.0.0 with debug mode - it exposes the debugger to the network
    app.run(host='127.0.0.1', port=5000, debug=True)
