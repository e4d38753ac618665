# qrcheckin/__init__.py
import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from qrcheckin.config.settings import config
from qrcheckin.extensions import db, login_manager, migrate, limiter, token_codec


def create_app(config_name='default'):
    """Application factory"""
    app = Flask(__name__)

    app.config.from_object(config[config_name])

    initialize_extensions(app)
    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    if not app.testing:
        from qrcheckin.logging.logger import setup_logging
        setup_logging(app)

    with app.app_context():
        from qrcheckin.models import User, Event, Attendee, ActivityLog
        db.create_all()

    return app


def initialize_extensions(app):
    """Initialize Flask extensions"""
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    token_codec.init_app(app)    # derives the QR cipher key once

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'message': 'Unauthorized'}), 401


def register_blueprints(app):
    from qrcheckin.auth.routes      import auth_bp
    from qrcheckin.organizer.routes import organizer_bp
    from qrcheckin.staff.routes     import staff_bp
    from qrcheckin.admin.routes     import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(organizer_bp)
    app.register_blueprint(staff_bp)
    app.register_blueprint(admin_bp)

    @app.route('/api')
    def index():
        return jsonify({'message': 'API is working'})


def register_error_handlers(app):
    from qrcheckin.utils.security import rate_limit_error_handler

    def _json_error(error):
        return jsonify({'success': False, 'message': error.description}), error.code

    for code in (400, 401, 403, 404, 405, 413):
        app.register_error_handler(code, _json_error)

    app.register_error_handler(429, rate_limit_error_handler)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Internal server error'}), 500

    @app.errorhandler(Exception)
    def unhandled_error(error):
        if isinstance(error, HTTPException):
            return _json_error(error)
        db.session.rollback()
        app.logger.exception("Unhandled error: %s", error)
        return jsonify({'success': False, 'message': 'Internal server error'}), 500


def register_commands(app):
    @app.cli.command()
    def init_db():
        """Initialize the database"""
        db.create_all()
        print("Database initialized!")

    @app.cli.command()
    def seed_db():
        """Seed the database with sample users, events and attendees"""
        from qrcheckin.utils.seed import seed_sample_data
        created = seed_sample_data()
        print(f"Database seeded! users={created['users']} "
              f"events={created['events']} attendees={created['attendees']}")

    @app.cli.command()
    def reset_db():
        """Reset the database"""
        db.drop_all()
        db.create_all()
        print("Database reset!")

    @app.cli.command()
    def create_admin():
        """Create an admin user interactively"""
        from qrcheckin.models import User
        import getpass

        email = input("Enter admin email: ").strip().lower()
        if User.query.filter_by(email=email).first():
            print(f"User {email} already exists!")
            return

        name     = input("Enter admin name: ")
        password = getpass.getpass("Enter password: ")
        if password != getpass.getpass("Confirm password: "):
            print("Passwords do not match!")
            return

        admin = User(name=name, email=email, role='admin')
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        print(f"Admin created: {email}")

    @app.cli.command('decode-image')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def decode_image(path):
        """Run the QR recovery pipeline on an image file"""
        from qrcheckin.exceptions import CheckinError
        from qrcheckin.services.qr_decoder import QRDecoder

        with open(path, 'rb') as fh:
            data = fh.read()
        try:
            decoder = QRDecoder.from_config(app.config)
            result = decoder.decode(decoder.read_image(data))
        except CheckinError as e:
            raise click.ClickException(e.message)

        print(f"[{result.strategy}] {result.text}")

    @app.cli.command('scan-camera')
    @click.option('--device', default=0, show_default=True, help='Camera index')
    @click.option('--email', default=None, help='Check in as this staff/organizer user')
    def scan_camera(device, email):
        """Check attendees in from a live camera feed (Ctrl+C to stop)"""
        from qrcheckin.models import User
        from qrcheckin.scanner.camera import CameraScanner, opencv_frames
        from qrcheckin.services.checkin_service import CheckInService

        actor = User.query.filter_by(email=email.strip().lower()).first() if email else None
        if email and actor is None:
            raise click.ClickException(f"No user with email {email}")

        service = CheckInService()

        def show(result):
            if isinstance(result, Exception):
                print(f"Error: {result}")
            else:
                status = 'OK ' if result.success else 'NO '
                name = f" - {result.attendee.name}" if result.attendee is not None else ''
                print(f"{status}{result.message}{name}")

        scanner = CameraScanner.from_config(
            app.config,
            handler=lambda payload: service.check_in(payload, actor=actor),
            on_result=show,
        )
        print("Scanning... press Ctrl+C to stop.")
        try:
            scanner.run(opencv_frames(device))
        except KeyboardInterrupt:
            scanner.stop()
        except RuntimeError as e:
            raise click.ClickException(str(e))
