# Roll Call QR Attendance System - App Package
"""
Main application package for the Roll Call QR attendance system.
Provides the Flask application factory that wires the store, registry,
ledger, scan service and report generator together.
"""

__version__ = "1.0.0"
__description__ = "Flask-based classroom attendance tracking with roll-encoded QR codes"

import atexit
import logging

from flask import Flask

from config import get_config, validate_config
from rollcall.modules.database_manager import DatabaseManager
from rollcall.modules.qr_generator import QRGenerator, BackgroundQREncoder
from rollcall.modules.student_registry import StudentRegistry
from rollcall.modules.attendance_ledger import AttendanceLedger, utc_now
from rollcall.modules.scan_service import ScanService, policy_from_window
from rollcall.modules.report_generator import ReportGenerator

logger = logging.getLogger(__name__)


class Services:
    """Holds the components shared by all request handlers."""

    def __init__(self, db, qr_encoder, registry, ledger, scanner, reports):
        self.db = db
        self.qr_encoder = qr_encoder
        self.registry = registry
        self.ledger = ledger
        self.scanner = scanner
        self.reports = reports


def build_services(settings, image_encoder=None, clock=utc_now):
    """
    Construct the attendance components from a settings mapping.

    Args:
        settings: Mapping with the keys defined in config.Config
        image_encoder: Replacement for the background QR encoder
        clock: Callable returning the current aware UTC datetime

    Returns:
        Services: Wired components
    """
    db = DatabaseManager(settings['DATABASE_PATH'], timeout=settings['DATABASE_TIMEOUT'])

    if image_encoder is None:
        image_encoder = BackgroundQREncoder(QRGenerator(
            settings['QR_CODES_FOLDER'],
            width=settings['QR_CODE_WIDTH'],
            border=settings['QR_CODE_BORDER'],
            error_correction=settings['QR_CODE_ERROR_CORRECT']
        ))
        # Drain queued renders before the interpreter exits
        atexit.register(image_encoder.shutdown)

    registry = StudentRegistry(db, image_encoder=image_encoder)
    ledger = AttendanceLedger(db)
    scanner = ScanService(
        registry,
        ledger,
        policy=policy_from_window(settings['DUPLICATE_SCAN_WINDOW_SECONDS']),
        clock=clock
    )
    reports = ReportGenerator(ledger, recent_limit=settings['REPORT_RECENT_LIMIT'])

    return Services(db, image_encoder, registry, ledger, scanner, reports)


def create_app(config_name=None, image_encoder=None, clock=utc_now, **overrides):
    """
    Application factory.

    Args:
        config_name (str): Key of config.config, defaults to FLASK_ENV
        image_encoder: Replacement for the background QR encoder
        clock: Callable returning the current aware UTC datetime
        **overrides: Individual settings applied on top of the config class

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)

    config_class = get_config(config_name)
    app.config.from_object(config_class)
    app.config.update(overrides)

    errors = validate_config(app.config)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    config_class.init_app(app)

    app.extensions['rollcall'] = build_services(app.config, image_encoder=image_encoder, clock=clock)

    from rollcall.routes import bp
    app.register_blueprint(bp)

    logger.info(f"Application created with {config_class.__name__}")
    return app


__all__ = [
    'create_app',
    'build_services',
    'Services',
]
