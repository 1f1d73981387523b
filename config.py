# Roll Call QR Attendance System Configuration

import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.absolute()

LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'


def _env_flag(name, default='False'):
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'rollcall-secret-key-change-me'
    DEBUG = _env_flag('DEBUG')
    TESTING = False

    # Database Configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'attendance.db')
    DATABASE_TIMEOUT = 30.0

    # QR Code Configuration
    QR_CODES_FOLDER = os.environ.get('QR_CODES_FOLDER') or str(BASE_DIR / 'public' / 'qrs')
    QR_CODE_WIDTH = 300  # pixels
    QR_CODE_BORDER = 4
    QR_CODE_ERROR_CORRECT = 'M'  # Medium error correction

    # Attendance Configuration
    # 0 records every scan; a positive value rejects re-scans of the same
    # student within that many seconds
    DUPLICATE_SCAN_WINDOW_SECONDS = float(os.environ.get('DUPLICATE_SCAN_WINDOW_SECONDS') or 0)

    # Report Configuration
    REPORT_RECENT_LIMIT = 200
    REPORT_MAX_LIMIT = 10000
    EXPORT_FILENAME = 'attendance_export.csv'

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = BASE_DIR / 'logs' / 'attendance.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        Path(cls.QR_CODES_FOLDER).mkdir(parents=True, exist_ok=True)
        app.logger.setLevel(getattr(logging, str(cls.LOG_LEVEL).upper(), logging.INFO))


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'attendance_dev.db')
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    # Use in-memory database for testing
    DATABASE_PATH = ':memory:'

    @classmethod
    def init_app(cls, app):
        # Tests point QR_CODES_FOLDER at a temporary directory themselves
        pass


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    LOG_LEVEL = 'WARNING'

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)

        # Setup file logging
        if not app.debug:
            cls.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)
            logging.getLogger('rollcall').addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('Roll Call attendance startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name=None):
    """Get configuration class by name, falling back to FLASK_ENV"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')
    return config.get(config_name, DevelopmentConfig)


def validate_config(settings):
    """Validate configuration settings, returning a list of error messages"""
    errors = []

    if not settings.get('DATABASE_PATH'):
        errors.append("DATABASE_PATH is required")

    if settings.get('QR_CODE_ERROR_CORRECT') not in ('L', 'M', 'Q', 'H'):
        errors.append(f"QR_CODE_ERROR_CORRECT must be one of L, M, Q, H: {settings.get('QR_CODE_ERROR_CORRECT')}")

    window = settings.get('DUPLICATE_SCAN_WINDOW_SECONDS', 0)
    if window is None or window < 0:
        errors.append("DUPLICATE_SCAN_WINDOW_SECONDS cannot be negative")

    limit = settings.get('REPORT_RECENT_LIMIT')
    if not isinstance(limit, int) or limit < 0:
        errors.append("REPORT_RECENT_LIMIT must be a non-negative integer")

    return errors
