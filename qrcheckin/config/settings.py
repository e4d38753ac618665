import os
from datetime import timedelta


def _env_float(name, default=None):
    value = os.environ.get(name)
    if value in (None, ''):
        return default
    return float(value)


class Config:
    """Base configuration"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Upload settings
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', 16777216))  # 16MB
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif'}

    # ── QR tokens ──────────────────────────────────────────────────────────────
    # Passphrase and salt feed scrypt once at start-up; changing either
    # invalidates every code already issued.
    QR_SECRET_KEY = os.environ.get('QR_SECRET_KEY') or 'default_secret_key'
    QR_KDF_SALT   = os.environ.get('QR_KDF_SALT', 'salt')
    # Seconds; None disables expiry (codes stay valid indefinitely)
    QR_TOKEN_MAX_AGE = _env_float('QR_TOKEN_MAX_AGE')

    # ── QR rendering ───────────────────────────────────────────────────────────
    QR_ERROR_CORRECTION = os.environ.get('QR_ERROR_CORRECTION', 'H')
    QR_IMAGE_SIZE       = int(os.environ.get('QR_IMAGE_SIZE', 512))
    QR_BORDER           = int(os.environ.get('QR_BORDER', 4))
    QR_EXPORT_WORKERS   = int(os.environ.get('QR_EXPORT_WORKERS', 4))

    # ── Scanner ────────────────────────────────────────────────────────────────
    SCANNER_FPS                = int(os.environ.get('SCANNER_FPS', 10))
    SCANNER_RESUME_DELAY       = float(os.environ.get('SCANNER_RESUME_DELAY', 5))
    SCANNER_ERROR_RESUME_DELAY = float(os.environ.get('SCANNER_ERROR_RESUME_DELAY', 3))
    SCANNER_CONTRAST_GAIN      = float(os.environ.get('SCANNER_CONTRAST_GAIN', 1.5))
    SCANNER_MIN_DIMENSION      = int(os.environ.get('SCANNER_MIN_DIMENSION', 100))
    # Uploads over SCANNER_MAX_PIXELS are refused before decoding; larger
    # sides than SCANNER_MAX_DIMENSION are shrunk before the recovery chain
    SCANNER_MAX_PIXELS         = int(os.environ.get('SCANNER_MAX_PIXELS', 16_000_000))
    SCANNER_MAX_DIMENSION      = int(os.environ.get('SCANNER_MAX_DIMENSION', 2048))
    SCANNER_SCALE_FACTORS      = (0.9, 0.8, 0.7, 0.6, 0.5, 0.4, 0.3, 0.2)

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_ENABLED = True
    CHECKIN_RATE_LIMIT = "120 per minute"

    # Logging
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///qrcheckin.db'

    LOGIN_RATE_LIMIT = "10 per minute"


class TestingConfig(Config):
    """Testing configuration"""
    DEBUG = False
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    # Disable rate limiting in tests
    RATELIMIT_ENABLED = False
    QR_SECRET_KEY = 'test-qr-secret'
    QR_EXPORT_WORKERS = 2
    LOGIN_RATE_LIMIT = "1000 per minute"


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///qrcheckin.db'

    # Strict rate limits for production
    LOGIN_RATE_LIMIT = "5 per minute"
    CHECKIN_RATE_LIMIT = "60 per minute"

    # Force HTTPS
    SESSION_COOKIE_SECURE = True


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
