import os
from datetime import timedelta

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(os.path.dirname(basedir), '.env'))


def _int_env(name, default):
    return int(os.environ.get(name, default))


def normalize_database_url(url):
    """Rewrite a postgres:// URL to the postgresql:// scheme SQLAlchemy expects"""
    if url and url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


class Config:
    """Settings shared by every environment"""

    SECRET_KEY = os.environ.get('SECRET_KEY') or 'tradehub-local-secret'

    SQLALCHEMY_DATABASE_URI = None  # resolved per instance
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 3600,
        'pool_pre_ping': True,
    }

    # Flask-Login session cookie
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    REMEMBER_COOKIE_DURATION = timedelta(days=14)
    SESSION_COOKIE_NAME = 'tradehub_auth'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_SAMESITE = 'None'

    CORS_ORIGINS = ['http://localhost:3000', 'http://127.0.0.1:3000']
    CORS_SUPPORTS_CREDENTIALS = True

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Tender matching rules
    DEFAULT_RADIUS_KM = _int_env('DEFAULT_RADIUS_KM', 15)
    MAX_PREMIUM_RADIUS_KM = _int_env('MAX_PREMIUM_RADIUS_KM', 100)
    FREE_MONTHLY_QUOTE_LIMIT = _int_env('FREE_MONTHLY_QUOTE_LIMIT', 1)
    LIMITED_QUOTES_DEFAULT_CAP = _int_env('LIMITED_QUOTES_DEFAULT_CAP', 3)
    BILLING_TIMEZONE = os.environ.get('BILLING_TIMEZONE', 'Australia/Brisbane')

    def __init__(self):
        self.SQLALCHEMY_DATABASE_URI = (
            normalize_database_url(os.environ.get('DATABASE_URL'))
            or 'sqlite:///' + os.path.join(basedir, 'tradehub_dev.db')
        )


class DevelopmentConfig(Config):
    """Local development: plain-http cookies, optional separate database"""
    DEBUG = True

    def __init__(self):
        super().__init__()
        self.SESSION_COOKIE_SECURE = False
        self.SESSION_COOKIE_SAMESITE = 'Lax'

        dev_url = normalize_database_url(os.environ.get('DEV_DATABASE_URL'))
        if dev_url:
            self.SQLALCHEMY_DATABASE_URI = dev_url


class ProductionConfig(Config):
    DEBUG = False

    def __init__(self):
        super().__init__()

        if not os.environ.get('SECRET_KEY'):
            raise ValueError("SECRET_KEY must be set in production")
        self.SECRET_KEY = os.environ['SECRET_KEY']

        if not os.environ.get('DATABASE_URL'):
            raise ValueError("DATABASE_URL must be set in production")

        origins = os.environ.get('CORS_ORIGINS')
        if origins:
            self.CORS_ORIGINS = [origin.strip() for origin in origins.split(',') if origin.strip()]

        self.SQLALCHEMY_ENGINE_OPTIONS = dict(
            Config.SQLALCHEMY_ENGINE_OPTIONS,
            pool_size=20,
            max_overflow=30,
            pool_timeout=60,
        )


class TestingConfig(Config):
    """In-memory SQLite, plain-http cookies"""
    TESTING = True
    SECRET_KEY = 'testing-secret-key'
    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_SAMESITE = 'Lax'

    def __init__(self):
        super().__init__()
        self.SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.CORS_ORIGINS = ['http://localhost']


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_config_name():
    """FLASK_ENV wins; TESTING or CI in the environment select the test config"""
    flask_env = os.environ.get('FLASK_ENV', '').lower()
    if flask_env in config and flask_env != 'default':
        return flask_env
    if os.environ.get('TESTING') or os.environ.get('CI'):
        return 'testing'
    return 'development'


__all__ = [
    'config',
    'get_config_name',
    'normalize_database_url',
]
