# evoting/config.py

import os
from datetime import timedelta


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Settings read from the environment when an app is created."""

    def __init__(self):
        self.SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me-in-production')
        self.SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///evoting.db')
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.SQLITE_BUSY_TIMEOUT = float(os.environ.get('SQLITE_BUSY_TIMEOUT', '30'))

        self.JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', 'change-me-in-production-jwt')
        self.JWT_ACCESS_TOKEN_EXPIRES = timedelta(
            minutes=int(os.environ.get('JWT_ACCESS_MINUTES', '30')))
        self.JWT_REFRESH_TOKEN_EXPIRES = timedelta(
            hours=int(os.environ.get('JWT_REFRESH_HOURS', '24')))
        self.JWT_TOKEN_LOCATION = ['cookies', 'headers']
        self.JWT_ACCESS_COOKIE_PATH = '/'
        self.JWT_COOKIE_SECURE = _env_bool('JWT_COOKIE_SECURE', False)
        self.JWT_COOKIE_CSRF_PROTECT = _env_bool('JWT_COOKIE_CSRF_PROTECT', True)

        self.RATELIMIT_ENABLED = _env_bool('RATELIMIT_ENABLED', True)
        self.RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')

        # Upper bound on a single token issuance request
        self.MAX_TOKENS_PER_BATCH = int(os.environ.get('MAX_TOKENS_PER_BATCH', '1000'))

        self.AUDIT_LOG_DIR = os.environ.get('AUDIT_LOG_DIR', 'logs')
        self.LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

        self.DEFAULT_SUPERADMIN_USERNAME = os.environ.get('DEFAULT_SUPERADMIN_USERNAME', 'superadmin')
        self.DEFAULT_SUPERADMIN_PASSWORD = os.environ.get('DEFAULT_SUPERADMIN_PASSWORD')
