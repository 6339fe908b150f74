"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Storage layout: one SQLite file per organization plus the registry file
    # Production volumes are mounted at /data
    DATA_DIR = os.getenv(
        'DATA_DIR',
        '/data' if ENV == 'production' else os.path.join(os.getcwd(), 'data')
    )
    ORGANIZATIONS_DIR = os.getenv('ORGANIZATIONS_DIR') or os.path.join(DATA_DIR, 'organizations')
    REGISTRY_DB_NAME = os.getenv('REGISTRY_DB_NAME', 'main.db')

    # Tenant store cache
    TENANT_STORE_CAPACITY = int(os.getenv('TENANT_STORE_CAPACITY', '10'))
    TENANT_STORE_IDLE_TIMEOUT = int(os.getenv('TENANT_STORE_IDLE_TIMEOUT', '300'))  # 5 minutes
    TENANT_STORE_SWEEP_INTERVAL = float(os.getenv('TENANT_STORE_SWEEP_INTERVAL', '60'))  # seconds
    STORE_BUSY_TIMEOUT = float(os.getenv('STORE_BUSY_TIMEOUT', '5'))  # seconds

    # SQLAlchemy
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Error tracking
    SENTRY_DSN = os.getenv('SENTRY_DSN')


class TestConfig(Config):
    """Configuration for the test suite (paths are overridden per test)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_ECHO = False
    SENTRY_DSN = None
