"""
Application configuration.

This module defines the configuration settings for the Flask application: database connection, secret key,
logging and CSRF settings. Sensitive values come from environment variables with development defaults.
In production, set SECRET_KEY and DATABASE_URL explicitly.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'claimdesk.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection; the SPA sends the token in the X-CSRFToken header
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = None

    # Logging: stream handler always, rotating file handler when LOG_FILE is set
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")
    LOG_MAX_BYTES = int(os.environ.get("LOG_MAX_BYTES", 1_000_000))
    LOG_BACKUP_COUNT = int(os.environ.get("LOG_BACKUP_COUNT", 5))

    JSON_SORT_KEYS = False

    APP_NAME = "Gestion des missions"


class TestConfig(Config):
    """In-memory database, CSRF off. Used by the test suite."""

    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "WARNING"
    LOG_FILE = None
