"""
SpendSense - Configuration

Settings come from the process environment, with a `.env` file loaded first
so local development does not need exported variables.

License: MIT
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables (for SECRET_KEY, OPENAI_API_KEY, etc.)
load_dotenv()

DEFAULT_DB_PATH = Path(__file__).parent / "data" / "spendsense.db"

LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s] - %(message)s'


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    """
    Application settings.

    Attributes mirror the environment variables of the same name. Build one
    from the environment with `Config.from_env()`, or pass overrides as
    keyword arguments (tests do this to force memory storage and a fake
    AI client).
    """

    SECRET_KEY = 'dev-secret-key-change-in-production'
    TESTING = False
    OPENAI_API_KEY = ''
    OPENAI_MODEL = 'gpt-4o'
    STORAGE_BACKEND = 'memory'
    DATABASE_PATH = str(DEFAULT_DB_PATH)
    SESSION_COOKIE_SECURE = False
    STATIC_FOLDER = None
    LOG_LEVEL = 'INFO'
    AI_MAX_WORKERS = 5
    HOST = '127.0.0.1'
    PORT = 5000

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(Config, key):
                raise AttributeError(f"Unknown config option: {key}")
            setattr(self, key, value)

    @classmethod
    def from_env(cls, **overrides):
        values = {
            'SECRET_KEY': os.getenv('SECRET_KEY', cls.SECRET_KEY),
            'OPENAI_API_KEY': os.getenv('OPENAI_API_KEY', cls.OPENAI_API_KEY),
            'OPENAI_MODEL': os.getenv('OPENAI_MODEL', cls.OPENAI_MODEL),
            'STORAGE_BACKEND': os.getenv('STORAGE_BACKEND', cls.STORAGE_BACKEND).lower(),
            'DATABASE_PATH': os.getenv('DATABASE_PATH', cls.DATABASE_PATH),
            'SESSION_COOKIE_SECURE': _env_bool('SESSION_COOKIE_SECURE', cls.SESSION_COOKIE_SECURE),
            'STATIC_FOLDER': os.getenv('STATIC_FOLDER') or None,
            'LOG_LEVEL': os.getenv('LOG_LEVEL', cls.LOG_LEVEL).upper(),
            'AI_MAX_WORKERS': _env_int('AI_MAX_WORKERS', cls.AI_MAX_WORKERS),
            'HOST': os.getenv('HOST', cls.HOST),
            'PORT': _env_int('PORT', cls.PORT),
        }
        values.update(overrides)
        return cls(**values)

    def flask_settings(self):
        """Settings copied onto `app.config`."""
        return {
            'SECRET_KEY': self.SECRET_KEY,
            'TESTING': self.TESTING,
            'SESSION_COOKIE_SECURE': self.SESSION_COOKIE_SECURE,
        }


def configure_logging(level='INFO'):
    """Install a single stream handler on the package logger."""
    log = logging.getLogger('spendsense')
    log.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
    return log
