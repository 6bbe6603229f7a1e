"""Flask application configuration."""
import os
from datetime import timedelta


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).strip().lower() in {'1', 'true', 'yes', 'y'}


class Config:
    """Base configuration."""

    # Flask
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')

    # Database
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL',
        'sqlite:///writing_tutor.db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    # Session
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)
    SESSION_COOKIE_SECURE = False  # Set True in production with HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Rubric and word-count policy
    MIN_WORDS = int(os.environ.get('MIN_WORDS', 120))
    MAX_WORDS = int(os.environ.get('MAX_WORDS', 300))
    SCAFFOLDING_THRESHOLD = int(os.environ.get('SCAFFOLDING_THRESHOLD', 3))

    # Scoring: 'heuristic' (no model calls) or 'gemini'
    SCORER_STRATEGY = os.environ.get('SCORER_STRATEGY', 'heuristic')
    # Supplementary AI commentary next to the primary score (best effort)
    AI_FEEDBACK_ENABLED = _env_flag('AI_FEEDBACK_ENABLED')

    # Anonymous save codes
    SAVE_CODE_TTL_DAYS = int(os.environ.get('SAVE_CODE_TTL_DAYS', 30))

    # CORS (for development)
    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '*')


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(Config):
    """Test configuration: in-memory database, deterministic scoring."""
    DEBUG = False
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SCORER_STRATEGY = 'heuristic'
    AI_FEEDBACK_ENABLED = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
