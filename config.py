import os


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-prod')

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///hostel.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # Comma separated list, e.g. "http://localhost:3000,https://app.example.com"
    CORS_ALLOWED_ORIGINS = [o.strip() for o in os.environ.get('CORS_ALLOWED_ORIGINS', 'http://localhost:3000').split(',') if o.strip()]

    # Seed a default admin account on first start
    SEED_ADMIN = os.environ.get('SEED_ADMIN', 'true').lower() == 'true'
    ADMIN_USERNAME = os.environ.get('ADMIN_USERNAME', 'admin')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', 'admin123')

    # Rent payment defaults for blocks that never saved their settings
    DEFAULT_RENT_GENERATION_DAY = 1
    DEFAULT_PAYMENT_GENERATION_TYPE = 'join_date_based'
    DEFAULT_PAYMENT_VISIBILITY_DAYS = 2

    PAYMENT_HISTORY_LIMIT = 12
    PUBLIC_RECENT_PAYMENTS = 3


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SEED_ADMIN = False
    LOG_LEVEL = 'WARNING'


class ProductionConfig(Config):
    SECRET_KEY = os.environ.get('SECRET_KEY')
    SEED_ADMIN = False

    @classmethod
    def validate(cls):
        if not cls.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable must be set")


CONFIGS = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}
