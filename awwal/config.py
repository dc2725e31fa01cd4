import os
from dotenv import load_dotenv

# Load .env file
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path)

DEFAULT_SECRET_KEY = 'awwal_development_secret_key_change_me'


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or DEFAULT_SECRET_KEY
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', "INFO")

    # Sentry Configuration
    SENTRY_DSN = os.environ.get('SENTRY_DSN')

    # Redis and Caching Configuration
    # Leave unset to run without a cache.
    REDIS_URL = os.environ.get('REDIS_URL')
    CACHE_SCHEMA_VERSION = os.environ.get('CACHE_SCHEMA_VERSION', 'v1')
    REDIS_TTL_DAILY_CACHE = int(os.environ.get('REDIS_TTL_DAILY_CACHE', 60 * 60 * 6))
    REDIS_TTL_LOCATION_CACHE = int(os.environ.get('REDIS_TTL_LOCATION_CACHE', 60 * 60 * 24 * 7))

    # Google OAuth Configuration - needed for ID token validation
    GOOGLE_CLIENT_ID = os.environ.get('GOOGLE_CLIENT_ID')
    GOOGLE_CLIENT_SECRET = os.environ.get('GOOGLE_CLIENT_SECRET')
    GOOGLE_JWKS_URL = os.environ.get('GOOGLE_JWKS_URL') or "https://www.googleapis.com/oauth2/v3/certs"
    GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
    GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")
    OAUTH_REDIRECT_URI = os.environ.get('OAUTH_REDIRECT_URI') or "http://localhost:5000/auth/callback"

    # Prayer Time API Configuration
    PRAYER_API_ADAPTER = os.environ.get('PRAYER_API_ADAPTER') or "AlAdhanAdapter"
    PRAYER_API_BASE_URL = os.environ.get('PRAYER_API_BASE_URL') or "https://api.aladhan.com/v1"
    PRAYER_API_KEY = os.environ.get('PRAYER_API_KEY')

    # Default Location (Jakarta) and Calculation Method (20 = Kemenag RI)
    DEFAULT_LATITUDE = os.environ.get('DEFAULT_LATITUDE', "-6.2088")
    DEFAULT_LONGITUDE = os.environ.get('DEFAULT_LONGITUDE', "106.8456")
    DEFAULT_CALCULATION_METHOD_ID = int(os.environ.get('DEFAULT_CALCULATION_METHOD_ID', 20))
    DEFAULT_SCHOOL = int(os.environ.get('DEFAULT_SCHOOL', 0))
    DEFAULT_TIMEZONE = os.environ.get('DEFAULT_TIMEZONE', "Asia/Jakarta")

    # Reverse Geocoding Configuration, tried in order
    GEOCODING_PROVIDERS = [
        p.strip() for p in os.environ.get('GEOCODING_PROVIDERS', 'bigdatacloud,nominatim,geocodexyz').split(',')
        if p.strip()
    ]
    NOMINATIM_USER_AGENT = os.environ.get('NOMINATIM_USER_AGENT') or "Awwal Prayer Times App (awwal.app)"
    GEOCODING_TIMEOUT = int(os.environ.get('GEOCODING_TIMEOUT', 10))

    # Attendance and Statistics
    ATTENDANCE_DEFAULT_LIMIT = 30
    STATS_DEFAULT_PERIOD = 30
    STREAK_LOOKBACK_RECORDS = 100
    PRAYERS_PER_DAY = 5
    SYNC_RECENT_RECORDS = 10

    @classmethod
    def validate(cls):
        """Hook for configs that need to check the environment before the app starts."""
        return None


class DevelopmentConfig(Config):
    FLASK_ENV = 'development'
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///awwal-dev.db'
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    FLASK_ENV = 'production'
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')

    @classmethod
    def validate(cls):
        # Ensure critical secrets are set in production
        if not cls.SECRET_KEY or cls.SECRET_KEY == DEFAULT_SECRET_KEY:
            raise ValueError("CRITICAL: SECRET_KEY not found in environment!")
        if not cls.SQLALCHEMY_DATABASE_URI:
            raise ValueError("CRITICAL: DATABASE_URL for production is not set!")
        if not cls.GOOGLE_CLIENT_ID:
            raise ValueError("CRITICAL: GOOGLE_CLIENT_ID for production is not set!")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL') or 'sqlite:///:memory:'
    RATELIMIT_ENABLED = False  # Disable rate limiting for tests
    REDIS_URL = None
    SENTRY_DSN = None
    GOOGLE_CLIENT_ID = 'test-client-id.apps.googleusercontent.com'
    GOOGLE_CLIENT_SECRET = 'test-client-secret'


config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
