# awwal/extensions.py

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from redis import from_url


class FlaskRedis:
    """A wrapper class to provide a Flask-like interface for the Redis client."""
    def __init__(self, app=None):
        self.redis_client = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """Initialize the Redis client from the Flask app configuration. No-op without REDIS_URL."""
        redis_url = app.config.get('REDIS_URL')
        self.redis_client = from_url(redis_url) if redis_url else None

    @property
    def is_configured(self):
        return self.redis_client is not None

    def __getattr__(self, name):
        """Proxy attribute access to the underlying Redis client."""
        return getattr(self.redis_client, name)


db = SQLAlchemy()

migrate = Migrate()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["500 per day", "100 per hour"]
)

redis_client = FlaskRedis()
