import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

# Import extensions from the central extensions file
from .extensions import db, migrate, limiter, redis_client
import logging
from flask import Flask
from flask_cors import CORS
from flask_smorest import Api

# Declare extensions that are not in the extensions file
cors = CORS()
api = Api()


def create_app(config_name='default'):
    """
    Flask Application Factory function.
    """
    app = Flask(__name__, instance_relative_config=False)

    # 1. Load Config
    from .config import config_by_name
    config_obj = config_by_name.get(config_name, config_by_name['default'])
    config_obj.validate()
    app.config.from_object(config_obj)
    app.logger.info(f"App configured with: {config_obj.__name__}")

    # Flask-Smorest API documentation configuration
    app.config["API_TITLE"] = "Awwal API"
    app.config["API_VERSION"] = "v1"
    app.config["OPENAPI_VERSION"] = "3.0.2"
    app.config["OPENAPI_URL_PREFIX"] = "/api/docs"
    app.config["OPENAPI_SWAGGER_UI_PATH"] = "/swagger-ui"
    app.config["OPENAPI_SWAGGER_UI_URL"] = "https://cdn.jsdelivr.net/npm/swagger-ui-dist/"

    # 2. Sentry SDK initialization - for error and performance tracking
    if app.config.get('SENTRY_DSN'):
        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            send_default_pii=False,
            traces_sample_rate=0.2
        )
        app.logger.info("Sentry initialized for error tracking.")

    # 3. Initialize Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}})
    limiter.init_app(app)
    redis_client.init_app(app)
    if not redis_client.is_configured:
        app.logger.info("REDIS_URL not set. Prayer time and location caching is disabled.")

    # 4. Initialize Flask-Smorest API
    api.init_app(app)

    # 5. Register Blueprints in app context
    with app.app_context():
        from . import models  # noqa: F401 - registers tables with SQLAlchemy
        from .routes.main_routes import main_bp
        from .routes.auth_routes import auth_bp
        from .routes.attendance_routes import attendance_bp
        from .routes.sync_routes import sync_bp
        from .routes.api_routes import api_bp

        api.register_blueprint(main_bp)
        api.register_blueprint(auth_bp)
        api.register_blueprint(attendance_bp)
        api.register_blueprint(sync_bp)
        api.register_blueprint(api_bp)

        # 6. Set up Logging
        log_level_str = str(app.config.get('LOG_LEVEL', 'INFO')).upper()
        log_level = getattr(logging, log_level_str, logging.INFO)
        app.logger.setLevel(log_level)

        app.logger.info(f"Application initialized with environment: {app.config.get('FLASK_ENV')}, Debug: {app.config.get('DEBUG')}")

    return app
