from flask import Flask, request
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_mail import Mail
from flask_wtf.csrf import CSRFProtect, generate_csrf
from flask_migrate import Migrate
from apscheduler.schedulers.background import BackgroundScheduler
import logging
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Initialize Flask extensions
db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
mail = Mail()
csrf = CSRFProtect()
migrate = Migrate()
scheduler = BackgroundScheduler()


def _env_flag(name, default='false'):
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'default_secret_key_for_development')
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URI', 'sqlite:///roktodan.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['WTF_CSRF_ENABLED'] = True
    app.config['WTF_CSRF_SECRET_KEY'] = os.getenv('CSRF_SECRET_KEY', 'default_csrf_key_for_development')

    # Session cookie carries the login; never readable from scripts
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
    app.config['SESSION_COOKIE_SECURE'] = _env_flag('SESSION_COOKIE_SECURE')
    app.config['REMEMBER_COOKIE_HTTPONLY'] = True

    # Email configuration
    app.config['MAIL_SERVER'] = os.getenv('MAIL_SERVER', 'smtp.gmail.com')
    app.config['MAIL_PORT'] = int(os.getenv('MAIL_PORT', 587))
    app.config['MAIL_USE_TLS'] = True
    app.config['MAIL_USERNAME'] = os.getenv('MAIL_USERNAME')
    app.config['MAIL_PASSWORD'] = os.getenv('MAIL_PASSWORD')
    app.config['MAIL_DEFAULT_SENDER'] = os.getenv('MAIL_DEFAULT_SENDER')

    # Twilio configuration
    app.config['TWILIO_ACCOUNT_SID'] = os.getenv('TWILIO_ACCOUNT_SID')
    app.config['TWILIO_AUTH_TOKEN'] = os.getenv('TWILIO_AUTH_TOKEN')
    app.config['TWILIO_PHONE_NUMBER'] = os.getenv('TWILIO_PHONE_NUMBER')

    # Mapping, links and local-testing switches
    app.config['MAPBOX_ACCESS_TOKEN'] = os.getenv('MAPBOX_ACCESS_TOKEN', '')
    app.config['APP_BASE_URL'] = os.getenv('APP_BASE_URL', 'http://localhost:5000')
    app.config['MOCK_SERVICES'] = _env_flag('MOCK_SERVICES')
    app.config['SCHEDULER_ENABLED'] = _env_flag('SCHEDULER_ENABLED')
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')

    if test_config:
        app.config.update(test_config)

    configure_logging(app)

    # Initialize extensions with app
    db.init_app(app)
    bcrypt.init_app(app)
    login_manager.init_app(app)
    mail.init_app(app)
    csrf.init_app(app)
    migrate.init_app(app, db)

    @app.after_request
    def set_csrf_cookie(response):
        if app.config.get('WTF_CSRF_ENABLED') and 'csrf_token' not in request.cookies:
            response.set_cookie('csrf_token', generate_csrf(), samesite='Lax')
        return response

    # Register blueprints
    from roktodan.routes.public import public
    from roktodan.routes.auth import auth
    from roktodan.routes.admin import admin
    from roktodan.routes.assignments import assignments
    from roktodan.routes.donations import donations
    from roktodan.routes.tracking import tracking

    # JSON clients authenticate with the session cookie and send no form token
    for blueprint in (public, auth, admin, assignments, donations, tracking):
        csrf.exempt(blueprint)

    app.register_blueprint(public, url_prefix='/api/public')
    app.register_blueprint(auth, url_prefix='/api/auth')
    app.register_blueprint(admin, url_prefix='/api/admin')
    app.register_blueprint(assignments, url_prefix='/api')
    app.register_blueprint(donations, url_prefix='/api/donations')
    app.register_blueprint(tracking, url_prefix='/api/routes')

    from roktodan.errors import register_error_handlers
    from roktodan.utils.permissions import enforce_route_permissions

    register_error_handlers(app)
    app.before_request(enforce_route_permissions)

    # Create database tables
    with app.app_context():
        from roktodan import models  # noqa: F401
        db.create_all()

    if app.config['SCHEDULER_ENABLED'] and not app.config.get('TESTING'):
        from roktodan.utils.scheduler import start_scheduler
        start_scheduler(app)

    return app


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger('roktodan').setLevel(level)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
        )
