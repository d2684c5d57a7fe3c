from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_mail import Mail
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import logging
from logging.handlers import SMTPHandler, RotatingFileHandler
import os

# Initialize extensions
db = SQLAlchemy()
mail = Mail()
migrate = Migrate()
login = LoginManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"]
)


def create_app(config_name='development'):
    """Application factory function"""
    app = Flask(__name__)

    # Load configuration
    from config import config
    app.config.from_object(config[config_name])

    # Initialize extensions
    db.init_app(app)
    mail.init_app(app)
    migrate.init_app(app, db)
    login.init_app(app)
    limiter.init_app(app)

    # Configure logging
    configure_logging(app)

    # Register authentication callbacks
    register_login_handlers(app)

    # Register middleware
    register_middleware(app)

    # Register blueprints/routes
    register_routes(app)

    return app


def configure_logging(app):
    """Configure logging for the application"""
    # Ensure instance/logs directory exists
    logs_dir = os.path.join(app.instance_path, 'logs')
    if not os.path.exists(logs_dir):
        os.makedirs(logs_dir)

    # Always log to file (even in debug mode)
    app_log_path = os.path.join(logs_dir, 'app.log')
    file_handler = RotatingFileHandler(app_log_path, maxBytes=10240, backupCount=10)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'))
    file_handler.setLevel(logging.INFO)
    app.logger.addHandler(file_handler)

    # Set appropriate log level
    if app.debug:
        app.logger.setLevel(logging.DEBUG)
    else:
        app.logger.setLevel(logging.INFO)

    # Email notifications for production errors only
    if not app.debug and not app.testing and app.config.get('MAIL_SERVER'):
        auth = None
        if app.config['MAIL_USERNAME'] or app.config['MAIL_PASSWORD']:
            auth = (app.config['MAIL_USERNAME'], app.config['MAIL_PASSWORD'])
        secure = None
        if app.config['MAIL_USE_TLS']:
            secure = ()
        mail_handler = SMTPHandler(
            mailhost=(app.config['MAIL_SERVER'], app.config['MAIL_PORT']),
            fromaddr='no-reply@' + app.config['MAIL_SERVER'],
            toaddrs=app.config['ADMINS'], subject='Fieldhouse Failure',
            credentials=auth, secure=secure)
        mail_handler.setLevel(logging.ERROR)
        app.logger.addHandler(mail_handler)

    app.logger.info('Fieldhouse application startup')


def register_login_handlers(app):
    """Register Flask-Login callbacks for the JSON API"""

    @login.unauthorized_handler
    def unauthorized():
        from flask import jsonify
        return jsonify({
            'success': False,
            'error': 'Authentication required'
        }), 401


def register_middleware(app):
    """Register middleware functions"""

    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses"""
        # JSON API only, nothing may be framed or scripted
        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"

        # HTTP Strict Transport Security
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # X-Content-Type-Options
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # X-Frame-Options
        response.headers['X-Frame-Options'] = 'DENY'

        # Referrer Policy
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        # Permissions Policy
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'

        return response

    @app.before_request
    def track_user_activity():
        """Update last_seen date for authenticated users - only once per day"""
        from flask import jsonify
        from flask_login import current_user, logout_user
        from datetime import date

        if current_user.is_authenticated:
            # Check if user has been locked out
            if current_user.lockout:
                logout_user()
                return jsonify({
                    'success': False,
                    'error': 'Your account has been locked. Please contact the administrator.'
                }), 401

            # Update last_seen date
            today = date.today()
            if current_user.last_seen != today:
                current_user.last_seen = today
                db.session.commit()


def register_routes(app):
    """Register application routes via blueprints"""
    # Import and register blueprints
    from app.auth import bp as auth_bp
    from app.organizations import bp as organizations_bp
    from app.athletes import bp as athletes_bp
    from app.coaches import bp as coaches_bp
    from app.teams import bp as teams_bp
    from app.equipment import bp as equipment_bp
    from app.training import bp as training_bp
    from app.waitlist import bp as waitlist_bp
    from app.events import bp as events_bp
    from app.registrations import bp as registrations_bp
    from app.public import bp as public_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(organizations_bp)
    app.register_blueprint(athletes_bp)
    app.register_blueprint(coaches_bp)
    app.register_blueprint(teams_bp)
    app.register_blueprint(equipment_bp)
    app.register_blueprint(training_bp)
    app.register_blueprint(waitlist_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(registrations_bp)
    app.register_blueprint(public_bp)

    # Register error handlers
    from app.errors import register_error_handlers
    register_error_handlers(app)

    # Import models to ensure they're loaded
    from app import models
