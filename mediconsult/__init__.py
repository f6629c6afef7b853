from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException
import logging
import os

from .exceptions import ConsultationError
from .extensions import db, migrate, bcrypt, jwt

# Setup basic logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s'
)
logger = logging.getLogger(__name__)


def _auth_error(message):
    return jsonify({
        'success': False,
        'error': message,
        'code': 'auth_required'
    }), 401


def create_app(config_name=None):
    """Create Flask application factory"""
    app = Flask(__name__)

    # Load configuration
    from .config import config, get_config
    if config_name:
        config_class = config.get(config_name, config['default'])
    else:
        config_class = get_config()
    if hasattr(config_class, 'validate'):
        config_class.validate()
    app.config.from_object(config_class)

    # Ensure production mode if FLASK_ENV is production
    if os.getenv('FLASK_ENV') == 'production' and not config_name:
        app.config['DEBUG'] = False
        app.config['TESTING'] = False

    logging.getLogger().setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize extensions first (before error handlers)
    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    jwt.init_app(app)

    from .utils.cors import init_cors
    init_cors(app)

    # Collaborators shared by the request handlers
    from .consultation import WorkflowRegistry
    from .services import IdentityProvider, OpenAIExtractor
    identity_provider = IdentityProvider()
    app.extensions['identity_provider'] = identity_provider
    app.extensions['workflow_registry'] = WorkflowRegistry()
    app.extensions['extractor'] = OpenAIExtractor.from_config(app.config)

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        return current_app.extensions['identity_provider'].is_token_revoked(jwt_payload['jti'])

    @jwt.unauthorized_loader
    def missing_token(reason):
        return _auth_error('Authentication required')

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _auth_error(f'Invalid token: {reason}')

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return _auth_error('Token has expired')

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return _auth_error('Token has been revoked')

    # Error handlers
    @app.errorhandler(ConsultationError)
    def handle_consultation_error(e):
        if e.status_code >= 500:
            logger.error("%s: %s", type(e).__name__, e.message)
        else:
            logger.info("%s: %s", type(e).__name__, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'success': False,
            'error': 'Endpoint not found'
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({
            'success': False,
            'error': 'Method not allowed'
        }), 405

    @app.errorhandler(413)
    def too_large(error):
        return jsonify({
            'success': False,
            'error': 'Upload too large'
        }), 413

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal Server Error: {error}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Internal server error. Check server logs for details.'
        }), 500

    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return jsonify({
                'success': False,
                'error': e.description
            }), e.code
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'success': False,
            'error': 'Internal server error. Check server logs for details.'
        }), 500

    # Setup logging
    if not app.debug and not app.testing:
        from logging.handlers import RotatingFileHandler

        log_file = app.config['LOG_FILE']
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10240000,
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
        app.logger.addHandler(file_handler)
        logging.getLogger('mediconsult').addHandler(file_handler)
        app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
        app.logger.info('Application startup')

    app.config['MAX_CONTENT_LENGTH'] = app.config.get('MAX_CONTENT_LENGTH', 30 * 1024 * 1024)

    # Security headers middleware
    @app.after_request
    def set_security_headers(response):
        """Add security headers to all responses"""
        if not app.debug:
            response.headers['X-Content-Type-Options'] = 'nosniff'
            response.headers['X-Frame-Options'] = 'DENY'
            response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
            if request.is_secure:
                response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    @app.cli.command('create-db')
    def create_db():
        """Create all tables (use `flask db upgrade` for migrations)"""
        db.create_all()
        logger.info("Database tables created")

    with app.app_context():
        from . import models  # noqa: F401

        from .routes import auth_bp, consultation_bp, appointment_bp, messages_bp, health_bp
        app.register_blueprint(health_bp)
        app.register_blueprint(auth_bp)
        app.register_blueprint(consultation_bp)
        app.register_blueprint(appointment_bp)
        app.register_blueprint(messages_bp)

    return app
