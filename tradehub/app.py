import os
import logging

from flask import Flask, request, jsonify
from flask_login import LoginManager

from tradehub import __version__
from tradehub.config import config, get_config_name
from tradehub.middleware.cors import setup_cors
from tradehub.models import db, User
from tradehub.routes import BLUEPRINTS
from tradehub.services.exceptions import StoreError, ValidationError

LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'


def api_error(code, error, status, **extra):
    """JSON error body used by every app-level handler"""
    body = {'error': error, 'code': code}
    body.update(extra)
    return jsonify(body), status


def _configure_logging(app, config_name):
    if app.debug:
        app.logger.setLevel(logging.DEBUG)
        return

    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
    if config_name == 'production':
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app.logger.addHandler(handler)
        app.logger.info("Production logging configured")


def _setup_login(app):
    login_manager = LoginManager()
    login_manager.init_app(app)
    login_manager.session_protection = 'strong'

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        """Answer with JSON 401; there is no login page to redirect to"""
        app.logger.warning(f"Unauthenticated request to {request.path} from {request.remote_addr}")
        return api_error('UNAUTHORIZED', 'Authentication required', 401,
                         message='Sign in to use this endpoint')

    @login_manager.user_loader
    def load_user(user_id):
        try:
            return db.session.get(User, int(user_id))
        except (ValueError, TypeError):
            app.logger.warning(f"Ignoring malformed session user id {user_id!r}")
            return None

    return login_manager


def _register_error_handlers(app):

    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        extra = {'field': error.field} if error.field else {}
        return api_error('VALIDATION_ERROR', error.message, 400, **extra)

    @app.errorhandler(StoreError)
    def handle_store_error(error):
        db.session.rollback()
        app.logger.error(f"Store failure on {request.method} {request.path}: {error}")
        return api_error('STORE_UNAVAILABLE', 'The service is temporarily unavailable. Please try again.', 503,
                         retry=True)

    @app.errorhandler(404)
    def not_found(error):
        return api_error('NOT_FOUND', 'Not Found', 404, message=f'No endpoint at {request.path}')

    @app.errorhandler(405)
    def method_not_allowed(error):
        return api_error('METHOD_NOT_ALLOWED', 'Method Not Allowed', 405,
                         message=f'{request.method} is not supported on {request.path}')

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f"Unhandled error on {request.method} {request.path}: {error}")
        return api_error('INTERNAL_ERROR', 'Internal Server Error', 500,
                         message='An unexpected error occurred. Please try again later.')


def create_app(config_name=None, test_config=None):
    """
    Build the TradeHub API.

    Args:
        config_name (str, optional): 'development', 'production' or 'testing';
            taken from the environment when omitted
        test_config (dict, optional): settings applied over the chosen config
    """
    config_name = config_name or get_config_name()

    app = Flask(__name__)
    app.config.from_object(config[config_name]())
    if test_config:
        app.config.update(test_config)
    _configure_logging(app, config_name)

    db.init_app(app)
    setup_cors(app)
    _setup_login(app)

    for blueprint, url_prefix in BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=url_prefix)

    _register_error_handlers(app)

    @app.route('/')
    def index():
        return jsonify({
            'message': 'TradeHub Tender API',
            'version': __version__,
            'environment': config_name,
            'endpoints': {
                'health': '/api/health',
                'auth': '/api/auth',
                'tenders': '/api/tenders',
            },
        })

    with app.app_context():
        db.create_all()

    app.logger.info(f"TradeHub Tender API ready ({config_name}, {len(BLUEPRINTS)} blueprints)")
    return app


if __name__ == '__main__':
    local_app = create_app()
    local_app.run(
        host='0.0.0.0',
        port=int(os.environ.get('PORT', 5000)),
        debug=local_app.config.get('DEBUG', False),
    )
