# tradehub/routes/health.py
from datetime import datetime
import logging

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tradehub import __version__
from tradehub.models import db
from tradehub.services.records import MatchingSettings

health_bp = Blueprint('health', __name__)
logger = logging.getLogger(__name__)

CRITICAL_BLUEPRINTS = ('auth', 'tenders')


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Service health: database connectivity, matching configuration and
    registered blueprints. Answers 503 when the database is unreachable.
    """
    health_status = {
        'status': 'healthy',
        'app': 'TradeHub Tender API',
        'version': __version__,
        'timestamp': datetime.utcnow().isoformat() + 'Z',
        'checks': {}
    }
    status_code = 200

    # Database
    try:
        db.session.execute(text('SELECT 1'))
        db.session.commit()

        db_url = current_app.config.get('SQLALCHEMY_DATABASE_URI', '') or ''
        if 'sqlite' in db_url.lower():
            db_type = 'SQLite'
        elif 'postgres' in db_url.lower():
            db_type = 'PostgreSQL'
        else:
            db_type = 'Unknown'

        health_status['checks']['database'] = {
            'status': 'healthy',
            'type': db_type,
            'connected': True
        }
    except SQLAlchemyError as db_error:
        db.session.rollback()
        logger.error(f"Database health check failed: {db_error}")
        health_status['checks']['database'] = {
            'status': 'unhealthy',
            'connected': False,
            'error': str(db_error)
        }

    # Matching configuration
    try:
        settings = MatchingSettings.from_config(current_app.config)
        issues = []
        if settings.default_radius_km > settings.max_premium_radius_km:
            issues.append('DEFAULT_RADIUS_KM exceeds MAX_PREMIUM_RADIUS_KM')
        if settings.free_monthly_quote_limit < 0:
            issues.append('FREE_MONTHLY_QUOTE_LIMIT is negative')
        health_status['checks']['configuration'] = {
            'status': 'healthy' if not issues else 'warning',
            'issues': issues,
            'default_radius_km': settings.default_radius_km,
            'max_premium_radius_km': settings.max_premium_radius_km,
            'billing_timezone': settings.billing_timezone,
        }
    except (TypeError, ValueError) as config_error:
        logger.error(f"Configuration health check failed: {config_error}")
        health_status['checks']['configuration'] = {
            'status': 'unhealthy',
            'error': str(config_error)
        }

    # Application
    registered = [bp.name for bp in current_app.blueprints.values()]
    missing = [name for name in CRITICAL_BLUEPRINTS if name not in registered]
    health_status['checks']['application'] = {
        'status': 'healthy' if not missing else 'warning',
        'blueprints': {
            'registered': registered,
            'missing_critical': missing,
        },
        'routes': {
            'api_routes': len([rule for rule in current_app.url_map.iter_rules()
                               if rule.rule.startswith('/api/')])
        }
    }

    checks = health_status['checks'].values()
    if any(check.get('status') == 'unhealthy' for check in checks):
        health_status['status'] = 'unhealthy'
        status_code = 503
    elif any(check.get('status') == 'warning' for check in checks):
        health_status['status'] = 'degraded'

    logger.info(f"Health check completed: {health_status['status']}")
    return jsonify(health_status), status_code


@health_bp.route('/health/simple', methods=['GET'])
def simple_health_check():
    """Minimal check for load balancers."""
    try:
        db.session.execute(text('SELECT 1'))
        db.session.commit()
        return jsonify({
            'status': 'healthy',
            'message': 'Service is running'
        }), 200
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Simple health check failed: {e}")
        return jsonify({
            'status': 'unhealthy',
            'message': 'Database connection failed'
        }), 503
