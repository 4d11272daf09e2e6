# tradehub/routes/auth.py
from datetime import datetime
import logging

from flask import Blueprint, request, jsonify, session
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from tradehub.middleware.auth import current_viewer
from tradehub.models import db, User

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)


def create_error_response(message, status_code=500):
    return jsonify({
        'error': message,
        'status_code': status_code,
        'timestamp': datetime.utcnow().isoformat()
    }), status_code


def _viewer_summary(viewer):
    return {
        'trade': viewer.trade,
        'is_premium': viewer.is_premium,
        'abn_verified': viewer.abn_verified,
        'billing_mode': viewer.billing_mode,
    }


@auth_bp.route('/login', methods=['POST'])
def login():
    """Start a session for a username/password pair."""
    data = request.get_json(silent=True)
    if not data:
        logger.warning("Login request with no JSON data")
        return create_error_response("No data provided", 400)

    username = (data.get('username') or '').strip()
    password = data.get('password') or ''

    if not username or not password:
        return create_error_response("Username and password are required", 400)

    try:
        user = User.query.filter_by(username=username).first()
    except SQLAlchemyError as db_error:
        logger.error(f"Database error during user lookup: {db_error}")
        return create_error_response("Database error during authentication", 503)

    if not user or not user.check_password(password):
        logger.warning(f"Login failed for username '{username}'")
        return create_error_response("Invalid username or password", 401)

    if not user.is_active:
        logger.warning(f"Login failed: User '{username}' is inactive")
        return create_error_response("Account is disabled", 401)

    try:
        user.last_login = datetime.utcnow()
        db.session.commit()
    except SQLAlchemyError as update_error:
        db.session.rollback()
        logger.error(f"Database error updating last login: {update_error}")

    login_user(user, remember=True)
    logger.info(f"Login successful for user '{username}' (ID: {user.id})")

    return jsonify({
        'message': 'Login successful',
        'user': user.to_dict(),
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """End the session. Safe to call when already signed out."""
    was_authenticated = current_user.is_authenticated
    if was_authenticated:
        logger.info(f"Logout for user {current_user.username} (ID: {current_user.id})")

    logout_user()
    session.clear()

    return jsonify({
        'message': 'Logout successful',
        'success': True,
        'was_authenticated': was_authenticated,
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@auth_bp.route('/me', methods=['GET'])
@login_required
def get_current_user():
    """The signed-in user plus the matching profile derived from it."""
    viewer = current_viewer()
    user_data = current_user.to_dict()
    user_data['viewer'] = _viewer_summary(viewer) if viewer else None
    return jsonify({'user': user_data}), 200
