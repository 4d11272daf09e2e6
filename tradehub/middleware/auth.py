# tradehub/middleware/auth.py

from functools import wraps
import logging

from flask import g, jsonify
from flask_login import current_user

from tradehub.services.records import ViewerProfile

logger = logging.getLogger(__name__)


def active_user_required(f):
    """
    Reject accounts disabled after their session started.
    Goes under @login_required.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'error': 'Authentication required'}), 401

        if not current_user.is_active:
            logger.warning(f"Disabled account {current_user.id} tried {f.__name__}")
            return jsonify({'error': 'Your account is disabled. Contact TradeHub support.'}), 403

        return f(*args, **kwargs)
    return decorated_function


def current_viewer():
    """
    ViewerProfile for the signed-in user, or None for anonymous visitors.

    Built once per request and cached on flask.g.
    """
    if 'viewer' not in g:
        if current_user.is_authenticated and current_user.is_active:
            g.viewer = ViewerProfile.from_user(current_user)
        else:
            g.viewer = None
    return g.viewer
