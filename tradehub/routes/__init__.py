"""
Routes package for the TradeHub tender API.
Each module exposes one Flask blueprint; BLUEPRINTS lists them with their URL prefixes.
"""

from .auth import auth_bp
from .health import health_bp
from .tenders import tenders_bp

BLUEPRINTS = (
    (auth_bp, '/api/auth'),
    (tenders_bp, '/api/tenders'),
    (health_bp, '/api'),
)

__all__ = [
    'auth_bp',
    'health_bp',
    'tenders_bp',
    'BLUEPRINTS',
]
