# tradehub/middleware/cors.py

from flask import request
from flask_cors import CORS


def setup_cors(app):
    """
    CORS for the browser front end, driven by CORS_ORIGINS in the config.
    Session cookies are used for identity, so credentials are allowed.
    """
    CORS(
        app,
        origins=app.config.get('CORS_ORIGINS', []),
        supports_credentials=app.config.get('CORS_SUPPORTS_CREDENTIALS', True),
        methods=['GET', 'POST', 'OPTIONS'],
        allow_headers=[
            'Accept',
            'Authorization',
            'Content-Type',
            'Origin',
            'X-Requested-With',
        ],
        expose_headers=['Content-Type'],
        max_age=86400,
    )

    @app.after_request
    def add_api_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'

        # Quote counts must never be served from a cache
        if request.path.startswith('/api/'):
            response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
            response.headers['Pragma'] = 'no-cache'
            response.headers['Expires'] = '0'

        return response
