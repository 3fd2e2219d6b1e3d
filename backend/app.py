"""
Library Matcher API Backend
A Flask API for reviewing and saving Spotify matches for library songs
"""

from flask import Flask, request
from flask_cors import CORS
import atexit
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from config import configure_logging, set_db_pooling_mode

# Set pooling mode BEFORE the first database query
set_db_pooling_mode()

import db_utils as db_tools

logger = configure_logging()


def create_app(matcher=None):
    """
    Create the Flask application

    Args:
        matcher: SpotifyMatcher used by the song routes (built from the
            environment on first use if not provided)

    Returns:
        Flask application instance
    """
    app = Flask(__name__)
    CORS(app)
    app.extensions['spotify_matcher'] = matcher

    from routes import register_blueprints
    register_blueprints(app)

    # Request/response logging
    @app.before_request
    def log_request():
        """Log incoming requests"""
        logger.info(f"{request.method} {request.path}")

    @app.after_request
    def log_response(response):
        """Log response status"""
        logger.info(f"{request.method} {request.path} - {response.status_code}")
        return response

    return app


app = create_app()

logger.info(f"Spotify credentials present: {bool(os.environ.get('SPOTIFY_CLIENT_ID'))}")
logger.info(f"Flask app initialized in PID {os.getpid()}")


def cleanup_connections():
    """Close the connection pool on shutdown"""
    logger.info("Shutting down connection pool...")
    db_tools.close_connection_pool()


atexit.register(cleanup_connections)


if __name__ == '__main__':
    logger.info("Starting Flask application directly...")
    logger.info("Database connection pool will initialize on first request")
    app.run(debug=True, host='0.0.0.0', port=int(os.environ.get('PORT', '5001')))
