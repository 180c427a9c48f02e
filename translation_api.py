"""
Flask web server for the localization translation API
"""
import logging
from datetime import datetime
from flask import Flask
from flask_cors import CORS

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Reduce verbosity of werkzeug (Flask HTTP server logs)
logging.getLogger('werkzeug').setLevel(logging.WARNING)

from lingoforge.config import (
    API_ENDPOINT,
    DEFAULT_MODEL,
    LLM_PROVIDER,
    MAX_UPLOAD_BYTES,
    PORT,
    HOST,
    DEBUG_MODE
)
from lingoforge.api import configure_routes, get_project_store
from lingoforge.core.adapters import FORMATS


def create_app(store=None):
    """Build the Flask application; tests pass their own ProjectStore"""
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_BYTES
    CORS(app)
    configure_routes(app, store or get_project_store())
    return app


def validate_configuration():
    """Validate required configuration before starting server"""
    issues = []

    if not PORT or not isinstance(PORT, int):
        issues.append("PORT must be a valid integer")
    if not DEFAULT_MODEL:
        issues.append("DEFAULT_MODEL must be configured")
    if LLM_PROVIDER not in ('openai', 'ollama'):
        issues.append("LLM_PROVIDER must be 'openai' or 'ollama'")

    if issues:
        logger.error("=" * 70)
        logger.error("CONFIGURATION ERROR")
        logger.error("=" * 70)
        for issue in issues:
            logger.error(f"   - {issue}")
        logger.error("   Create a .env file from .env.example and restart")
        logger.error("=" * 70)
        raise ValueError("Configuration validation failed. See errors above.")

    logger.info("Configuration validated successfully")


app = create_app()


if __name__ == '__main__':
    validate_configuration()

    logger.info("=" * 60)
    logger.info(f"LINGOFORGE TRANSLATION SERVER (Version {datetime.now().strftime('%Y%m%d-%H%M')})")
    logger.info("=" * 60)
    logger.info(f"   - LLM: {LLM_PROVIDER} / {DEFAULT_MODEL} at {API_ENDPOINT}")
    logger.info(f"   - API: http://{HOST}:{PORT}/api/")
    logger.info(f"   - Health Check: http://{HOST}:{PORT}/api/health")
    logger.info(f"   - Supported formats: {', '.join(d.display_name for d in FORMATS)}")

    if HOST == '0.0.0.0':
        logger.warning("Server is binding to 0.0.0.0 (all network interfaces)")
        logger.warning("   For production, use a proper WSGI server like gunicorn:")
        logger.warning("   gunicorn -w 1 --threads 8 --bind 0.0.0.0:5000 translation_api:app")

    app.run(debug=DEBUG_MODE, host=HOST, port=PORT, threaded=True)
