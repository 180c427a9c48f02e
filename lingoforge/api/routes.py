"""
Flask routes orchestrator for the translation API

This module serves as a lightweight coordinator that registers
all route blueprints:

- blueprints/project_routes.py: Upload (file or URL), project access, entry updates, PO tools, glossary, export
- blueprints/translation_routes.py: SSE batch translation and cancellation
- blueprints/chat_routes.py: SSE project chat with editing tools
"""
import logging

from flask import jsonify

from lingoforge.core.adapters import FORMATS
from .blueprints import (
    create_chat_blueprint,
    create_project_blueprint,
    create_translation_blueprint,
)

logger = logging.getLogger(__name__)


def configure_routes(app, store):
    """
    Configure Flask routes by registering all blueprints

    Args:
        app: Flask application instance
        store: Project store
    """
    app.register_blueprint(create_project_blueprint(store))
    app.register_blueprint(create_translation_blueprint(store))
    app.register_blueprint(create_chat_blueprint(store))

    @app.route('/api/health', methods=['GET'])
    def health_check():
        return jsonify({"status": "ok"})

    @app.route('/api/formats', methods=['GET'])
    def list_formats():
        """Supported formats and their file extensions"""
        return jsonify({"formats": [descriptor.to_dict() for descriptor in FORMATS]})

    # Register error handlers
    _register_error_handlers(app)


def _register_error_handlers(app):
    """Register global error handlers"""

    @app.errorhandler(404)
    def route_not_found(error):
        return jsonify({"error": "API Endpoint not found"}), 404

    @app.errorhandler(413)
    def payload_too_large(error):
        return jsonify({"error": "Uploaded file is too large"}), 413

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.exception(f"Internal server error: {error}")
        return jsonify({"error": "Internal server error", "details": str(error)}), 500
