"""
API Routes
"""
from .chat_routes import create_chat_blueprint
from .project_routes import create_project_blueprint
from .translation_routes import create_translation_blueprint

__all__ = [
    'create_chat_blueprint',
    'create_project_blueprint',
    'create_translation_blueprint',
]
