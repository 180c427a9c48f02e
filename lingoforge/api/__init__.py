"""
HTTP API (Flask)
"""
from .project_store import ProjectStore, get_project_store
from .routes import configure_routes

__all__ = ['ProjectStore', 'get_project_store', 'configure_routes']
