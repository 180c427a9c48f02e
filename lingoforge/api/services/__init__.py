"""
API Services
"""
from .url_fetch import FetchedPage, fetch_html, is_private_ip, validate_url

__all__ = ['FetchedPage', 'fetch_html', 'is_private_ip', 'validate_url']
