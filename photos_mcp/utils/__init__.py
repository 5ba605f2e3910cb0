"""Utility functions for Google Photos MCP tools."""

from .auth import OAuthManager, load_client_credentials
from .filters import build_search_body, content_categories, parse_date

__all__ = [
    "OAuthManager",
    "load_client_credentials",
    "build_search_body",
    "content_categories",
    "parse_date",
]
