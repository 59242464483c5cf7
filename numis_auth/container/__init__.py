"""
Dependency injection container module.
"""

from .container import AuthContainer, create_http_client, create_session_store

__all__ = ["AuthContainer", "create_http_client", "create_session_store"]
