"""
Shared dependencies for FastAPI endpoints.

"""

from app.core.dependencies.db import SessionDep, get_async_session
from app.core.dependencies.services import ServicesDep, get_services

__all__ = [
    # Dependency functions
    "get_async_session",
    "get_services",
    # Type aliases
    "SessionDep",
    "ServicesDep",
]
