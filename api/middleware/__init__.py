"""
API Middleware Package.

Provides middleware for:
- Connection read/write timeouts
"""

from api.middleware.timeouts import ConnectionTimeoutMiddleware

__all__ = ["ConnectionTimeoutMiddleware"]
