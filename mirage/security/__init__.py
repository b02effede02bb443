"""
Security Module

HTTP middleware shared by the Mirage application.
"""

from mirage.security.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

__all__ = [
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
]
