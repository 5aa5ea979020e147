"""
Security module for the application.

Provides response security headers and an audit logger for
authentication and authorization events.
"""

from .security_headers import SecurityHeaders
from .security_logger import SecurityLogger
from .security_init import init_security

__all__ = [
    'SecurityHeaders',
    'SecurityLogger',
    'init_security',
]
