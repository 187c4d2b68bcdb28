"""
Security context detection for API Gateway events.
"""

from .security_context import (
    AUTO_TOKEN,
    SecurityContext,
    SecurityDescriptor,
    detect_security_context,
    resolve_security_context,
)

__all__ = [
    'AUTO_TOKEN',
    'SecurityContext',
    'SecurityDescriptor',
    'detect_security_context',
    'resolve_security_context',
]
