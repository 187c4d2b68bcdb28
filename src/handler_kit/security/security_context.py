"""
Security context detection for API Gateway events.

Authentication happens in API Gateway; this module only classifies an already
authenticated request and attaches what the authorizer resolved.

- `my`: the request carries an authorizer (user authenticated)
- `private`: the request carries an API key
- `public`: neither
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from handler_kit.handlers.utils.errors import ConfigurationError

# declared token asking for detection at invocation time
AUTO_TOKEN = 'auto'


class SecurityContext(str, Enum):
    """Security context of a request."""
    MY = 'my'
    PRIVATE = 'private'
    PUBLIC = 'public'

    @classmethod
    def from_token(cls, token: str) -> Optional['SecurityContext']:
        """Parse a declared token; `auto` returns None."""
        if token == AUTO_TOKEN:
            return None
        try:
            return cls(token)
        except ValueError:
            raise ConfigurationError(
                f"Unknown security context '{token}'. Expected one of: "
                f"{', '.join([c.value for c in cls] + [AUTO_TOKEN])}."
            ) from None


@dataclass(frozen=True)
class SecurityDescriptor:
    """Security information handed to business functions."""

    context: SecurityContext
    detected: SecurityContext
    principal_id: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)


def is_v1(event: Any) -> bool:
    """REST API (v1) events carry `requestContext.identity`."""
    if not isinstance(event, Mapping):
        return False
    request_context = event.get('requestContext')
    return isinstance(request_context, Mapping) and 'identity' in request_context


def _header(headers: Optional[Mapping[str, Any]], name: str) -> Optional[str]:
    for key, value in (headers or {}).items():
        if key.lower() == name:
            return value
    return None


def _authorizer(event: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    request_context = event.get('requestContext') or {}
    return request_context.get('authorizer') or None


def detect_security_context(event: Any) -> SecurityContext:
    """Detect the security context of an API Gateway v1 or v2 event."""
    if not isinstance(event, Mapping):
        return SecurityContext.PUBLIC

    if _authorizer(event):
        return SecurityContext.MY

    if is_v1(event):
        identity = event['requestContext']['identity'] or {}
        if identity.get('apiKeyId') or identity.get('apiKey'):
            return SecurityContext.PRIVATE
        return SecurityContext.PUBLIC

    # HTTP APIs have no usage plans; API keys arrive as a plain header
    if _header(event.get('headers'), 'x-api-key'):
        return SecurityContext.PRIVATE
    return SecurityContext.PUBLIC


def _claims(authorizer: Mapping[str, Any]) -> Dict[str, Any]:
    # v2 JWT authorizers nest claims under `jwt`, v1 Cognito authorizers under `claims`
    jwt = authorizer.get('jwt')
    if isinstance(jwt, Mapping) and isinstance(jwt.get('claims'), Mapping):
        return dict(jwt['claims'])
    if isinstance(authorizer.get('claims'), Mapping):
        return dict(authorizer['claims'])
    if isinstance(authorizer.get('lambda'), Mapping):
        return dict(authorizer['lambda'])
    return {}


def resolve_security_context(token: str, event: Any) -> SecurityDescriptor:
    """
    Resolve the security descriptor for an invocation.

    Args:
        token: Declared security context, or `auto` to use the detected one
        event: The raw API Gateway event

    Returns:
        Security descriptor with the declared (or detected) context and any
        principal and claims resolved by the authorizer
    """
    declared = SecurityContext.from_token(token)
    detected = detect_security_context(event)

    authorizer = _authorizer(event) if isinstance(event, Mapping) else None
    claims = _claims(authorizer) if authorizer else {}
    principal_id = None
    if authorizer:
        principal_id = authorizer.get('principalId') or claims.get('sub')

    return SecurityDescriptor(
        context=declared or detected,
        detected=detected,
        principal_id=principal_id,
        claims=claims,
    )
