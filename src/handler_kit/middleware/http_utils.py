"""
Helpers for reading API Gateway REST (v1) and HTTP API (v2) proxy events.

Events are read through the powertools event source data classes; Accept
negotiation is done here.
"""

from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from aws_lambda_powertools.event_handler import CORSConfig
from aws_lambda_powertools.utilities.data_classes import APIGatewayProxyEvent, APIGatewayProxyEventV2

DEFAULT_HTTP_EVENT_TYPES: FrozenSet[str] = frozenset({'rest', 'http'})

BODYLESS_METHODS = frozenset({'GET', 'HEAD'})


def is_http_event_type(event_type: str, tokens: Iterable[str] = DEFAULT_HTTP_EVENT_TYPES) -> bool:
    """Check whether an event-type token gets the HTTP pipeline."""
    return isinstance(event_type, str) and event_type.strip().lower() in {t.lower() for t in tokens}


def as_proxy_event(event: Mapping[str, Any]) -> Union[APIGatewayProxyEvent, APIGatewayProxyEventV2]:
    """Wrap a proxy event in the powertools data class matching its payload version."""
    request_context = event.get('requestContext') or {}
    if event.get('version') == '2.0' or 'http' in request_context:
        return APIGatewayProxyEventV2(dict(event))
    return APIGatewayProxyEvent(dict(event))


def get_http_method(event: Any) -> str:
    """Upper-cased method for v1 and v2 events, empty when the event carries none."""
    if not isinstance(event, Mapping):
        return ''
    try:
        method = as_proxy_event(event).http_method
    except (KeyError, TypeError):
        return ''
    return (method or '').upper()


def normalize_headers(event: Any) -> Dict[str, str]:
    """Headers with lower-cased names; multi-value headers are joined with a comma."""
    if not isinstance(event, Mapping):
        return {}
    proxy = as_proxy_event(event)
    headers: Dict[str, str] = {}
    if isinstance(proxy, APIGatewayProxyEvent) and event.get('multiValueHeaders'):
        for name, values in proxy.multi_value_headers.items():
            if values:
                headers[name.lower()] = ','.join(str(value) for value in values)
    if event.get('headers'):
        for name, value in proxy.headers.items():
            if value is not None:
                headers[name.lower()] = str(value)
    return headers


def get_header(event: Any, name: str) -> Optional[str]:
    return normalize_headers(event).get(name.lower())


def media_type(content_type: Optional[str]) -> str:
    """`application/json; charset=utf-8` -> `application/json`."""
    return (content_type or '').split(';', 1)[0].strip().lower()


def is_json_media_type(content_type: Optional[str]) -> bool:
    value = media_type(content_type)
    return value == 'application/json' or value.endswith('+json')


def is_multipart(headers: Mapping[str, str]) -> bool:
    """Multipart form bodies need a boundary to be parseable."""
    content_type = headers.get('content-type')
    return (
        isinstance(content_type, str)
        and content_type.lower().startswith('multipart/form-data')
        and 'boundary=' in content_type
    )


def decode_body(event: Mapping[str, Any]) -> Optional[str]:
    """Request body as text, base64-decoded when the event says so."""
    body = event.get('body')
    if body is None or body == '':
        return None
    if isinstance(body, (bytes, bytearray)):
        return bytes(body).decode('utf-8')
    return as_proxy_event(event).decoded_body


def parse_accept(header: Optional[str]) -> List[Tuple[str, float]]:
    """Parse an Accept header into (media type, quality) pairs, best first."""
    if not header:
        return []
    accepted: List[Tuple[str, float]] = []
    for part in header.split(','):
        pieces = [piece.strip() for piece in part.split(';')]
        if not pieces[0]:
            continue
        quality = 1.0
        for param in pieces[1:]:
            key, _, value = param.partition('=')
            if key.strip().lower() == 'q':
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0
        accepted.append((pieces[0].lower(), quality))
    # sorted() is stable, so equal qualities keep header order
    return sorted(accepted, key=lambda item: item[1], reverse=True)


def media_type_matches(pattern: str, candidate: str) -> bool:
    if pattern == '*/*':
        return True
    pattern_type, _, pattern_subtype = pattern.partition('/')
    candidate_type, _, candidate_subtype = candidate.partition('/')
    if pattern_type != candidate_type:
        return False
    return pattern_subtype in ('*', candidate_subtype)


def negotiate_media_types(accept: Optional[str], available: Iterable[str]) -> List[str]:
    """Available media types acceptable to the client, in client preference order."""
    available = [media_type(item) for item in available]
    accepted = parse_accept(accept)
    if not accepted:
        return list(available)
    preferred: List[str] = []
    for pattern, quality in accepted:
        if quality <= 0:
            continue
        for candidate in available:
            if candidate not in preferred and media_type_matches(pattern, candidate):
                preferred.append(candidate)
    return preferred


def cors_headers(config: Optional[Union[CORSConfig, bool]], request_headers: Mapping[str, str]) -> Dict[str, str]:
    """CORS response headers for the request origin; none when CORS is off or the request has no Origin."""
    origin = request_headers.get('origin')
    if not isinstance(config, CORSConfig) or not origin:
        return {}
    return config.to_dict(origin)
