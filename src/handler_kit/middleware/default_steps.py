"""
Default pipeline steps and the safe-defaults builder.

Every step is a plain callable taking the InvocationRecord. Steps in the
`after` phase leave records alone when an error was captured or nothing was
responded, so they are safe to run unconditionally.
"""

import json
from typing import Any, Callable, List, Mapping, Optional, Union

from aws_lambda_powertools.event_handler import CORSConfig
from pydantic_core import to_jsonable_python

from handler_kit.handlers.utils.errors import (
    BusinessError,
    ValidationError,
    create_api_response,
    format_error_response,
    get_http_status_code,
    log_error_metrics,
)
from handler_kit.handlers.utils.observability import logger as default_logger
from handler_kit.middleware.http_utils import (
    BODYLESS_METHODS,
    cors_headers,
    decode_body,
    get_http_method,
    is_json_media_type,
    is_multipart,
    negotiate_media_types,
    normalize_headers,
)
from handler_kit.middleware.transform_utils import PhasedSteps, Phase, StepOp, tag_step
from handler_kit.middleware.validation import SchemaValidator, dump_validated
from handler_kit.models.options import StackOptions
from handler_kit.models.record import InvocationRecord
from handler_kit.security.security_context import SecurityContext, resolve_security_context

DEFAULT_STACK_OPTIONS = StackOptions(
    strict_validation=False,
    cors=CORSConfig(allow_origin='*', allow_credentials=True),
    include_error_details=False,
)


def json_dumps(value: Any) -> str:
    return json.dumps(value, separators=(',', ':'), default=to_jsonable_python)


def looks_shaped(response: Any) -> bool:
    """A response that already carries an HTTP status is treated as an envelope."""
    return isinstance(response, Mapping) and isinstance(response.get('statusCode'), int)


def request_headers(record: InvocationRecord) -> Mapping[str, str]:
    headers = record.internal.get('headers')
    if headers is None:
        headers = normalize_headers(record.event)
    return headers


def http_payload(record: InvocationRecord) -> Any:
    """The value HTTP input schemas validate: the parsed body, else query and path parameters."""
    if 'parsed_body' in record.internal:
        return record.internal['parsed_body']
    event = record.event if isinstance(record.event, Mapping) else {}
    return {**(event.get('queryStringParameters') or {}), **(event.get('pathParameters') or {})}


def make_head(content_type: str) -> StepOp:
    def short_circuit_head(record: InvocationRecord) -> None:
        if get_http_method(record.event) == 'HEAD':
            record.respond(create_api_response(200, '{}', content_type), short_circuit=True)

    return short_circuit_head


def make_header_normalizer() -> StepOp:
    def normalize_request_headers(record: InvocationRecord) -> None:
        record.internal['headers'] = normalize_headers(record.event)

    return normalize_request_headers


def make_content_negotiation(content_type: str) -> StepOp:
    def negotiate_content(record: InvocationRecord) -> None:
        accept = request_headers(record).get('accept')
        preferred = negotiate_media_types(accept, [content_type])
        if not preferred:
            record.fail(BusinessError(
                f'None of the accepted media types can be produced: {accept}',
                status_code=406,
                error_code='NOT_ACCEPTABLE',
            ))
            return
        record.internal['preferred_media_types'] = preferred

    return negotiate_content


def make_multipart_detector() -> StepOp:
    def detect_multipart(record: InvocationRecord) -> None:
        if not is_multipart(request_headers(record)):
            return
        record.internal['multipart'] = True
        try:
            # handed on unparsed; form parsing belongs to the business function
            record.internal['parsed_body'] = decode_body(record.event)
        except ValueError as exc:
            record.fail(ValidationError(
                'Request body cannot be decoded',
                source='event',
                field_errors=[{'field': 'body', 'message': str(exc), 'type': 'body_decoding'}],
            ))

    return detect_multipart


def make_json_body_parser() -> StepOp:
    def parse_json_body(record: InvocationRecord) -> None:
        event = record.event
        if not isinstance(event, Mapping) or record.internal.get('multipart'):
            return
        if get_http_method(event) in BODYLESS_METHODS:
            return
        try:
            raw = decode_body(event)
            if raw is None:
                return
            content_type = request_headers(record).get('content-type')
            if content_type is not None and not is_json_media_type(content_type):
                record.internal['parsed_body'] = raw
                return
            parsed = json.loads(raw)
        except ValueError as exc:
            record.fail(ValidationError(
                'Request body is not valid JSON',
                source='event',
                field_errors=[{'field': 'body', 'message': str(exc), 'type': 'json_invalid'}],
            ))
            return
        record.internal['parsed_body'] = parsed
        record.event = {**event, 'body': parsed}

    return parse_json_body


def make_security_context(token: str) -> StepOp:
    # unknown tokens fail while the pipeline is assembled
    SecurityContext.from_token(token)

    def attach_security_context(record: InvocationRecord) -> None:
        record.security_context = resolve_security_context(token, record.event)

    return attach_security_context


def make_event_validator(schema: Any, *, http: bool, strict: bool = False, logger: Any = None) -> StepOp:
    validator = SchemaValidator(schema, source='event', strict=strict, logger=logger)

    def validate_event(record: InvocationRecord) -> None:
        payload = http_payload(record) if http else record.event
        try:
            record.accept(validator.validate(payload))
        except ValidationError as exc:
            record.fail(exc, fatal=strict)

    return validate_event


def make_response_validator(schema: Any, *, http: bool, strict: bool = False, logger: Any = None) -> StepOp:
    validator = SchemaValidator(schema, source='response', strict=strict, logger=logger)

    def validate_response(record: InvocationRecord) -> None:
        if record.error is not None or not record.responded:
            return
        response = record.response
        shaped = http and looks_shaped(response)
        if shaped and isinstance(response.get('body'), str):
            # already serialized by the business function
            return
        value = response.get('body') if shaped else response
        try:
            validated = dump_validated(validator.validate(value))
        except ValidationError as exc:
            record.fail(exc, fatal=strict)
            return
        record.respond({**response, 'body': validated} if shaped else validated)

    return validate_response


def make_shape(content_type: str) -> StepOp:
    def shape_response(record: InvocationRecord) -> None:
        if record.error is not None or not record.responded:
            return
        response = record.response
        if looks_shaped(response):
            shaped = {**response, 'headers': dict(response.get('headers') or {})}
            shaped.setdefault('body', None)
        else:
            shaped = {'statusCode': 200, 'headers': {}, 'body': {} if response is None else response}
        if not any(name.lower() == 'content-type' for name in shaped['headers']):
            shaped['headers']['Content-Type'] = content_type
        record.respond(shaped)

    return shape_response


def make_cors(config: Optional[Union[CORSConfig, bool]]) -> StepOp:
    def add_cors_headers(record: InvocationRecord) -> None:
        if record.error is not None or not looks_shaped(record.response):
            return
        headers = cors_headers(config, request_headers(record))
        if headers:
            record.response['headers'] = {**headers, **(record.response.get('headers') or {})}

    return add_cors_headers


def make_serializer(dumps: Optional[Callable[[Any], str]] = None) -> StepOp:
    dumps = dumps or json_dumps

    def serialize_response(record: InvocationRecord) -> None:
        if record.error is not None or not looks_shaped(record.response):
            return
        body = record.response.get('body')
        if isinstance(body, str):
            return
        record.response['body'] = '' if body is None else dumps(body)

    return serialize_response


def make_error_handler(
    *,
    http: bool,
    content_type: str = 'application/json',
    cors: Optional[Union[CORSConfig, bool]] = None,
    include_details: bool = False,
    dumps: Optional[Callable[[Any], str]] = None,
) -> StepOp:
    dumps = dumps or json_dumps
    error_content_type = content_type if is_json_media_type(content_type) else 'application/json'

    def handle_error(record: InvocationRecord) -> None:
        error = record.error
        if error is None:
            return
        log_error_metrics(error)
        if not http:
            # queue and step triggers own their retry semantics
            raise error

        headers = cors_headers(cors, request_headers(record))
        provided = getattr(error, 'headers', None)
        if isinstance(provided, Mapping):
            headers.update(provided)
        record.respond(create_api_response(
            status_code=get_http_status_code(error),
            body=dumps(format_error_response(error, include_details=include_details)),
            content_type=error_content_type,
            headers=headers,
        ))

    return handle_error


def build_safe_defaults(
    content_type: str,
    event_schema: Any = None,
    response_schema: Any = None,
    security_context: Optional[str] = None,
    *,
    http: bool = True,
    options: Optional[StackOptions] = None,
    logger: Any = None,
) -> PhasedSteps:
    """
    Build the baseline pipeline for a function.

    Args:
        content_type: Media type produced by the function
        event_schema: Optional schema for the incoming payload
        response_schema: Optional schema for the business result
        security_context: Optional security-context token (HTTP only)
        http: Whether HTTP-flavored steps are included
        options: Stack options patch applied over the kit defaults
        logger: Logger handed to validation steps

    Returns:
        Phased steps with a terminal error handler in `on_error`
    """
    options = DEFAULT_STACK_OPTIONS.merged(options)
    logger = logger or options.logger or default_logger
    strict = bool(options.strict_validation)

    before: List = []
    after: List = []

    if http:
        before.extend([
            tag_step('head', Phase.BEFORE, make_head(content_type)),
            tag_step('header-normalizer', Phase.BEFORE, make_header_normalizer()),
            tag_step('content-negotiation', Phase.BEFORE, make_content_negotiation(content_type)),
            tag_step('multipart', Phase.BEFORE, make_multipart_detector()),
            tag_step('json-body-parser', Phase.BEFORE, make_json_body_parser()),
        ])
        if security_context:
            before.append(tag_step('security-context', Phase.BEFORE, make_security_context(security_context)))

    if event_schema is not None:
        before.append(tag_step(
            'zod-before', Phase.BEFORE, make_event_validator(event_schema, http=http, strict=strict, logger=logger)
        ))
    if response_schema is not None:
        after.append(tag_step(
            'zod-after', Phase.AFTER, make_response_validator(response_schema, http=http, strict=strict, logger=logger)
        ))

    if http:
        after.extend([
            tag_step('shape', Phase.AFTER, make_shape(content_type)),
            tag_step('cors', Phase.AFTER, make_cors(options.cors)),
            tag_step('serializer', Phase.AFTER, make_serializer(options.json_dumps)),
        ])

    on_error = [tag_step('error-handler', Phase.ON_ERROR, make_error_handler(
        http=http,
        content_type=content_type,
        cors=options.cors,
        include_details=bool(options.include_error_details),
        dumps=options.json_dumps,
    ))]

    return PhasedSteps(before=tuple(before), after=tuple(after), on_error=tuple(on_error))
