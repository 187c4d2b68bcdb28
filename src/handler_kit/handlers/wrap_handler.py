"""
Handler wrapper - turns a function declaration and its business function into
a Lambda entrypoint.

The pipeline is computed once, when the handler is wrapped. Each invocation
gets a fresh InvocationRecord and runs:

1. `before` steps (captured errors stop the phase)
2. the business function, unless a response or an error already exists
3. `after` steps, unless a strict validation failure made the error fatal
4. `on_error` steps when an error was captured

HTTP-flavored functions always return a shaped `{statusCode, headers, body}`
response. Other triggers return the business result or re-raise the original
error so the platform's retry semantics stay intact.
"""

import functools
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Optional

from aws_lambda_powertools.metrics import MetricUnit

from handler_kit.handlers.models.env_vars import get_kit_env_vars
from handler_kit.handlers.utils.env import resolve_env
from handler_kit.handlers.utils.errors import ConfigurationError, InternalInvariantError
from handler_kit.handlers.utils.observability import logger as default_logger
from handler_kit.handlers.utils.observability import metrics, tracer
from handler_kit.middleware.combine import as_unit
from handler_kit.middleware.customization import (
    ProfileRegistry,
    compute_http_middleware,
    compute_internal_middleware,
)
from handler_kit.middleware.http_utils import DEFAULT_HTTP_EVENT_TYPES, is_http_event_type
from handler_kit.models.descriptor import FunctionDescriptor, HandlerOptions
from handler_kit.models.options import CustomizationOptions, StackOptions
from handler_kit.models.record import InvocationRecord

BusinessFunction = Callable[[Any, Any, HandlerOptions], Any]
LambdaHandler = Callable[[Any, Any], Any]


def wrap_handler(
    descriptor: FunctionDescriptor,
    business_fn: BusinessFunction,
    options: Optional[CustomizationOptions] = None,
    *,
    http_event_types: Optional[Iterable[str]] = None,
    profiles: Optional[ProfileRegistry] = None,
    logger: Any = None,
) -> LambdaHandler:
    """
    Wrap a business function with the pipeline derived from its descriptor.

    Args:
        descriptor: The function declaration
        business_fn: Called as `business_fn(event, context, HandlerOptions)`
        options: Customization overriding `descriptor.customization`
        http_event_types: Extra event-type tokens treated as HTTP
        profiles: Profile registry, defaults to the registered profiles
        logger: Logger for the pipeline and the business function

    Returns:
        A `(event, context)` Lambda handler

    Raises:
        ConfigurationError: The pipeline cannot be assembled for this descriptor, or its
            declared environment is missing or invalid
    """
    kit_env = get_kit_env_vars()
    # env and argument tokens add to the defaults, never replace them
    tokens = DEFAULT_HTTP_EVENT_TYPES | kit_env.http_event_type_tokens | frozenset(http_event_types or ())
    log = logger or default_logger
    base_options = StackOptions(include_error_details=kit_env.include_error_details)

    http = is_http_event_type(descriptor.event_type, tokens)
    if http:
        phases = compute_http_middleware(
            descriptor, options, profiles=profiles, base_options=base_options, logger=log
        )
    elif options is not None and not options.is_empty:
        raise ConfigurationError(
            f"Function '{descriptor.function_name}' has event type '{descriptor.event_type}', "
            'which does not take HTTP customization.'
        )
    else:
        phases = compute_internal_middleware(descriptor, base_options=base_options, logger=log)

    pipeline = as_unit(phases)
    # resolved once, a bad environment fails the cold start
    env = MappingProxyType(resolve_env(descriptor.env_model, descriptor.env_keys))

    @tracer.capture_method(capture_response=False)
    def invoke_business(record: InvocationRecord) -> None:
        handler_options = HandlerOptions(env=env, logger=log, security_context=record.security_context)
        record.respond(business_fn(record.payload, record.context, handler_options))

    @functools.wraps(business_fn)
    def handler(event: Any, context: Any) -> Any:
        record = InvocationRecord(event=event, context=context)
        log.debug(
            'Invocation started',
            extra={'function_name': descriptor.function_name, 'event_type': descriptor.event_type, 'http': http},
        )

        try:
            if pipeline.before is not None:
                pipeline.before(record)
        except Exception as exc:
            record.fail(exc)

        if record.responded and record.error is None:
            log.debug('Invocation answered before the business function', extra={'function_name': descriptor.function_name})
            return record.response

        if record.error is None:
            try:
                invoke_business(record)
            except Exception as exc:
                record.fail(exc)

        try:
            if pipeline.after is not None and not record.fatal:
                pipeline.after(record)
        except Exception as exc:
            record.fail(exc)

        if record.error is not None:
            # a response produced before the failure must not leak out
            record.clear_response()
            if pipeline.on_error is not None:
                pipeline.on_error(record)

        if not record.responded:
            metrics.add_metric(name='InternalInvariantError', unit=MetricUnit.Count, value=1)
            raise InternalInvariantError(
                f"Pipeline for '{descriptor.function_name}' finished without a response or a mapped error"
            )

        log.debug(
            'Invocation completed',
            extra={'function_name': descriptor.function_name, 'error': record.error is not None},
        )
        return record.response

    handler.descriptor = descriptor
    handler.pipeline = phases
    return handler


def describe_pipeline(handler: LambdaHandler) -> Dict[str, Any]:
    """Step ids of a wrapped handler, per phase, for documentation and debugging."""
    phases = handler.pipeline
    return {phase.value: phases.ids(phase) for phase, _ in phases.items()}
