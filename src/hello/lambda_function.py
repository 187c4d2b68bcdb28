"""
Hello function - greets the caller over API Gateway.

The function is declared once with `define_function`; the kit derives the
validated, middleware-wrapped entrypoint from that declaration.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Optional

from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import BaseModel, Field

from handler_kit import FunctionDescriptor, HandlerOptions, define_function
from handler_kit.handlers.utils.observability import logger, metrics, tracer


class HelloRequest(BaseModel):
    """Body of a hello request."""

    name: Annotated[Optional[str], Field(
        description='Name of the caller',
        min_length=1,
        max_length=64,
        examples=['Ada']
    )] = None


class HelloResponse(BaseModel):
    """Greeting returned to the caller."""

    message: Annotated[str, Field(description='Greeting message')]
    version: Annotated[str, Field(description='Deployed application version')]
    security_context: Annotated[Optional[str], Field(
        description='Security context the request was classified as'
    )] = None
    timestamp: Annotated[datetime, Field(description='Time the greeting was produced')]


class HelloEnvVars(BaseModel):
    """Environment variables read by the hello function."""

    APP_VERSION: Annotated[str, Field(
        description='Deployed application version'
    )] = 'v1.0.0'


hello = define_function(FunctionDescriptor(
    function_name='hello',
    event_type='rest',
    method='post',
    base_path='hello',
    description='Greet the caller',
    event_schema=HelloRequest,
    response_schema=HelloResponse,
    security_context='auto',
    env_model=HelloEnvVars,
    env_keys=('APP_VERSION',),
))


@tracer.capture_method
def say_hello(event: HelloRequest, context: LambdaContext, options: HandlerOptions) -> Dict[str, Any]:
    """Build the greeting for a validated request."""
    name = event.name or 'world'
    security_context = options.security_context.context.value if options.security_context else None

    options.logger.info('Processing hello request', extra={'caller': name, 'security_context': security_context})
    metrics.add_metric(name='HelloCount', unit=MetricUnit.Count, value=1)

    return {
        'message': f'Hello, {name}!',
        'version': options.env['APP_VERSION'],
        'security_context': security_context,
        'timestamp': datetime.now(timezone.utc),
    }


handle_hello = hello.handler(say_hello)


@metrics.log_metrics(capture_cold_start_metric=True)
@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return handle_hello(event, context)
