"""
Hello step - greeting task invoked from a Step Functions state machine.

Non-HTTP functions get schema validation only; failures are re-raised so the
state machine's retry and catch rules apply.
"""

from typing import Annotated, Any, Dict

from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import BaseModel, Field

from handler_kit import FunctionDescriptor, HandlerOptions, define_function
from handler_kit.handlers.utils.observability import logger, metrics, tracer


class GreetingTask(BaseModel):
    name: Annotated[str, Field(min_length=1, max_length=64)]
    language: Annotated[str, Field(pattern=r'^(en|fr|de)$')] = 'en'


class GreetingResult(BaseModel):
    greeting: str


GREETINGS = {'en': 'Hello', 'fr': 'Bonjour', 'de': 'Hallo'}

hello_step = define_function(FunctionDescriptor(
    function_name='hello-step',
    event_type='step',
    event_schema=GreetingTask,
    response_schema=GreetingResult,
))


@tracer.capture_method
def greet(event: GreetingTask, context: LambdaContext, options: HandlerOptions) -> Dict[str, Any]:
    return {'greeting': f'{GREETINGS[event.language]}, {event.name}!'}


handle_greeting = hello_step.handler(greet)


@metrics.log_metrics(capture_cold_start_metric=True)
@tracer.capture_lambda_handler
@logger.inject_lambda_context
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return handle_greeting(event, context)
