"""
Environment variable models for type-safe kit configuration.

This module defines Pydantic models for the environment variables read by the
handler wrapper at cold start, parsed with aws-lambda-env-modeler.
"""

from typing import Annotated, FrozenSet

from aws_lambda_env_modeler import get_environment_variables
from pydantic import BaseModel, Field


class HandlerKitEnvVars(BaseModel):
    """Environment variables consumed by the handler kit."""

    # Comma separated event-type tokens that get the HTTP middleware pipeline
    HTTP_EVENT_TYPE_TOKENS: Annotated[str, Field(
        description='Event-type tokens treated as HTTP-flavored',
        min_length=1
    )] = 'rest,http'

    # Include internal error details in shaped error bodies
    INCLUDE_ERROR_DETAILS: Annotated[str, Field(
        description='Include internal error details in error responses (true/false)',
        pattern=r'^(true|false)$'
    )] = 'false'

    # Service name for observability
    POWERTOOLS_SERVICE_NAME: Annotated[str, Field(
        description='Service name for AWS Powertools'
    )] = 'handler-kit'

    # Log level for AWS Powertools Logger
    LOG_LEVEL: Annotated[str, Field(
        description='Log level for application logging',
        pattern=r'^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$'
    )] = 'INFO'

    @property
    def http_event_type_tokens(self) -> FrozenSet[str]:
        """Parsed set of HTTP event-type tokens."""
        return frozenset(
            token.strip() for token in self.HTTP_EVENT_TYPE_TOKENS.split(',') if token.strip()
        )

    @property
    def include_error_details(self) -> bool:
        """Check if error details should be exposed."""
        return self.INCLUDE_ERROR_DETAILS.lower() == 'true'


def get_kit_env_vars() -> HandlerKitEnvVars:
    """
    Get typed environment variables for the handler kit.

    Returns:
        Validated environment variables model instance
    """
    return get_environment_variables(model=HandlerKitEnvVars)
