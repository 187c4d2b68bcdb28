"""
Output models for shaped responses using Pydantic.

This module defines the models used to structure error bodies returned by the
HTTP error mapper, so every HTTP-flavored failure has the same envelope.
"""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, Field


class FieldErrorOutput(BaseModel):
    """A single schema violation reported back to the caller."""

    field: Annotated[str, Field(
        description='Dotted location of the offending value',
        examples=['body.what']
    )]

    message: Annotated[str, Field(
        description='Human readable description of the violation',
        examples=['Input should be a valid string']
    )]

    type: Annotated[str | None, Field(
        description='Machine readable violation type',
        examples=['string_type']
    )] = None


class ErrorDetailOutput(BaseModel):
    """Body of the `error` key in a shaped error response."""

    code: Annotated[str, Field(
        description='Stable error code',
        examples=['VALIDATION_ERROR', 'INTERNAL_SERVER_ERROR']
    )]

    message: Annotated[str, Field(
        description='User facing error message'
    )]

    error_id: Annotated[str, Field(
        description='Unique identifier of this error occurrence'
    )]

    timestamp: Annotated[datetime, Field(
        description='Timestamp when the error was shaped'
    )]

    field_errors: Annotated[list[FieldErrorOutput] | None, Field(
        description='Schema violations, present for validation errors'
    )] = None

    details: Annotated[dict[str, Any] | None, Field(
        description='Internal details, only included when error details are enabled'
    )] = None


class ErrorOutput(BaseModel):
    """Shaped error response body."""

    error: ErrorDetailOutput
