"""
Schema validation for pipeline steps.

Schemas are anything pydantic can build a TypeAdapter for: BaseModel
subclasses, dataclasses, TypedDicts or annotated types. Adapters are built
once, when the pipeline is assembled.
"""

from typing import Any, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python

from handler_kit.handlers.utils.errors import ConfigurationError, ValidationError
from handler_kit.handlers.utils.observability import logger as default_logger


class SchemaValidator:
    """Validate values against one declared schema."""

    def __init__(self, schema: Any, source: str, strict: bool = False, logger: Any = None):
        try:
            self.adapter = TypeAdapter(schema)
        except Exception as exc:
            raise ConfigurationError(f'Cannot build a validator for {source} schema {schema!r}: {exc}') from exc
        self.schema = schema
        self.source = source
        self.strict = strict
        self.logger = logger or default_logger

    def validate(self, value: Any) -> Any:
        """Return the validated value; raise ValidationError with the collected issues."""
        self.logger.debug('Validating with schema', extra={'source': self.source, 'strict': self.strict})
        try:
            result = self.adapter.validate_python(value, strict=self.strict or None)
        except PydanticValidationError as exc:
            self.logger.error(
                'Schema validation failed',
                extra={'source': self.source, 'error_count': exc.error_count()},
            )
            # strict stacks always show the caller what failed
            raise ValidationError.from_pydantic(exc, source=self.source, expose=self.strict) from exc
        self.logger.debug('Schema validation succeeded', extra={'source': self.source})
        return result


def dump_validated(value: Any) -> Any:
    """Turn validated models back into JSON-compatible data."""
    return to_jsonable_python(value)


def json_schema_of(schema: Any) -> Optional[dict]:
    """JSON schema for documentation generators; None when no schema is declared."""
    if schema is None:
        return None
    return TypeAdapter(schema).json_schema()
