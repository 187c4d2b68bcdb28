"""
Function registry.

Each function is declared once; documentation and deployment generators read
descriptors back from the registry, and the Lambda entrypoint is derived from
the same declaration, so the three cannot drift apart.
"""

from typing import Any, Dict, Iterator, List, Optional

from handler_kit.handlers.utils.errors import ConfigurationError
from handler_kit.handlers.utils.observability import logger
from handler_kit.handlers.wrap_handler import BusinessFunction, LambdaHandler, describe_pipeline, wrap_handler
from handler_kit.middleware.customization import ProfileRegistry
from handler_kit.middleware.validation import json_schema_of
from handler_kit.models.descriptor import FunctionDescriptor


class FunctionRegistration:
    """A registered function; `handler(business_fn)` derives its Lambda entrypoint."""

    def __init__(self, descriptor: FunctionDescriptor, registry: 'FunctionRegistry'):
        self.descriptor = descriptor
        self._registry = registry
        self.lambda_handler: Optional[LambdaHandler] = None

    @property
    def function_name(self) -> str:
        return self.descriptor.function_name

    def handler(self, business_fn: BusinessFunction) -> LambdaHandler:
        """Wrap the business function; usable as a decorator."""
        if self.lambda_handler is not None:
            raise ConfigurationError(f"Function '{self.function_name}' already has a handler.")
        self.lambda_handler = wrap_handler(
            self.descriptor,
            business_fn,
            http_event_types=self._registry.http_event_types,
            profiles=self._registry.profiles,
        )
        return self.lambda_handler

    def describe(self) -> Dict[str, Any]:
        """Plain-data view of the declaration for documentation and deployment tooling."""
        descriptor = self.descriptor
        return {
            'function_name': descriptor.function_name,
            'event_type': descriptor.event_type,
            'method': descriptor.method,
            'base_path': descriptor.base_path,
            'description': descriptor.description,
            'tags': list(descriptor.tags),
            'content_type': descriptor.content_type,
            'security_context': descriptor.security_context,
            'env_keys': list(descriptor.env_keys),
            'event_schema': json_schema_of(descriptor.event_schema),
            'response_schema': json_schema_of(descriptor.response_schema),
            'pipeline': describe_pipeline(self.lambda_handler) if self.lambda_handler else None,
        }


class FunctionRegistry:
    """Registry of function declarations keyed by function name."""

    def __init__(self, http_event_types: Optional[List[str]] = None, profiles: Optional[ProfileRegistry] = None):
        self._functions: Dict[str, FunctionRegistration] = {}
        self.http_event_types = tuple(http_event_types or ())
        self.profiles = profiles

    def define_function(self, descriptor: Optional[FunctionDescriptor] = None, **fields: Any) -> FunctionRegistration:
        """Register a descriptor, given directly or as FunctionDescriptor fields."""
        if descriptor is None:
            descriptor = FunctionDescriptor(**fields)
        elif fields:
            raise ConfigurationError('Pass either a FunctionDescriptor or its fields, not both.')

        name = descriptor.function_name
        if not name:
            raise ConfigurationError('Functions must declare a non-empty function_name.')
        if name in self._functions:
            raise ConfigurationError(f"Function '{name}' is already registered.")

        registration = FunctionRegistration(descriptor, self)
        self._functions[name] = registration
        logger.debug(f"Registered function {name}", extra={'event_type': descriptor.event_type})
        return registration

    def describe(self) -> List[Dict[str, Any]]:
        return [registration.describe() for registration in self]

    def get(self, function_name: str) -> Optional[FunctionRegistration]:
        return self._functions.get(function_name)

    def values(self) -> List[FunctionDescriptor]:
        """Descriptors in registration order."""
        return [registration.descriptor for registration in self._functions.values()]

    def __iter__(self) -> Iterator[FunctionRegistration]:
        return iter(list(self._functions.values()))

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, function_name: object) -> bool:
        return function_name in self._functions


# Global function registry
_function_registry = FunctionRegistry()


def define_function(descriptor: Optional[FunctionDescriptor] = None, **fields: Any) -> FunctionRegistration:
    """Register a function on the global registry."""
    return _function_registry.define_function(descriptor, **fields)


def get_function_registry() -> FunctionRegistry:
    return _function_registry
