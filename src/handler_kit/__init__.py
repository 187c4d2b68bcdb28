"""
Handler Kit - declarative Lambda function registration.

A function is declared once (event type, schemas, content type, security
posture) and the kit derives a validated, middleware-wrapped Lambda
entrypoint from that declaration:

- models: declarations, customization options and per-invocation state
- middleware: pipeline steps, customization engine and combinator
- handlers: the handler wrapper plus errors, environment and observability
- security: security-context detection for API Gateway events
- registry: function registry read by documentation and deployment tooling
"""

__version__ = "1.0.0"

from handler_kit.models.record import InvocationRecord
from handler_kit.models.options import CustomizationOptions, HttpProfile, Splice, StackOptions
from handler_kit.models.descriptor import FunctionDescriptor, HandlerOptions
from handler_kit.middleware.transform_utils import Anchor, PhasedSteps, Phase, PipelineStep, get_id, tag_step
from handler_kit.middleware.default_steps import build_safe_defaults
from handler_kit.middleware.customization import (
    ProfileRegistry,
    assert_invariants,
    compute_http_middleware,
    register_profiles,
)
from handler_kit.middleware.combine import PipelineUnit, as_unit, combine
from handler_kit.handlers.wrap_handler import wrap_handler
from handler_kit.handlers.utils.errors import (
    BaseServiceError,
    BusinessError,
    ConfigurationError,
    InternalInvariantError,
    ValidationError,
)
from handler_kit.registry import FunctionRegistry, define_function, get_function_registry
from handler_kit.security.security_context import SecurityContext, SecurityDescriptor

__all__ = [
    "__version__",

    # Declarations
    "FunctionDescriptor",
    "HandlerOptions",
    "CustomizationOptions",
    "StackOptions",
    "HttpProfile",
    "Splice",
    "InvocationRecord",

    # Pipeline
    "Phase",
    "Anchor",
    "PipelineStep",
    "PhasedSteps",
    "tag_step",
    "get_id",
    "build_safe_defaults",
    "compute_http_middleware",
    "assert_invariants",
    "ProfileRegistry",
    "register_profiles",
    "PipelineUnit",
    "combine",
    "as_unit",

    # Entrypoints
    "wrap_handler",
    "FunctionRegistry",
    "define_function",
    "get_function_registry",

    # Errors
    "BaseServiceError",
    "ConfigurationError",
    "ValidationError",
    "BusinessError",
    "InternalInvariantError",

    # Security
    "SecurityContext",
    "SecurityDescriptor",
]
