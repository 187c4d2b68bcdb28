"""
Function declaration models.

A `FunctionDescriptor` is written once by the function author and read by the
handler wrapper, and by documentation and deployment generators.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple, Type

from pydantic import BaseModel

from handler_kit.models.options import CustomizationOptions


@dataclass(frozen=True)
class FunctionDescriptor:
    function_name: str
    event_type: str
    event_schema: Any = None
    response_schema: Any = None
    content_type: str = 'application/json'
    security_context: Optional[str] = None
    customization: Optional[CustomizationOptions] = None
    # typed environment variables injected into the business function
    env_model: Optional[Type[BaseModel]] = None
    env_keys: Tuple[str, ...] = ()
    # metadata for collaborators, not interpreted by the pipeline
    method: Optional[str] = None
    base_path: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = field(default=())


@dataclass(frozen=True)
class HandlerOptions:
    """Third argument handed to every business function."""

    env: Mapping[str, Any]
    logger: Any
    security_context: Any = None
