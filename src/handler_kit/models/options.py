"""
Customization models for the middleware pipeline.

`StackOptions` is a patch: fields left as None inherit from the layer below
(kit defaults, then profile, then function).
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Optional, Sequence, Union

from aws_lambda_powertools.event_handler import CORSConfig

from handler_kit.handlers.utils.errors import ConfigurationError
from handler_kit.middleware.transform_utils import Anchor, PhasedSteps, PipelineStep, get_id


@dataclass(frozen=True)
class StackOptions:
    """Options consumed by the default steps."""

    content_type: Optional[str] = None
    strict_validation: Optional[bool] = None
    # powertools CORSConfig; False drops CORS headers
    cors: Optional[Union[CORSConfig, bool]] = None
    include_error_details: Optional[bool] = None
    json_dumps: Optional[Callable[[Any], str]] = None
    logger: Any = None

    def merged(self, patch: Optional['StackOptions']) -> 'StackOptions':
        """Return a copy with every non-None field of `patch` applied."""
        if patch is None:
            return self
        changes = {f.name: getattr(patch, f.name) for f in fields(patch) if getattr(patch, f.name) is not None}
        return replace(self, **changes)


@dataclass(frozen=True)
class Splice:
    """A step plus exactly one anchor: `before=<id>`, `after=<id>` or `at=Anchor`."""

    step: PipelineStep
    before: Optional[str] = None
    after: Optional[str] = None
    at: Optional[Union[Anchor, str]] = None

    def __post_init__(self):
        get_id(self.step)
        anchors = [anchor for anchor in (self.before, self.after, self.at) if anchor is not None]
        if len(anchors) != 1:
            raise ConfigurationError(
                f"Splice of step '{self.step.id}' must name exactly one of before=, after= or at=."
            )


Transform = Callable[[PhasedSteps], PhasedSteps]


@dataclass(frozen=True)
class HttpProfile:
    """Named preset applied between the kit defaults and a function's own customization."""

    options: Optional[StackOptions] = None
    extend: Sequence[Splice] = ()
    transform: Optional[Transform] = None
    override: Sequence[PipelineStep] = ()


@dataclass(frozen=True)
class CustomizationOptions:
    """Per-function customization of the HTTP pipeline."""

    profile: Optional[str] = None
    options: Optional[StackOptions] = None
    extend: Sequence[Splice] = ()
    transform: Optional[Transform] = None
    override: Sequence[PipelineStep] = field(default=())

    @property
    def is_empty(self) -> bool:
        return (
            self.profile is None
            and self.options is None
            and not self.extend
            and self.transform is None
            and not self.override
        )
