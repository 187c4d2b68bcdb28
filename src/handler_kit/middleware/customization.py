"""
HTTP pipeline customization.

Pipelines are computed once per function, in this order:

1. Stack options are merged: kit defaults, then the profile, then the function.
2. The safe defaults are built from the descriptor and the merged options.
3. The profile's extend, transform and override run, then the function's.
4. The result is checked against the structural invariants.

Any failure raises ConfigurationError at assembly time, never per invocation.
"""

from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from handler_kit.handlers.utils.errors import ConfigurationError
from handler_kit.handlers.utils.observability import logger as default_logger
from handler_kit.middleware.default_steps import build_safe_defaults
from handler_kit.middleware.transform_utils import (
    PhasedSteps,
    Phase,
    PipelineStep,
    find_index,
    get_id,
    insert_after,
    insert_at,
    insert_before,
    replace_step,
)
from handler_kit.models.descriptor import FunctionDescriptor
from handler_kit.models.options import CustomizationOptions, HttpProfile, Splice, StackOptions, Transform

STRICT_PROFILE = 'strict'

BUILTIN_PROFILES: Mapping[str, HttpProfile] = MappingProxyType({
    STRICT_PROFILE: HttpProfile(options=StackOptions(strict_validation=True)),
})


class ProfileRegistry:
    """Immutable mapping of profile names to HTTP profiles; built-ins are always present."""

    def __init__(self, profiles: Optional[Mapping[str, HttpProfile]] = None):
        merged = dict(BUILTIN_PROFILES)
        for name, profile in (profiles or {}).items():
            if not isinstance(profile, HttpProfile):
                raise ConfigurationError(f"Profile '{name}' must be an HttpProfile, got {type(profile).__name__}.")
            merged[name] = profile
        self._profiles = MappingProxyType(merged)

    def get(self, name: str) -> HttpProfile:
        try:
            return self._profiles[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown HTTP profile '{name}'. Registered profiles: {sorted(self._profiles)}."
            ) from None

    def names(self) -> Sequence[str]:
        return sorted(self._profiles)

    def __contains__(self, name: object) -> bool:
        return name in self._profiles


_registry: Optional[ProfileRegistry] = None


def register_profiles(profiles: Mapping[str, HttpProfile]) -> ProfileRegistry:
    """Register the process-wide profiles. Call once, at startup."""
    global _registry
    if _registry is not None:
        raise ConfigurationError('HTTP profiles are already registered; register_profiles may only be called once.')
    _registry = ProfileRegistry(profiles)
    default_logger.debug('Registered HTTP profiles', extra={'profiles': _registry.names()})
    return _registry


def get_profile_registry() -> ProfileRegistry:
    """The registered profiles, or the built-ins when nothing was registered."""
    return _registry if _registry is not None else ProfileRegistry()


def apply_splice(phases: PhasedSteps, splice: Splice) -> PhasedSteps:
    step = splice.step
    steps = phases.get(step.phase)
    if splice.before is not None:
        updated = insert_before(steps, splice.before, step)
    elif splice.after is not None:
        updated = insert_after(steps, splice.after, step)
    else:
        updated = insert_at(steps, splice.at, step)
    return phases.with_phase(step.phase, updated)


def apply_override(phases: PhasedSteps, step: PipelineStep) -> PhasedSteps:
    step_id = get_id(step)
    steps = phases.get(step.phase)
    if find_index(steps, step_id) < 0:
        raise ConfigurationError(
            f"Cannot override '{step_id}': no such step in the {step.phase.value} phase "
            f"(known ids: {phases.ids(step.phase)})."
        )
    return phases.with_phase(step.phase, replace_step(steps, step_id, step))


def apply_customization(
    phases: PhasedSteps,
    extend: Iterable[Splice] = (),
    transform: Optional[Transform] = None,
    override: Iterable[PipelineStep] = (),
) -> PhasedSteps:
    """Apply one customization layer: extend, then transform, then override."""
    for splice in extend:
        if not isinstance(splice, Splice):
            raise ConfigurationError(f'Extensions must be Splice instances, got {type(splice).__name__}.')
        phases = apply_splice(phases, splice)
    if transform is not None:
        phases = transform(phases)
        if not isinstance(phases, PhasedSteps):
            raise ConfigurationError(f'Pipeline transform must return PhasedSteps, got {type(phases).__name__}.')
    for step in override:
        phases = apply_override(phases, step)
    return phases


def _violation(invariant: str, message: str, function_name: Optional[str]) -> ConfigurationError:
    prefix = f"[{function_name}] " if function_name else ''
    return ConfigurationError(f'{prefix}Pipeline invariant {invariant} violated: {message}', invariant=invariant)


def assert_invariants(
    phases: PhasedSteps,
    *,
    event_schema: Any = None,
    response_schema: Any = None,
    http: bool = True,
    function_name: Optional[str] = None,
) -> None:
    """Check the structural invariants of a computed pipeline."""
    for phase, steps in phases.items():
        ids = []
        for step in steps:
            step_id = get_id(step)
            if step.phase is not phase:
                raise _violation(
                    'phase-binding', f"step '{step_id}' is tagged {step.phase.value} but placed in {phase.value}",
                    function_name,
                )
            ids.append(step_id)
        duplicates = sorted({step_id for step_id in ids if ids.count(step_id) > 1})
        if duplicates:
            raise _violation('unique-step-ids', f'duplicate ids in {phase.value}: {duplicates}', function_name)

    on_error_ids = phases.ids(Phase.ON_ERROR)
    if not on_error_ids:
        raise _violation('non-empty-on-error', 'the on_error phase has no steps', function_name)
    if on_error_ids[-1] != 'error-handler':
        raise _violation(
            'terminal-error-mapper', f"on_error must end with 'error-handler', got {on_error_ids}", function_name
        )
    for phase in (Phase.BEFORE, Phase.AFTER):
        if 'error-handler' in phases.ids(phase):
            raise _violation(
                'error-handler-placement', f"'error-handler' may only appear in on_error, found in {phase.value}",
                function_name,
            )

    if event_schema is not None and 'zod-before' not in phases.ids(Phase.BEFORE):
        raise _violation('input-validation', "an event schema requires a 'zod-before' step", function_name)
    if response_schema is not None and 'zod-after' not in phases.ids(Phase.AFTER):
        raise _violation('output-validation', "a response schema requires a 'zod-after' step", function_name)

    if http:
        after_ids = phases.ids(Phase.AFTER)
        if not after_ids or after_ids[-1] != 'serializer':
            raise _violation('serializer-last', f"'serializer' must be the last after step, got {after_ids}", function_name)
        if 'shape' not in after_ids:
            raise _violation('shape-before-serializer', "'shape' must precede 'serializer'", function_name)


def resolve_stack_options(
    base: Optional[StackOptions],
    profile: Optional[HttpProfile],
    customization: CustomizationOptions,
) -> StackOptions:
    options = StackOptions().merged(base)
    if profile is not None:
        options = options.merged(profile.options)
    return options.merged(customization.options)


def compute_http_middleware(
    descriptor: FunctionDescriptor,
    options: Optional[CustomizationOptions] = None,
    *,
    profiles: Optional[ProfileRegistry] = None,
    base_options: Optional[StackOptions] = None,
    logger: Any = None,
) -> PhasedSteps:
    """
    Compute the final HTTP pipeline for a function.

    Args:
        descriptor: The function declaration
        options: Customization overriding `descriptor.customization`
        profiles: Profile registry, defaults to the registered profiles
        base_options: Kit-level stack options applied below profile and function options
        logger: Logger handed to the default steps

    Returns:
        Phased steps that satisfy every pipeline invariant

    Raises:
        ConfigurationError: Unknown profile, unknown anchor, override of an absent
            step, or an invariant violation
    """
    customization = options or descriptor.customization or CustomizationOptions()
    registry = profiles or get_profile_registry()
    profile = registry.get(customization.profile) if customization.profile else None

    stack_options = resolve_stack_options(base_options, profile, customization)
    log = logger or stack_options.logger or default_logger
    content_type = stack_options.content_type or descriptor.content_type

    phases = build_safe_defaults(
        content_type,
        descriptor.event_schema,
        descriptor.response_schema,
        descriptor.security_context,
        http=True,
        options=stack_options,
        logger=log,
    )

    layers: Sequence[Union[HttpProfile, CustomizationOptions]] = [
        layer for layer in (profile, customization) if layer is not None
    ]
    for layer in layers:
        phases = apply_customization(phases, layer.extend, layer.transform, layer.override)

    assert_invariants(
        phases,
        event_schema=descriptor.event_schema,
        response_schema=descriptor.response_schema,
        http=True,
        function_name=descriptor.function_name,
    )
    log.debug(
        'Computed HTTP middleware',
        extra={
            'function_name': descriptor.function_name,
            'profile': customization.profile,
            'before': phases.ids(Phase.BEFORE),
            'after': phases.ids(Phase.AFTER),
            'on_error': phases.ids(Phase.ON_ERROR),
        },
    )
    return phases


def compute_internal_middleware(
    descriptor: FunctionDescriptor,
    *,
    base_options: Optional[StackOptions] = None,
    logger: Any = None,
) -> PhasedSteps:
    """Pipeline for non-HTTP triggers: schema validation and error pass-through only."""
    customization = descriptor.customization
    if customization is not None and not customization.is_empty:
        raise ConfigurationError(
            f"Function '{descriptor.function_name}' has event type '{descriptor.event_type}', "
            'which does not take HTTP customization.'
        )
    stack_options = StackOptions().merged(base_options)
    phases = build_safe_defaults(
        descriptor.content_type,
        descriptor.event_schema,
        descriptor.response_schema,
        http=False,
        options=stack_options,
        logger=logger or stack_options.logger or default_logger,
    )
    assert_invariants(
        phases,
        event_schema=descriptor.event_schema,
        response_schema=descriptor.response_schema,
        http=False,
        function_name=descriptor.function_name,
    )
    return phases
