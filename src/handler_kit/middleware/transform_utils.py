"""
Transform helpers for phased middleware pipelines.

- Steps are identified by a stable id and bound to exactly one phase.
- Utilities operate on step tuples immutably and return new tuples.
- Anchors that reference a missing id fail with ConfigurationError instead of
  silently leaving the pipeline unchanged.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Tuple, Union

from handler_kit.handlers.utils.errors import ConfigurationError
from handler_kit.models.record import InvocationRecord

StepOp = Callable[[InvocationRecord], None]


class Phase(str, Enum):
    """Pipeline phases, in execution order."""
    BEFORE = "before"
    AFTER = "after"
    ON_ERROR = "on_error"


class Anchor(str, Enum):
    """Positional anchors for splicing a step into a phase."""
    START = "start"
    END = "end"
    # end of the phase, but ahead of the phase's terminal step
    FINAL = "final"


# Mandatory terminal step per phase; Anchor.FINAL inserts ahead of these.
TERMINAL_STEPS: Dict[Phase, str] = {
    Phase.AFTER: "serializer",
    Phase.ON_ERROR: "error-handler",
}


@dataclass(frozen=True)
class PipelineStep:
    """A named unit of behavior bound to one phase."""

    id: str
    phase: Phase
    op: StepOp

    def __call__(self, record: InvocationRecord) -> None:
        self.op(record)


Steps = Tuple[PipelineStep, ...]


@dataclass(frozen=True)
class PhasedSteps:
    """Ordered steps grouped per phase."""

    before: Steps = ()
    after: Steps = ()
    on_error: Steps = ()

    def get(self, phase: Union[Phase, str]) -> Steps:
        return getattr(self, as_phase(phase).value)

    def with_phase(self, phase: Union[Phase, str], steps: Iterable[PipelineStep]) -> 'PhasedSteps':
        return replace(self, **{as_phase(phase).value: tuple(steps)})

    def ids(self, phase: Union[Phase, str]) -> List[str]:
        return [get_id(step) for step in self.get(phase)]

    def items(self) -> List[Tuple[Phase, Steps]]:
        return [(phase, self.get(phase)) for phase in Phase]


def as_phase(phase: Union[Phase, str]) -> Phase:
    """Coerce a phase name into a Phase member."""
    if isinstance(phase, Phase):
        return phase
    try:
        return Phase(phase)
    except ValueError:
        raise ConfigurationError(
            f"Unknown phase '{phase}'. Expected one of: {', '.join(p.value for p in Phase)}."
        ) from None


def tag_step(id: str, phase: Union[Phase, str], op: StepOp) -> PipelineStep:
    """Attach a stable identifier and a phase to a step operation."""
    if not isinstance(id, str) or not id.strip():
        raise ConfigurationError(f"Step id must be a non-empty string, got {id!r}.")
    if not callable(op):
        raise ConfigurationError(f"Step '{id}' operation must be callable.")
    return PipelineStep(id=id, phase=as_phase(phase), op=op)


def get_id(step: Any) -> str:
    """Retrieve a step's id; anything untagged is a configuration error."""
    if isinstance(step, PipelineStep) and isinstance(step.id, str) and step.id:
        return step.id
    raise ConfigurationError(
        f"Pipeline step {step!r} is not tagged. Build custom steps with tag_step(id, phase, op)."
    )


def find_index(steps: Iterable[PipelineStep], step_id: str) -> int:
    """Find index of a step by id, -1 when absent."""
    for index, step in enumerate(steps):
        if get_id(step) == step_id:
            return index
    return -1


def _require_index(steps: Steps, step_id: str) -> int:
    index = find_index(steps, step_id)
    if index < 0:
        raise ConfigurationError(
            f"No step with id '{step_id}' in phase. Known ids: {[get_id(s) for s in steps]}."
        )
    return index


def insert_before(steps: Steps, step_id: str, step: PipelineStep) -> Steps:
    """Insert a step before the step with given id."""
    index = _require_index(steps, step_id)
    return (*steps[:index], step, *steps[index:])


def insert_after(steps: Steps, step_id: str, step: PipelineStep) -> Steps:
    """Insert a step after the step with given id."""
    index = _require_index(steps, step_id)
    return (*steps[:index + 1], step, *steps[index + 1:])


def insert_at(steps: Steps, anchor: Union[Anchor, str], step: PipelineStep) -> Steps:
    """Insert a step at a positional anchor of its phase."""
    try:
        anchor = Anchor(anchor)
    except ValueError:
        raise ConfigurationError(
            f"Unknown anchor {anchor!r}. Expected one of: {', '.join(a.value for a in Anchor)}."
        ) from None
    if anchor is Anchor.START:
        return (step, *steps)
    if anchor is Anchor.FINAL:
        terminal = TERMINAL_STEPS.get(step.phase)
        index = find_index(steps, terminal) if terminal else -1
        if index >= 0:
            return (*steps[:index], step, *steps[index:])
    return (*steps, step)


def replace_step(steps: Steps, step_id: str, step: PipelineStep) -> Steps:
    """Replace the step with given id."""
    index = _require_index(steps, step_id)
    return (*steps[:index], step, *steps[index + 1:])


def remove_step(steps: Steps, step_id: str) -> Steps:
    """Remove the step with given id."""
    index = _require_index(steps, step_id)
    return (*steps[:index], *steps[index + 1:])
