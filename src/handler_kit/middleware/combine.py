"""
Pipeline combinator.

Folds ordered pipeline units into a single unit with early-exit semantics:
`before` stops once a step short-circuits the record, `after` always runs
every step, and `on_error` only runs while the record carries an error.
"""

from dataclasses import dataclass
from typing import List, Optional

from handler_kit.middleware.transform_utils import PhasedSteps, Phase, StepOp
from handler_kit.models.record import InvocationRecord


@dataclass(frozen=True)
class PipelineUnit:
    before: Optional[StepOp] = None
    after: Optional[StepOp] = None
    on_error: Optional[StepOp] = None


def combine(*units: PipelineUnit) -> PipelineUnit:
    """Combine units into one, preserving their order within each phase."""
    befores: List[StepOp] = [unit.before for unit in units if unit.before is not None]
    afters: List[StepOp] = [unit.after for unit in units if unit.after is not None]
    on_errors: List[StepOp] = [unit.on_error for unit in units if unit.on_error is not None]

    def before(record: InvocationRecord) -> None:
        for op in befores:
            op(record)
            if record.should_stop:
                return

    def after(record: InvocationRecord) -> None:
        for op in afters:
            op(record)

    def on_error(record: InvocationRecord) -> None:
        for op in on_errors:
            if record.error is None:
                return
            op(record)

    return PipelineUnit(
        before=before if befores else None,
        after=after if afters else None,
        on_error=on_error if on_errors else None,
    )


def as_unit(phased: PhasedSteps) -> PipelineUnit:
    """Combine every step of a phased pipeline into a single unit."""
    units = [
        PipelineUnit(**{phase.value: step})
        for phase in Phase
        for step in phased.get(phase)
    ]
    return combine(*units)
