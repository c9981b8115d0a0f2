from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

from .context import InstallContext
from .errors import ConfigurationError
from .state_store import is_step_completed, mark_step_completed

logger = logging.getLogger(__name__)


class Step(Protocol):
    """One stage of the installation.

    Steps with ``always_run = True`` rebuild in-memory data later steps
    depend on (manifest, graph, selection), so they run on every
    invocation, including resumed ones, and are never marked completed.
    """

    step_id: str

    def run(self, ctx: InstallContext) -> None:
        ...


@dataclass(frozen=True)
class PipelineResult:
    ran_steps: List[str]
    skipped_steps: List[str]
    halted_at: Optional[str] = None
    durations: Dict[str, float] = field(default_factory=dict)


def _check_step_ids(steps: Sequence[Step], *names: Optional[str]) -> None:
    known = [s.step_id for s in steps]
    for name in names:
        if name is not None and name not in known:
            raise ConfigurationError(f"Unknown step {name!r} (known: {', '.join(known)})")


def run_pipeline(
    ctx: InstallContext,
    steps: Sequence[Step],
    *,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
) -> PipelineResult:
    """Run ``steps`` in order.

    Completed steps are skipped unless ``ctx.force`` is set; the state is
    saved after every step so an interrupted run can be resumed. A step
    may call ``ctx.halt()`` to end the run early.
    """

    _check_step_ids(steps, start_at, stop_after)
    execution = ctx.state.setdefault("execution", {})

    ran: List[str] = []
    skipped: List[str] = []
    durations: Dict[str, float] = {}
    halted_at: Optional[str] = None
    reached = start_at is None

    for step in steps:
        always = bool(getattr(step, "always_run", False))
        if step.step_id == start_at:
            reached = True
        if not reached and not always:
            continue

        execution["current_step"] = step.step_id

        if not ctx.force and not always and is_step_completed(ctx.state, step.step_id):
            logger.info("Skipping step %s (already completed)", step.step_id)
            skipped.append(step.step_id)
        else:
            logger.info("Running step %s", step.step_id)
            t0 = time.monotonic()
            step.run(ctx)
            durations[step.step_id] = round(time.monotonic() - t0, 3)
            if not always and not ctx.dry_run:
                mark_step_completed(ctx.state, step.step_id)
            ran.append(step.step_id)
            ctx.store.save()

        if ctx.halted:
            logger.info("Pipeline halted by %s", step.step_id)
            halted_at = step.step_id
            break

        if step.step_id == stop_after:
            logger.info("Stopping after %s", stop_after)
            break

    execution["current_step"] = None
    return PipelineResult(ran_steps=ran, skipped_steps=skipped, halted_at=halted_at, durations=durations)
