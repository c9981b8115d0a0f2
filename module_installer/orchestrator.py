from __future__ import annotations

import logging
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .graph import PackageGraph
from .progress import NullProgress, ProgressSink
from .scheduler import TickScheduler
from .sync import RepositorySync

logger = logging.getLogger(__name__)

DEFAULT_POLL_BOUND = 100


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class BatchState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    DONE = "done"
    CANCELLED = "cancelled"


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class InstallationJob:
    name: str
    index: int
    state: JobState = JobState.PENDING
    ticks: int = 0
    detail: str = ""
    done: Future = field(default_factory=Future)

    @property
    def resolved(self) -> bool:
        return self.state not in (JobState.PENDING, JobState.RUNNING)

    def complete(self, success: bool = True) -> None:
        """Completion callback handed to the sync capability.

        Safe to call from any thread: it only resolves the future, the
        orchestrator observes it on its own tick.
        """

        if self.state == JobState.TIMED_OUT:
            logger.warning("Late completion callback for %s ignored (job timed out)", self.name)
        try:
            self.done.set_result(bool(success))
        except InvalidStateError:
            logger.warning("Ignoring repeated completion callback for %s", self.name)


@dataclass(frozen=True)
class JobOutcome:
    name: str
    state: JobState
    detail: str = ""
    ticks: int = 0


@dataclass
class InstallReport:
    outcomes: List[JobOutcome] = field(default_factory=list)

    def _names(self, state: JobState) -> List[str]:
        return [o.name for o in self.outcomes if o.state == state]

    @property
    def completed(self) -> List[str]:
        return self._names(JobState.COMPLETED)

    @property
    def failed(self) -> List[str]:
        return self._names(JobState.FAILED)

    @property
    def timed_out(self) -> List[str]:
        return self._names(JobState.TIMED_OUT)

    @property
    def skipped(self) -> List[str]:
        return self._names(JobState.SKIPPED)

    @property
    def cancelled(self) -> List[str]:
        return self._names(JobState.CANCELLED)

    @property
    def ok(self) -> bool:
        return not (self.failed or self.timed_out or self.cancelled)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "outcomes": [
                {"name": o.name, "state": o.state.value, "detail": o.detail, "ticks": o.ticks}
                for o in self.outcomes
            ],
        }


class InstallOrchestrator:
    """Installs packages one at a time, driven by scheduler ticks.

    Each package gets its own tick. The sync capability is given a
    completion callback; a per-job update callback polls for it and gives
    up after ``poll_bound`` ticks, so the batch always moves on. Nothing
    that happens to a single package stops the batch.
    """

    def __init__(
        self,
        *,
        graph: PackageGraph,
        sync: RepositorySync,
        scheduler: TickScheduler,
        skip_package: Optional[str] = None,
        poll_bound: int = DEFAULT_POLL_BOUND,
        progress: Optional[ProgressSink] = None,
        on_finished: Optional[Callable[[], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        if poll_bound < 1:
            raise ValueError("poll_bound must be >= 1")

        self._graph = graph
        self._sync = sync
        self._scheduler = scheduler
        self._skip_package = skip_package
        self._poll_bound = poll_bound
        self._progress: ProgressSink = progress or NullProgress()
        self._on_finished = on_finished
        self._cancel = cancel_token or CancellationToken()

        self._names: List[str] = []
        self._current: Optional[InstallationJob] = None
        self.state = BatchState.IDLE
        self.report = InstallReport()

    @property
    def current_job(self) -> Optional[InstallationJob]:
        return self._current

    @property
    def finished(self) -> bool:
        return self.state in (BatchState.DONE, BatchState.CANCELLED)

    def cancel(self) -> None:
        self._cancel.cancel()

    def start(self, names: Sequence[str]) -> None:
        if self.state != BatchState.IDLE:
            raise RuntimeError(f"Orchestrator already started (state={self.state.value})")

        self._names = list(names)
        self.state = BatchState.PROCESSING
        logger.info("Installing %d package(s): %s", len(self._names), ", ".join(self._names))
        self._advance(0)

    def _advance(self, index: int) -> None:
        self._current = None

        if self._cancel.cancelled:
            self._cancel_rest(index)
            return

        if index >= len(self._names):
            self._finish()
            return

        name = self._names[index]
        self._progress.set_package_progress(index + 1, len(self._names), name)
        self._scheduler.call_soon(lambda: self._run_job(index, name))

    def _next(self, index: int) -> None:
        self._scheduler.call_soon(lambda: self._advance(index + 1))

    def _run_job(self, index: int, name: str) -> None:
        job = InstallationJob(name=name, index=index)
        self._current = job
        logger.info("Processing package %s (%d/%d)", name, index + 1, len(self._names))

        try:
            if name == self._skip_package:
                self._resolve(job, JobState.SKIPPED, "always-skip package")
                self._next(index)
                return

            pkg = self._graph.find_by_name(name)
            if pkg is None:
                logger.warning("Package %s not found in manifest; skipping", name)
                self._progress.add_log(f"  Warning: {name} not found, skipped")
                self._resolve(job, JobState.SKIPPED, "not in manifest")
                self._next(index)
                return

            job.state = JobState.RUNNING
            self._sync.sync(pkg, job.complete)
        except Exception as e:
            logger.exception("Installing %s failed", name)
            self._progress.add_log(f"  Warning: error while installing {name}: {e}")
            self._resolve(job, JobState.FAILED, str(e))
            self._next(index)
            return

        if not self._check(job):
            self._watch(job)

    def _check(self, job: InstallationJob) -> bool:
        """Resolve ``job`` if its completion callback fired. True when resolved."""

        if not job.done.done():
            return False

        success = job.done.result()
        if success:
            self._progress.add_log(f"  Done: {job.name}")
            self._resolve(job, JobState.COMPLETED)
        else:
            logger.warning("Sync of %s reported failure", job.name)
            self._progress.add_log(f"  Warning: {job.name} failed to sync")
            self._resolve(job, JobState.FAILED, "sync reported failure")
        self._next(job.index)
        return True

    def _watch(self, job: InstallationJob) -> None:
        def poll() -> None:
            job.ticks += 1
            if self._check(job):
                self._scheduler.remove_update(poll)
                return
            if job.ticks >= self._poll_bound:
                self._scheduler.remove_update(poll)
                logger.warning("Completion callback for %s timed out after %d ticks; moving on", job.name, job.ticks)
                self._progress.add_log(f"  Warning: {job.name} (callback timed out, continuing)")
                self._resolve(job, JobState.TIMED_OUT, f"no completion after {job.ticks} ticks")
                self._next(job.index)

        self._scheduler.add_update(poll)

    def _resolve(self, job: InstallationJob, state: JobState, detail: str = "") -> None:
        job.state = state
        job.detail = detail
        self.report.outcomes.append(JobOutcome(name=job.name, state=state, detail=detail, ticks=job.ticks))

    def _cancel_rest(self, index: int) -> None:
        rest = self._names[index:]
        for name in rest:
            self.report.outcomes.append(JobOutcome(name=name, state=JobState.CANCELLED))
        self.state = BatchState.CANCELLED
        logger.warning("Installation cancelled; %d package(s) not processed", len(rest))
        self._progress.add_log(f"Installation cancelled ({len(rest)} package(s) left)")

    def _finish(self) -> None:
        self.state = BatchState.DONE
        r = self.report
        logger.info(
            "Installation finished: %d completed, %d failed, %d timed out, %d skipped",
            len(r.completed),
            len(r.failed),
            len(r.timed_out),
            len(r.skipped),
        )
        self._progress.add_log("All packages processed")
        if self._on_finished is not None:
            self._on_finished()
