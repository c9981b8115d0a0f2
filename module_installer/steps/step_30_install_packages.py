from __future__ import annotations

import logging
from typing import Callable, Optional

from ..context import InstallContext
from ..orchestrator import BatchState, InstallOrchestrator, InstallReport
from ..progress import InstallStep
from ..state_store import add_warning, load_pending_packages, save_pending_packages
from ..sync import ThreadedRepositorySync

logger = logging.getLogger(__name__)


def _wait_for_sync_threads(ctx: InstallContext) -> None:
    # A timed-out package may still be cloning; exiting would kill it mid-clone.
    if not isinstance(ctx.sync, ThreadedRepositorySync):
        return

    still_running = ctx.sync.join(ctx.config.sync_join_timeout)
    if still_running:
        logger.warning("Sync still running after %.1fs: %s", ctx.config.sync_join_timeout, ", ".join(still_running))
        ctx.progress.add_log(f"  Warning: still syncing {', '.join(still_running)}")
        add_warning(ctx.state, sync_still_running=still_running)


def _record_pending(ctx: InstallContext, names: list[str], report: InstallReport) -> None:
    unfinished = report.failed + report.timed_out + report.cancelled
    attempted = set(names)
    pending = [n for n in load_pending_packages(ctx.store) if n not in attempted]
    pending += [n for n in unfinished if n not in pending]
    save_pending_packages(ctx.store, pending)


def install_packages(
    ctx: InstallContext,
    names: list[str],
    *,
    on_finished: Optional[Callable[[], None]] = None,
) -> InstallOrchestrator:
    """Run the orchestrator over ``names`` until the batch is over.

    Packages that did not finish are remembered as pending so a later
    reconfigure installs them again.
    """

    orchestrator = InstallOrchestrator(
        graph=ctx.require_graph(),
        sync=ctx.sync,
        scheduler=ctx.scheduler,
        skip_package=ctx.config.common_package,
        poll_bound=ctx.config.poll_bound,
        progress=ctx.progress,
        on_finished=on_finished,
        cancel_token=ctx.cancel_token,
    )
    orchestrator.start(names)
    ctx.scheduler.run(tick_interval=ctx.config.tick_interval)
    _wait_for_sync_threads(ctx)

    report = orchestrator.report
    ctx.report = report
    ctx.state.setdefault("install", {})["report"] = report.to_dict()
    if report.failed:
        add_warning(ctx.state, install_failed=report.failed)
    if report.timed_out:
        add_warning(ctx.state, install_timed_out=report.timed_out)
    if not ctx.dry_run:
        _record_pending(ctx, names, report)
    return orchestrator


class InstallPackagesStep:
    step_id = "30_install_packages"

    def run(self, ctx: InstallContext) -> None:
        ctx.progress.set_step(InstallStep.INSTALL_PACKAGES)

        names = ctx.require_selection().ordered_names()
        if not names:
            ctx.progress.add_log("No packages to install, skipping package installation")
            return

        orchestrator = install_packages(
            ctx, names, on_finished=lambda: ctx.progress.add_log("All packages configured, continuing with directories")
        )
        if orchestrator.state == BatchState.CANCELLED:
            ctx.progress.set_error("Installation cancelled")
            ctx.halt()
            return
