from __future__ import annotations

from ..context import InstallContext
from ..progress import InstallStep
from ..state_store import set_install_complete


class FinalizeStep:
    step_id = "90_finalize"

    def run(self, ctx: InstallContext) -> None:
        report = ctx.report
        if report is not None and not report.ok:
            ctx.progress.add_log(
                "Finished with problems: "
                f"failed={','.join(report.failed) or '-'} timed_out={','.join(report.timed_out) or '-'}"
            )

        if ctx.dry_run:
            ctx.progress.add_log("Dry run; installation not marked complete")
        else:
            set_install_complete(ctx.store, True)
        ctx.progress.set_step(InstallStep.COMPLETE)
        ctx.progress.add_log("Installation complete")
