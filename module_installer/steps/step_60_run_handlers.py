from __future__ import annotations

from ..context import InstallContext
from ..progress import InstallStep
from ..state_store import add_warning


class RunHandlersStep:
    step_id = "60_run_handlers"

    def run(self, ctx: InstallContext) -> None:
        ctx.progress.set_step(InstallStep.RUN_HANDLERS)

        if not len(ctx.registry):
            ctx.progress.add_log("No module handlers registered")
            return

        failures = ctx.registry.run_install(ctx, ctx.require_selection().names())
        for f in failures:
            ctx.progress.add_log(f"  Warning: handler {f.handler} failed: {f.error}")
            add_warning(ctx.state, handler=f.handler, action=f.action, error=f.error)
