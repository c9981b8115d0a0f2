from __future__ import annotations

from ..context import InstallContext
from ..environment import build_environment, load_environment, save_environment
from ..progress import InstallStep


class WriteEnvironmentStep:
    step_id = "50_write_environment"

    def run(self, ctx: InstallContext) -> None:
        ctx.progress.set_step(InstallStep.GENERATE_CONFIG)

        path = ctx.config.environment_file
        env = build_environment(
            load_environment(path),
            manifest=ctx.require_manifest(),
            graph=ctx.require_graph(),
            selected=ctx.require_selection().names(),
        )
        save_environment(path, env, dry_run=ctx.dry_run)
        ctx.progress.add_log(f"Saved environment configuration ({len(env['modules'])} module(s))")
