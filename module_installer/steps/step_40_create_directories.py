from __future__ import annotations

import logging

from ..context import InstallContext
from ..environment import default_system_variables
from ..lib.fs import ensure_directories
from ..progress import InstallStep

logger = logging.getLogger(__name__)


class CreateDirectoriesStep:
    step_id = "40_create_directories"

    def run(self, ctx: InstallContext) -> None:
        ctx.progress.set_step(InstallStep.CREATE_DIRECTORIES)

        root = ctx.config.project_root
        variables = default_system_variables(ctx.require_manifest())
        wanted = [root / value for value in variables.values() if value]
        wanted += [root / d for d in ctx.config.directories]

        created = ensure_directories(wanted, dry_run=ctx.dry_run)
        ctx.state.setdefault("execution", {})["created_directories"] = [str(p) for p in created]
        ctx.progress.add_log(f"Created {len(created)} director{'y' if len(created) == 1 else 'ies'}")
