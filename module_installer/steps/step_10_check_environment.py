from __future__ import annotations

import logging
import shutil

from ..context import InstallContext
from ..progress import InstallStep
from ..state_store import add_warning, is_install_complete
from ..sync import GitRepositorySync

logger = logging.getLogger(__name__)


class CheckEnvironmentStep:
    step_id = "10_check_environment"
    always_run = True

    def run(self, ctx: InstallContext) -> None:
        ctx.progress.set_step(InstallStep.CHECK_ENVIRONMENT)

        if is_install_complete(ctx.store) and not ctx.force:
            ctx.progress.add_log("Installation already complete; nothing to do (use --force or reset)")
            ctx.halt()
            return

        if isinstance(ctx.sync, GitRepositorySync) and not ctx.dry_run and shutil.which("git") is None:
            # Modules without a repository can still be processed.
            logger.warning("git executable not found on PATH")
            add_warning(ctx.state, environment="git_not_found")

        ctx.progress.add_log("Environment check passed, starting installation...")
