from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .command import CommandError, run_cmd
from .fs import force_delete_directory

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT_S = 600.0


def is_checkout(path: str | Path) -> bool:
    return (Path(path) / ".git").exists()


def has_head(path: str | Path, *, dry_run: bool = False) -> bool:
    """False for a checkout whose clone never got as far as a first commit."""

    try:
        result = run_cmd(
            ["git", "rev-parse", "--verify", "--quiet", "HEAD"],
            check=False,
            cwd=str(path),
            timeout_s=30,
            dry_run=dry_run,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.warning("Could not inspect checkout %s: %s", path, e)
        return False
    return result.ok


def clone_repository(
    url: str,
    destination: str | Path,
    *,
    timeout_s: float | None = DEFAULT_GIT_TIMEOUT_S,
    dry_run: bool = False,
) -> bool:
    """Clone ``url``; a failed clone leaves no partial checkout behind."""

    dest = Path(destination)
    if not dry_run:
        dest.parent.mkdir(parents=True, exist_ok=True)

    logger.info("Cloning %s -> %s", url, dest)
    try:
        run_cmd(["git", "clone", url, str(dest)], timeout_s=timeout_s, dry_run=dry_run)
    except (CommandError, subprocess.TimeoutExpired, OSError) as e:
        logger.error("git clone failed for %s: %s", url, e)
        if not dry_run and force_delete_directory(dest):
            logger.info("Removed partial clone %s", dest)
        return False
    return True


def pull_repository(
    path: str | Path,
    *,
    branch: str = "main",
    timeout_s: float | None = DEFAULT_GIT_TIMEOUT_S,
    dry_run: bool = False,
) -> bool:
    repo = Path(path)
    if not dry_run and not repo.is_dir():
        logger.error("Repository path does not exist: %s", repo)
        return False

    logger.info("Updating %s (origin/%s)", repo, branch)
    try:
        run_cmd(["git", "pull", "origin", branch], cwd=str(repo), timeout_s=timeout_s, dry_run=dry_run)
    except (CommandError, subprocess.TimeoutExpired, OSError) as e:
        logger.error("git pull failed in %s: %s", repo, e)
        return False
    return True
