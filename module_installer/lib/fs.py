from __future__ import annotations

import logging
import os
import shutil
import stat
import sys
import time
from pathlib import Path
from typing import Iterable, List

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_S = 0.5


def _clear_readonly(func, path, _exc) -> None:
    # Git marks object files read-only.
    os.chmod(path, stat.S_IWRITE | stat.S_IREAD)
    func(path)


def force_delete_directory(
    path: str | Path,
    *,
    retries: int = MAX_RETRIES,
    delay_s: float = RETRY_DELAY_S,
    dry_run: bool = False,
) -> bool:
    """Delete a directory tree, clearing read-only bits and retrying on busy files.

    Returns False when the directory did not exist.
    """

    p = Path(path)
    if not p.exists():
        return False

    if dry_run:
        logger.info("Would delete %s", p)
        return True

    attempt = 0
    while True:
        attempt += 1
        try:
            if sys.version_info >= (3, 12):
                shutil.rmtree(p, onexc=_clear_readonly)
            else:
                shutil.rmtree(p, onerror=_clear_readonly)
            logger.info("Deleted %s", p)
            return True
        except PermissionError:
            if attempt >= retries:
                raise
            logger.warning("Deleting %s failed (attempt %d/%d); retrying", p, attempt, retries)
            time.sleep(delay_s)


def ensure_directories(paths: Iterable[str | Path], *, dry_run: bool = False) -> List[Path]:
    """Create missing directories; return the ones that had to be created."""

    created: List[Path] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir() or p in created:
            continue
        if dry_run:
            logger.info("Would create directory %s", p)
        else:
            logger.info("Creating directory %s", p)
            p.mkdir(parents=True, exist_ok=True)
        created.append(p)
    return created
