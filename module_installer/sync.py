from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Protocol

from .errors import SyncError
from .graph import Package
from .lib.fs import force_delete_directory
from .lib.git import clone_repository, has_head, is_checkout, pull_repository

logger = logging.getLogger(__name__)

OnComplete = Callable[[bool], None]


class RepositorySync(Protocol):
    """Bring a package's repository onto disk.

    ``on_complete(success)`` must be called exactly once, possibly later and
    from another thread.
    """

    def sync(self, package: Package, on_complete: OnComplete) -> None:
        ...


class GitRepositorySync:
    """Clone into ``modules_dir/<name>``, or pull when already checked out."""

    def __init__(self, modules_dir: str | Path, *, branch: str = "main", dry_run: bool = False):
        self.modules_dir = Path(modules_dir)
        self.branch = branch
        self.dry_run = dry_run

    def destination(self, package: Package) -> Path:
        return self.modules_dir / package.name

    def sync_now(self, package: Package) -> bool:
        if not package.git_url:
            logger.info("Package %s has no repository; nothing to sync", package.name)
            return True

        dest = self.destination(package)
        if is_checkout(dest):
            if has_head(dest, dry_run=self.dry_run):
                return pull_repository(dest, branch=self.branch, dry_run=self.dry_run)
            logger.warning("%s is an incomplete checkout; cloning it again", dest)
            force_delete_directory(dest)
        if dest.exists() and any(dest.iterdir()):
            raise SyncError(f"Destination {dest} exists and is not a git checkout")
        return clone_repository(package.git_url, dest, dry_run=self.dry_run)

    def sync(self, package: Package, on_complete: OnComplete) -> None:
        on_complete(self.sync_now(package))


class ThreadedRepositorySync:
    """Run another sync on a worker thread so the tick loop keeps turning."""

    def __init__(self, inner: RepositorySync):
        self.inner = inner
        self.threads: list[threading.Thread] = []

    def sync(self, package: Package, on_complete: OnComplete) -> None:
        def work() -> None:
            try:
                self.inner.sync(package, on_complete)
            except Exception:
                logger.exception("Background sync of %s failed", package.name)
                on_complete(False)

        t = threading.Thread(target=work, name=f"sync-{package.name}", daemon=True)
        self.threads.append(t)
        t.start()

    def join(self, timeout_s: float | None = None) -> list[str]:
        """Wait for started syncs, at most ``timeout_s`` in total.

        Returns the names of threads still running.
        """

        deadline = None if timeout_s is None else time.monotonic() + timeout_s
        for t in self.threads:
            t.join(None if deadline is None else max(0.0, deadline - time.monotonic()))
        self.threads = [t for t in self.threads if t.is_alive()]
        return [t.name for t in self.threads]


class NullRepositorySync:
    def sync(self, package: Package, on_complete: OnComplete) -> None:
        logger.info("Skipping sync of %s (no-op sync)", package.name)
        on_complete(True)
