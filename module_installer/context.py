from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .config import InstallerConfig
from .graph import PackageGraph
from .manifests import Manifest
from .orchestrator import CancellationToken, InstallReport
from .progress import ProgressSink, TranscriptProgress
from .registry import HandlerRegistry
from .scheduler import TickScheduler
from .selection import SelectionSet
from .state_store import StateFileStore
from .sync import RepositorySync


@dataclass
class InstallContext:
    """Everything one run needs, built once by ``main.run`` and handed to each step."""

    config: InstallerConfig
    store: StateFileStore
    sync: RepositorySync
    progress: ProgressSink = field(default_factory=TranscriptProgress)
    scheduler: TickScheduler = field(default_factory=TickScheduler)
    registry: HandlerRegistry = field(default_factory=HandlerRegistry)
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    dry_run: bool = False
    force: bool = False

    manifest: Optional[Manifest] = None
    graph: Optional[PackageGraph] = None
    selection: Optional[SelectionSet] = None
    report: Optional[InstallReport] = None
    halted: bool = False

    @property
    def state(self) -> Dict[str, Any]:
        return self.store.state

    def halt(self) -> None:
        """Stop the pipeline after the current step."""
        self.halted = True

    def require_graph(self) -> PackageGraph:
        if self.graph is None:
            raise RuntimeError("Package graph not loaded (20_load_packages has not run)")
        return self.graph

    def require_selection(self) -> SelectionSet:
        if self.selection is None:
            raise RuntimeError("Selection not initialized (20_load_packages has not run)")
        return self.selection

    def require_manifest(self) -> Manifest:
        if self.manifest is None:
            raise RuntimeError("Manifest not loaded (20_load_packages has not run)")
        return self.manifest
