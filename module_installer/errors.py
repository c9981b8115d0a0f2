from __future__ import annotations

from typing import Sequence


class InstallerError(RuntimeError):
    """Base class for installer failures."""


class ConfigurationError(InstallerError):
    """The run cannot start: bad config, manifest or package graph."""


class ManifestError(ConfigurationError):
    pass


class UnknownPackageError(ConfigurationError):
    def __init__(self, name: str):
        super().__init__(f"Unknown package: {name}")
        self.name = name


class CyclicDependencyError(ConfigurationError):
    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__("Cyclic dependency: " + " -> ".join(self.cycle))


class SyncError(InstallerError):
    """A repository could not be synchronized. Recoverable per package."""
