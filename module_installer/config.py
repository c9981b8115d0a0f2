from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigurationError
from .orchestrator import DEFAULT_POLL_BOUND

DEFAULT_CONFIG_PATH = "installer.yaml"


@dataclass(frozen=True)
class InstallerConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw.get(name) or {}

    @property
    def project_root(self) -> Path:
        return Path(str(self.raw.get("project_root") or "."))

    def _under_root(self, value: str) -> Path:
        p = Path(value)
        return p if p.is_absolute() else self.project_root / p

    @property
    def manifest_path(self) -> Path:
        return self._under_root(str(self.raw.get("manifest") or "manifest.yaml"))

    @property
    def modules_dir(self) -> Path:
        return self._under_root(str(self._section("paths").get("modules_dir") or "ModuleData/modules"))

    @property
    def environment_file(self) -> Path:
        return self._under_root(
            str(self._section("paths").get("environment_file") or "Assets/Resources/system_environments.json")
        )

    @property
    def state_path(self) -> Path:
        return self._under_root(str(self._section("paths").get("state") or ".module-installer/state.json"))

    @property
    def log_path(self) -> Path:
        return self._under_root(str(self._section("paths").get("log") or ".module-installer/installer.log"))

    @property
    def common_package(self) -> Optional[str]:
        value = self._section("install").get("common_package")
        return str(value) if value else None

    @property
    def poll_bound(self) -> int:
        value = self._section("install").get("poll_bound")
        if value is None:
            return DEFAULT_POLL_BOUND
        try:
            bound = int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"install.poll_bound must be an integer, got {value!r}") from e
        if bound < 1:
            raise ConfigurationError(f"install.poll_bound must be >= 1, got {bound}")
        return bound

    @property
    def tick_interval(self) -> float:
        value = self._section("install").get("tick_interval")
        return 0.05 if value is None else float(value)

    @property
    def sync_join_timeout(self) -> float:
        """Seconds to wait for background syncs after a batch."""
        value = self._section("install").get("sync_join_timeout")
        return 300.0 if value is None else float(value)

    @property
    def threaded_sync(self) -> bool:
        return bool(self._section("install").get("threaded_sync", False))

    @property
    def git_branch(self) -> str:
        return str(self._section("git").get("branch") or "main")

    @property
    def directories(self) -> List[str]:
        return [str(d) for d in (self.raw.get("directories") or [])]

    def with_overrides(self, **overrides: Any) -> "InstallerConfig":
        """Return a copy with dotted-key overrides applied (``None`` values ignored)."""

        raw = yaml.safe_load(yaml.safe_dump(self.raw)) or {}
        for key, value in overrides.items():
            if value is None:
                continue
            parts = key.split(".")
            node = raw
            for part in parts[:-1]:
                node = node.setdefault(part, {})
            node[parts[-1]] = value
        return InstallerConfig(raw=raw)


def load_config(path: str | Path | None = DEFAULT_CONFIG_PATH) -> InstallerConfig:
    """Read the YAML config; a missing file means defaults."""

    if path is None:
        return InstallerConfig()

    p = Path(path)
    if not p.exists():
        return InstallerConfig()

    if p.suffix.lower() not in {".yaml", ".yml", ".json"}:
        raise ConfigurationError(f"Unsupported config file type: {p}")

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Config {p} is not valid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config {p} must contain a mapping/object")
    return InstallerConfig(raw=raw)
