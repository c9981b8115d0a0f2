from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from .errors import ManifestError
from .graph import Package

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SystemPath:
    name: str
    default: str = ""
    title: str = ""
    required: bool = False


@dataclass(frozen=True)
class Manifest:
    packages: List[Package]
    system_paths: List[SystemPath] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)
    aot_libraries: List[str] = field(default_factory=list)


def _str_list(value: Any, what: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ManifestError(f"{what} must be a list")
    return tuple(str(v).strip() for v in value if str(v).strip())


def parse_package(raw: Any) -> Package:
    if isinstance(raw, str):
        raw = {"name": raw}
    if not isinstance(raw, dict):
        raise ManifestError(f"Package entry must be a mapping, got {type(raw).__name__}")

    name = str(raw.get("name") or "").strip()
    if not name:
        raise ManifestError(f"Package entry without a name: {raw!r}")

    git_url = str(raw.get("git_url") or "").strip() or None
    return Package(
        name=name,
        display_name=str(raw.get("display_name") or "").strip(),
        required=bool(raw.get("required", False)),
        dependencies=_str_list(raw.get("dependencies"), f"{name}: dependencies"),
        git_url=git_url,
        title=str(raw.get("title") or "").strip(),
        description=str(raw.get("description") or "").strip(),
        repulsions=_str_list(raw.get("repulsions"), f"{name}: repulsions"),
        order=int(raw.get("order") or 0),
        tags=_str_list(raw.get("tags"), f"{name}: tags"),
    )


def parse_manifest(data: Any) -> Manifest:
    if not isinstance(data, dict):
        raise ManifestError("Manifest must be a mapping/dict")

    raw_packages = data.get("packages") or []
    if not isinstance(raw_packages, list):
        raise ManifestError("manifest: packages must be a list")

    system_paths: List[SystemPath] = []
    for sp in data.get("system_paths") or []:
        if not isinstance(sp, dict) or not sp.get("name"):
            raise ManifestError(f"manifest: invalid system_paths entry {sp!r}")
        system_paths.append(
            SystemPath(
                name=str(sp["name"]).strip(),
                default=str(sp.get("default") or "").strip(),
                title=str(sp.get("title") or "").strip(),
                required=bool(sp.get("required", False)),
            )
        )

    env = data.get("environment") or {}
    if not isinstance(env, dict):
        raise ManifestError("manifest: environment must be a mapping")

    return Manifest(
        packages=[parse_package(p) for p in raw_packages],
        system_paths=system_paths,
        environment={str(k): str(v) for k, v in env.items()},
        aot_libraries=list(_str_list(data.get("aot_libraries"), "manifest: aot_libraries")),
    )


def load_manifest(path: str | Path) -> Manifest:
    """Load a YAML (or JSON) package manifest. An empty package list is fatal."""

    p = Path(path)
    if not p.exists():
        raise ManifestError(f"Manifest not found: {p}")

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ManifestError(f"Manifest {p} is not valid YAML/JSON: {e}") from e

    manifest = parse_manifest(data)
    if not manifest.packages:
        raise ManifestError(f"Manifest {p} declares no packages")

    logger.info("Loaded %d package(s) from %s", len(manifest.packages), p)
    return manifest
