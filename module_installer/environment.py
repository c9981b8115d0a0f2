"""The environment configuration file consumed by the installed framework.

Layout::

    {
      "variables": [{"key": "AOT_LIBRARY_PATH", "value": "Assets/_Resources/Aot"}],
      "modules": [{"name": "com.example.core", "order": 10, "tags": ["Core"]}],
      "aot_libraries": ["mscorlib.dll"]
    }

Keys other than these three are left untouched on rewrite.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

from .graph import PackageGraph
from .manifests import Manifest

logger = logging.getLogger(__name__)


def load_environment(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    text = p.read_text(encoding="utf-8")
    if not text.strip():
        logger.warning("Environment file %s is empty; using defaults", p)
        return {}

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Environment file %s is corrupt (%s); using defaults", p, e)
        return {}

    if not isinstance(data, dict):
        logger.warning("Environment file %s is not an object; using defaults", p)
        return {}
    return data


def variables_of(env: Dict[str, Any]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for item in env.get("variables") or []:
        if isinstance(item, dict) and item.get("key"):
            out[str(item["key"])] = str(item.get("value") or "")
    return out


def default_system_variables(manifest: Manifest) -> Dict[str, str]:
    """Required system paths get their default, optional ones stay empty."""

    variables = dict(manifest.environment)
    for sp in manifest.system_paths:
        variables[sp.name] = sp.default if sp.required else ""
    return variables


def module_entries(graph: PackageGraph, selected: Iterable[str]) -> List[Dict[str, Any]]:
    names = graph.order(selected)
    position = {n: i for i, n in enumerate(names)}
    pkgs = [p for p in (graph.find_by_name(n) for n in names) if p is not None]
    pkgs.sort(key=lambda p: (p.order, position[p.name]))
    return [{"name": p.name, "order": p.order, "tags": list(p.tags)} for p in pkgs]


def build_environment(
    existing: Dict[str, Any],
    *,
    manifest: Manifest,
    graph: PackageGraph,
    selected: Iterable[str],
) -> Dict[str, Any]:
    env = dict(existing)

    # Values already in the file were set by the user; keep them.
    variables = default_system_variables(manifest)
    variables.update(variables_of(existing))

    env["variables"] = [{"key": k, "value": v} for k, v in variables.items()]
    env["modules"] = module_entries(graph, selected)
    env["aot_libraries"] = list(manifest.aot_libraries)
    return env


def save_environment(path: str | Path, env: Dict[str, Any], *, dry_run: bool = False) -> None:
    p = Path(path)
    if dry_run:
        logger.info("Would write environment configuration %s", p)
        return
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(env, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.info("Wrote environment configuration %s", p)
