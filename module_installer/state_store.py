from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import yaml

logger = logging.getLogger(__name__)

STATE_VERSION = "1"
SELECTED_PACKAGES_KEY = "selection.packages"
PENDING_PACKAGES_KEY = "selection.pending"
INSTALL_COMPLETE_KEY = "install.complete"


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"yaml", "yml"}:
        return "yaml"
    # Unknown extensions are JSON.
    return "json"


def load_state(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    text = p.read_text(encoding="utf-8")
    if not text.strip():
        logger.warning("State file %s is empty; starting fresh", p)
        return {}

    if _detect_format(p) == "yaml":
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")
    return data


def save_state(path: str | Path, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) == "yaml":
        p.write_text(yaml.safe_dump(state, sort_keys=False), encoding="utf-8")
    else:
        p.write_text(json.dumps(state, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys without overriding existing values."""

    state.setdefault("version", STATE_VERSION)
    state.setdefault("config", {})
    selection = state.setdefault("selection", {})
    selection.setdefault("packages", [])
    selection.setdefault("pending", [])
    state.setdefault("install", {}).setdefault("complete", False)

    exe = state.setdefault("execution", {})
    exe.setdefault("current_step", None)
    exe.setdefault("completed_steps", [])
    exe.setdefault("errors", [])
    exe.setdefault("warnings", [])
    return state


def mark_step_completed(state: Dict[str, Any], step_id: str) -> None:
    completed = state.setdefault("execution", {}).setdefault("completed_steps", [])
    if step_id not in completed:
        completed.append(step_id)


def is_step_completed(state: Dict[str, Any], step_id: str) -> bool:
    exe = state.get("execution") or {}
    return step_id in (exe.get("completed_steps") or [])


def add_warning(state: Dict[str, Any], **entry: Any) -> None:
    state.setdefault("execution", {}).setdefault("warnings", []).append(entry)


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class StateFileStore:
    """Durable key/value store over the state file.

    Dotted keys address nested mappings (``selection.packages``). Every
    ``set`` writes the file.
    """

    def __init__(self, path: str | Path, state: Optional[Dict[str, Any]] = None):
        self.path = Path(path)
        self.state = ensure_defaults(state if state is not None else load_state(self.path))

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self.state
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        parts = key.split(".")
        node = self.state
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
        self.save()

    def save(self) -> None:
        save_state(self.path, self.state)


class MemoryStore:
    def __init__(self) -> None:
        self.data: Dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value


def load_persisted_selected_packages(store: KeyValueStore) -> List[str]:
    names = store.get(SELECTED_PACKAGES_KEY)
    if names is None:
        names = []
        save_persisted_selected_packages(store, names)
    if not isinstance(names, list):
        logger.warning("Persisted selection is not a list (%s); ignoring it", type(names).__name__)
        return []
    return [str(n) for n in names]


def save_persisted_selected_packages(store: KeyValueStore, names: List[str]) -> None:
    store.set(SELECTED_PACKAGES_KEY, list(names))


def reset_persisted_selected_packages(store: KeyValueStore) -> None:
    store.set(SELECTED_PACKAGES_KEY, [])


def is_install_complete(store: KeyValueStore) -> bool:
    return bool(store.get(INSTALL_COMPLETE_KEY, False))


def set_install_complete(store: KeyValueStore, complete: bool) -> None:
    store.set(INSTALL_COMPLETE_KEY, bool(complete))


def load_pending_packages(store: KeyValueStore) -> List[str]:
    """Selected packages whose last install failed, timed out or was cancelled."""

    names = store.get(PENDING_PACKAGES_KEY) or []
    if not isinstance(names, list):
        logger.warning("Pending package list is not a list (%s); ignoring it", type(names).__name__)
        return []
    return [str(n) for n in names]


def save_pending_packages(store: KeyValueStore, names: List[str]) -> None:
    store.set(PENDING_PACKAGES_KEY, list(names))
