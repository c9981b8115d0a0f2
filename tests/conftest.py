from __future__ import annotations

import pytest


class RecordingSync:
    """Sync double: records calls, completes immediately unless told otherwise."""

    def __init__(self):
        self.calls = []
        self.fail = set()
        self.never = set()
        self.explode = set()
        self.pending = {}

    def sync(self, package, on_complete):
        self.calls.append(package.name)
        if package.name in self.explode:
            raise RuntimeError(f"boom: {package.name}")
        if package.name in self.never:
            self.pending[package.name] = on_complete
            return
        on_complete(package.name not in self.fail)


@pytest.fixture
def recording_sync():
    return RecordingSync()


@pytest.fixture
def manifest_file(tmp_path):
    path = tmp_path / "manifest.yaml"
    path.write_text(
        """
packages:
  - name: com.example.common
    display_name: Common
    required: true
  - name: com.example.core
    display_name: Core
    required: true
    dependencies: [com.example.common]
    git_url: https://example.invalid/core.git
    order: 10
    tags: [Core]
  - name: com.example.ui
    display_name: UI
    dependencies: [com.example.core]
    git_url: https://example.invalid/ui.git
    order: 20
    tags: [Game]
  - name: com.example.net
    display_name: Networking
    description: Sockets and HTTP
    git_url: https://example.invalid/net.git
    repulsions: [com.example.offline]
  - name: com.example.offline
    display_name: Offline mode
system_paths:
  - name: AOT_LIBRARY_PATH
    default: Assets/_Resources/Aot
    required: true
  - name: OPTIONAL_PATH
    default: Assets/Optional
aot_libraries: [mscorlib.dll]
""",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def config_raw(tmp_path, manifest_file):
    return {
        "project_root": str(tmp_path / "project"),
        "manifest": str(manifest_file),
        "paths": {
            "state": str(tmp_path / "state.json"),
            "log": str(tmp_path / "installer.log"),
        },
        "install": {"common_package": "com.example.common", "tick_interval": 0, "poll_bound": 5},
        "directories": ["Assets/Resources"],
    }


@pytest.fixture(autouse=True)
def _no_global_logging(monkeypatch):
    # run() would otherwise attach file/console handlers to the root logger.
    monkeypatch.setattr("module_installer.main.configure_logging", lambda log_path=None, **kw: str(log_path))
