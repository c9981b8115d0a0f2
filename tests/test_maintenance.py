import pytest

from module_installer import maintenance
from module_installer.config import InstallerConfig
from module_installer.errors import UnknownPackageError
from module_installer.main import build_context
from module_installer.registry import HandlerRegistry
from module_installer.state_store import (
    is_install_complete,
    load_pending_packages,
    load_persisted_selected_packages,
    set_install_complete,
)


def _context(config_raw, sync, **kw):
    return build_context(InstallerConfig(raw=config_raw), sync=sync, registry=HandlerRegistry(), **kw)


@pytest.fixture
def ctx(config_raw, recording_sync):
    return _context(config_raw, recording_sync)


def test_select_adds_dependencies_and_installs_new_packages(ctx, recording_sync):
    result = maintenance.reconfigure(ctx, select=["com.example.ui"])

    assert result.diff.to_install == {"com.example.common", "com.example.core", "com.example.ui"}
    assert result.removed == []
    assert recording_sync.calls == ["com.example.core", "com.example.ui"]
    assert load_persisted_selected_packages(ctx.store) == [
        "com.example.common",
        "com.example.core",
        "com.example.ui",
    ]


def test_deselect_removes_checkout_and_runs_uninstall_handler(ctx, recording_sync):
    ctx.store.set("selection.packages", ["com.example.common", "com.example.core", "com.example.ui"])
    checkout = ctx.config.modules_dir / "com.example.ui"
    (checkout / ".git").mkdir(parents=True)
    removed_by_handler = []
    ctx.registry.register("ui", package="com.example.ui", uninstall=lambda c: removed_by_handler.append("ui"))

    result = maintenance.reconfigure(ctx, deselect=["com.example.ui"])

    assert result.diff.to_remove == {"com.example.ui"}
    assert result.removed == ["com.example.ui"]
    assert result.report is None
    assert not checkout.exists()
    assert removed_by_handler == ["ui"]
    assert recording_sync.calls == []


def test_required_packages_cannot_be_deselected(ctx, caplog):
    result = maintenance.reconfigure(ctx, deselect=["com.example.core"])
    assert "com.example.core" in ctx.selection
    assert "com.example.core" not in result.diff.to_remove
    assert "is required" in caplog.text


def test_unknown_package_rejected(ctx):
    with pytest.raises(UnknownPackageError):
        maintenance.reconfigure(ctx, select=["com.example.nope"])


def test_update_pulls_installed_checkouts(ctx, monkeypatch):
    ctx.store.set("selection.packages", ["com.example.core", "com.example.ui"])
    (ctx.config.modules_dir / "com.example.core" / ".git").mkdir(parents=True)
    pulled = []

    def fake_pull(path, *, branch, dry_run):
        pulled.append((path.name, branch))
        return True

    monkeypatch.setattr(maintenance, "pull_repository", fake_pull)

    results = maintenance.update_packages(ctx)

    assert results == {"com.example.core": True, "com.example.ui": False}
    assert pulled == [("com.example.core", "main")]


def test_reset_forgets_completed_install(ctx):
    set_install_complete(ctx.store, True)
    ctx.store.set("selection.packages", ["com.example.ui"])
    ctx.state["execution"]["completed_steps"] = ["30_install_packages"]

    maintenance.reset(ctx)

    assert not is_install_complete(ctx.store)
    assert load_persisted_selected_packages(ctx.store) == []
    assert ctx.state["execution"]["completed_steps"] == []


def test_dry_run_reconfigure_keeps_saved_selection(config_raw, recording_sync):
    dry = _context(config_raw, recording_sync, dry_run=True)
    maintenance.reconfigure(dry, select=["com.example.net"])
    assert load_persisted_selected_packages(dry.store) == []

    real = _context(config_raw, recording_sync)
    assert load_persisted_selected_packages(real.store) == []
    result = maintenance.reconfigure(real, select=["com.example.net"])

    assert "com.example.net" in result.diff.to_install
    assert recording_sync.calls.count("com.example.net") == 2
    assert "com.example.net" in load_persisted_selected_packages(real.store)


def test_failed_install_is_retried_by_next_reconfigure(config_raw, recording_sync):
    recording_sync.fail.add("com.example.net")
    first = maintenance.reconfigure(_context(config_raw, recording_sync), select=["com.example.net"])
    assert first.report.failed == ["com.example.net"]

    recording_sync.fail.clear()
    recording_sync.calls.clear()
    ctx = _context(config_raw, recording_sync)
    assert "com.example.net" in load_persisted_selected_packages(ctx.store)
    assert load_pending_packages(ctx.store) == ["com.example.net"]

    second = maintenance.reconfigure(ctx)

    assert second.diff.to_install == {"com.example.net"}
    assert recording_sync.calls == ["com.example.net"]
    assert second.report.ok
    assert load_pending_packages(ctx.store) == []


def test_timed_out_install_is_pending(config_raw, recording_sync):
    recording_sync.never.add("com.example.ui")
    ctx = _context(config_raw, recording_sync)
    result = maintenance.reconfigure(ctx, select=["com.example.ui"])
    assert result.report.timed_out == ["com.example.ui"]
    assert load_pending_packages(ctx.store) == ["com.example.ui"]


def test_reset_clears_pending(ctx):
    ctx.store.set("selection.pending", ["com.example.ui"])
    maintenance.reset(ctx)
    assert load_pending_packages(ctx.store) == []
