import subprocess
import threading
from pathlib import Path

import pytest

from module_installer.errors import SyncError
from module_installer.graph import Package
from module_installer.lib import command, git
from module_installer.lib.command import CmdResult, CommandError, run_cmd
from module_installer.sync import GitRepositorySync, NullRepositorySync, ThreadedRepositorySync


@pytest.fixture
def git_calls(monkeypatch):
    calls = []

    def fake_run_cmd(argv, **kw):
        calls.append((list(argv), kw.get("cwd")))
        if argv[:2] == ["git", "clone"]:
            (Path(argv[3]) / ".git").mkdir(parents=True)
        return CmdResult(argv=list(argv), returncode=0, stdout="", stderr="")

    monkeypatch.setattr(git, "run_cmd", fake_run_cmd)
    return calls


def _result(sync, pkg):
    out = []
    sync.sync(pkg, out.append)
    return out


def test_clone_then_pull(tmp_path, git_calls):
    sync = GitRepositorySync(tmp_path / "modules", branch="develop")
    pkg = Package(name="core", git_url="https://example.invalid/core.git")

    assert _result(sync, pkg) == [True]
    assert git_calls[0][0] == ["git", "clone", "https://example.invalid/core.git", str(tmp_path / "modules" / "core")]

    assert _result(sync, pkg) == [True]
    assert git_calls[1][0][:2] == ["git", "rev-parse"]
    assert git_calls[2] == (["git", "pull", "origin", "develop"], str(tmp_path / "modules" / "core"))


def test_package_without_repository_succeeds(tmp_path, git_calls):
    assert _result(GitRepositorySync(tmp_path), Package(name="local")) == [True]
    assert git_calls == []


def test_non_checkout_destination_raises(tmp_path, git_calls):
    dest = tmp_path / "core"
    dest.mkdir()
    (dest / "file.txt").write_text("x", encoding="utf-8")
    with pytest.raises(SyncError):
        GitRepositorySync(tmp_path).sync(Package(name="core", git_url="u"), lambda ok: None)


def test_git_failure_reports_false(tmp_path, monkeypatch):
    def failing(argv, **kw):
        raise CommandError(CmdResult(argv=list(argv), returncode=128, stdout="", stderr="fatal"))

    monkeypatch.setattr(git, "run_cmd", failing)
    assert _result(GitRepositorySync(tmp_path), Package(name="core", git_url="u")) == [False]


def test_git_timeout_reports_false(tmp_path, monkeypatch):
    def slow(argv, **kw):
        raise subprocess.TimeoutExpired(argv, 1)

    monkeypatch.setattr(git, "run_cmd", slow)
    assert not git.clone_repository("u", tmp_path / "x", timeout_s=1)


def test_threaded_sync_reports_exception_as_failure():
    class Exploding:
        def sync(self, package, on_complete):
            raise RuntimeError("boom")

    threaded = ThreadedRepositorySync(Exploding())
    out = []
    threaded.sync(Package(name="a"), out.append)
    threaded.join(5)
    assert out == [False]


def test_null_sync_always_succeeds():
    assert _result(NullRepositorySync(), Package(name="a")) == [True]


def test_run_cmd_missing_executable():
    r = run_cmd(["definitely-not-a-real-binary-xyz"], check=False)
    assert r.returncode == 127
    with pytest.raises(CommandError):
        run_cmd(["definitely-not-a-real-binary-xyz"])


def test_run_cmd_dry_run_does_not_execute(monkeypatch):
    def boom(*a, **kw):
        raise AssertionError("should not run")

    monkeypatch.setattr(command.subprocess, "run", boom)
    assert run_cmd(["rm", "-rf", "/"], dry_run=True).ok


def test_checkout_without_head_is_cloned_again(tmp_path, monkeypatch):
    dest = tmp_path / "core"
    (dest / ".git").mkdir(parents=True)
    (dest / ".git" / "index.lock").write_text("", encoding="utf-8")
    calls = []

    def fake_run_cmd(argv, **kw):
        calls.append(argv[1])
        if argv[1] == "rev-parse":
            return CmdResult(argv=list(argv), returncode=1, stdout="", stderr="")
        assert not dest.exists()
        (Path(argv[3]) / ".git").mkdir(parents=True)
        return CmdResult(argv=list(argv), returncode=0, stdout="", stderr="")

    monkeypatch.setattr(git, "run_cmd", fake_run_cmd)

    assert _result(GitRepositorySync(tmp_path), Package(name="core", git_url="u")) == [True]
    assert calls == ["rev-parse", "clone"]
    assert not (dest / ".git" / "index.lock").exists()


def test_failed_clone_leaves_no_partial_checkout(tmp_path, monkeypatch):
    dest = tmp_path / "modules" / "core"

    def interrupted(argv, **kw):
        (dest / ".git").mkdir(parents=True)
        raise subprocess.TimeoutExpired(argv, 1)

    monkeypatch.setattr(git, "run_cmd", interrupted)

    assert not git.clone_repository("u", dest, timeout_s=1)
    assert not dest.exists()


def test_threaded_join_reports_syncs_still_running():
    release = threading.Event()

    class Blocking:
        def sync(self, package, on_complete):
            release.wait(5)
            on_complete(True)

    threaded = ThreadedRepositorySync(Blocking())
    threaded.sync(Package(name="a"), lambda ok: None)

    assert threaded.join(0.05) == ["sync-a"]
    release.set()
    assert threaded.join(5) == []
    assert threaded.threads == []
