from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from .config import DEFAULT_CONFIG_PATH, InstallerConfig, load_config
from .context import InstallContext
from .errors import ConfigurationError
from .logging_utils import configure_logging
from .maintenance import load_graph, reconfigure, reset, update_packages
from .pipeline import Step, run_pipeline
from .progress import ProgressSink, TranscriptProgress
from .registry import HandlerRegistry
from .selection import SelectionSet
from .state_store import StateFileStore, load_persisted_selected_packages
from .steps import (
    CheckEnvironmentStep,
    CreateDirectoriesStep,
    FinalizeStep,
    InstallPackagesStep,
    LoadPackagesStep,
    RunHandlersStep,
    WriteEnvironmentStep,
)
from .sync import GitRepositorySync, RepositorySync, ThreadedRepositorySync

logger = logging.getLogger(__name__)


def build_steps() -> List[Step]:
    return [
        CheckEnvironmentStep(),
        LoadPackagesStep(),
        InstallPackagesStep(),
        CreateDirectoriesStep(),
        WriteEnvironmentStep(),
        RunHandlersStep(),
        FinalizeStep(),
    ]


def build_sync(config: InstallerConfig, *, dry_run: bool = False) -> RepositorySync:
    git = GitRepositorySync(config.modules_dir, branch=config.git_branch, dry_run=dry_run)
    if config.threaded_sync:
        return ThreadedRepositorySync(git)
    return git


def build_context(
    config: InstallerConfig,
    *,
    dry_run: bool = False,
    force: bool = False,
    sync: Optional[RepositorySync] = None,
    registry: Optional[HandlerRegistry] = None,
    progress: Optional[ProgressSink] = None,
) -> InstallContext:
    if registry is None:
        registry = HandlerRegistry()
        registry.load_entry_points()

    return InstallContext(
        config=config,
        store=StateFileStore(config.state_path),
        sync=sync if sync is not None else build_sync(config, dry_run=dry_run),
        progress=progress if progress is not None else TranscriptProgress(),
        registry=registry,
        dry_run=dry_run,
        force=force,
    )


def run(
    *,
    config: Optional[InstallerConfig] = None,
    config_path: str = DEFAULT_CONFIG_PATH,
    log_path: Optional[str] = None,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    force: bool = False,
    dry_run: bool = False,
    sync: Optional[RepositorySync] = None,
    registry: Optional[HandlerRegistry] = None,
    progress: Optional[ProgressSink] = None,
) -> InstallContext:
    """Run the installer pipeline, persisting state for resume."""

    cfg = config if config is not None else load_config(config_path)
    requested_log = log_path or str(cfg.log_path)
    actual_log = configure_logging(log_path=requested_log)

    ctx = build_context(cfg, dry_run=dry_run, force=force, sync=sync, registry=registry, progress=progress)
    paths = ctx.state.setdefault("execution", {}).setdefault("paths", {})
    paths["log_path_requested"] = requested_log
    paths["log_path_actual"] = actual_log

    try:
        result = run_pipeline(ctx, build_steps(), start_at=start_at, stop_after=stop_after)
        summary: Dict[str, Any] = ctx.state.setdefault("execution", {}).setdefault("summary", {})
        summary["ran_steps"] = result.ran_steps
        summary["skipped_steps"] = result.skipped_steps
        summary["halted_at"] = result.halted_at
        summary["durations"] = result.durations
        return ctx
    except Exception as e:
        logger.exception("Installer failed")
        ctx.progress.set_error(str(e))
        ctx.state.setdefault("execution", {}).setdefault("errors", []).append(
            {
                "step": (ctx.state.get("execution") or {}).get("current_step"),
                "error": str(e),
            }
        )
        raise
    finally:
        ctx.store.save()


def _config_from_args(args: argparse.Namespace) -> InstallerConfig:
    cfg = load_config(args.config)
    return cfg.with_overrides(
        **{
            "manifest": args.manifest,
            "paths.state": args.state,
            "paths.log": args.log,
        }
    )


def _context_from_args(args: argparse.Namespace) -> InstallContext:
    cfg = _config_from_args(args)
    configure_logging(log_path=str(cfg.log_path), level=logging.DEBUG if args.verbose else logging.INFO)
    return build_context(cfg, dry_run=bool(getattr(args, "dry_run", False)))


def cmd_install(args: argparse.Namespace) -> int:
    ctx = run(
        config=_config_from_args(args),
        log_path=args.log,
        start_at=args.start_at,
        stop_after=args.stop_after,
        force=bool(args.force),
        dry_run=bool(args.dry_run),
    )
    report = ctx.report
    if report is not None and not report.ok:
        print(f"Finished with problems: failed={report.failed} timed_out={report.timed_out}")
        return 1
    return 0


def cmd_reconfigure(args: argparse.Namespace) -> int:
    ctx = _context_from_args(args)
    try:
        result = reconfigure(ctx, select=args.select or [], deselect=args.deselect or [])
    finally:
        ctx.store.save()
    print(f"Removed: {', '.join(sorted(result.diff.to_remove)) or '-'}")
    print(f"Installed: {', '.join(sorted(result.diff.to_install)) or '-'}")
    report = result.report
    if report is not None and not report.ok:
        print(f"Finished with problems: failed={report.failed} timed_out={report.timed_out}")
        return 1
    return 0


def cmd_update(args: argparse.Namespace) -> int:
    ctx = _context_from_args(args)
    results = update_packages(ctx, args.packages or None)
    for name, ok in results.items():
        print(f"{'ok  ' if ok else 'FAIL'} {name}")
    return 0 if all(results.values()) else 1


def cmd_reset(args: argparse.Namespace) -> int:
    ctx = _context_from_args(args)
    reset(ctx)
    print("Install status reset")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    ctx = _context_from_args(args)
    graph = load_graph(ctx)
    selection = SelectionSet.initialize_from_graph(graph)
    selection.merge_with_persisted(load_persisted_selected_packages(ctx.store))
    for pkg in graph.filter(args.filter):
        mark = "x" if pkg.name in selection else " "
        req = " (required)" if pkg.required else ""
        print(f"[{mark}] {pkg.name}{req} - {pkg.label}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="module-installer")
    p.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Installer config (yaml)")
    p.add_argument("--manifest", default=None, help="Package manifest (overrides config)")
    p.add_argument("--state", default=None, help="State file (json|yaml, overrides config)")
    p.add_argument("--log", default=None, help="Log file (overrides config)")
    p.add_argument("-v", "--verbose", action="store_true")

    sub = p.add_subparsers(dest="subcmd", required=True)

    sp = sub.add_parser("install", help="Run the installation pipeline")
    sp.add_argument("--start-at", default=None, help="Start at step_id (e.g. 30_install_packages)")
    sp.add_argument("--stop-after", default=None, help="Stop after step_id")
    sp.add_argument("--force", action="store_true", help="Re-run steps even if marked completed")
    sp.add_argument("--dry-run", action="store_true", help="Log commands and writes without doing them")
    sp.set_defaults(func=cmd_install)

    sp = sub.add_parser("reconfigure", help="Change the module selection and apply it")
    sp.add_argument("--select", action="append", metavar="PACKAGE")
    sp.add_argument("--deselect", action="append", metavar="PACKAGE")
    sp.add_argument("--dry-run", action="store_true")
    sp.set_defaults(func=cmd_reconfigure)

    sp = sub.add_parser("update", help="git pull installed modules")
    sp.add_argument("packages", nargs="*")
    sp.add_argument("--dry-run", action="store_true")
    sp.set_defaults(func=cmd_update)

    sp = sub.add_parser("reset", help="Clear the completion marker and saved selection")
    sp.set_defaults(func=cmd_reset)

    sp = sub.add_parser("list", help="List packages in the manifest")
    sp.add_argument("--filter", default=None)
    sp.set_defaults(func=cmd_list)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    try:
        return int(args.func(args))
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
