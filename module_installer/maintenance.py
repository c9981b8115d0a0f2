"""Operations on an existing installation: reconfigure, update, reset."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .context import InstallContext
from .errors import UnknownPackageError
from .graph import PackageGraph
from .lib.fs import force_delete_directory
from .lib.git import is_checkout, pull_repository
from .manifests import load_manifest
from .orchestrator import InstallReport
from .selection import SelectionDiff, SelectionSet, diff
from .state_store import (
    load_pending_packages,
    load_persisted_selected_packages,
    reset_persisted_selected_packages,
    save_pending_packages,
    save_persisted_selected_packages,
    set_install_complete,
)
from .steps import install_packages

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconfigureResult:
    diff: SelectionDiff
    removed: List[str]
    report: Optional[InstallReport]


def load_graph(ctx: InstallContext) -> PackageGraph:
    manifest = load_manifest(ctx.config.manifest_path)
    graph = PackageGraph(manifest.packages)
    graph.validate()
    ctx.manifest = manifest
    ctx.graph = graph
    return graph


def uninstall_package(ctx: InstallContext, name: str) -> bool:
    dest = ctx.config.modules_dir / name
    removed = force_delete_directory(dest, dry_run=ctx.dry_run)
    if removed:
        ctx.progress.add_log(f"Removed {name}")
    else:
        logger.info("Module %s has no checkout at %s", name, dest)
    return removed


def reconfigure(
    ctx: InstallContext,
    *,
    select: Iterable[str] = (),
    deselect: Iterable[str] = (),
) -> ReconfigureResult:
    """Apply selection changes: remove dropped modules, install new ones.

    Selecting a module also selects its dependencies. Deselecting never
    cascades, and required modules (with their dependencies) stay selected.
    Modules whose last install did not finish are installed again. A dry
    run leaves the saved selection untouched.
    """

    old = load_persisted_selected_packages(ctx.store)
    pending = set(load_pending_packages(ctx.store))
    graph = load_graph(ctx)

    selection = SelectionSet.initialize_from_graph(graph)
    pinned = selection.names()
    selection.merge_with_persisted(old)

    for name in deselect:
        if name not in graph:
            raise UnknownPackageError(name)
        if name in pinned:
            logger.warning("%s is required; it stays selected", name)
            ctx.progress.add_log(f"  Warning: {name} is required and cannot be deselected")
            continue
        selection.set_selected(name, False)

    for name in select:
        if name not in graph:
            raise UnknownPackageError(name)
        selection.set_selected(name, True)
        for dep in graph.get_recursive_dependencies(name):
            if dep in graph:
                selection.set_selected(dep, True)

    ctx.selection = selection
    new = selection.names()
    changes = diff(old, new)
    retry = (new & pending) - changes.to_install
    if retry:
        logger.info("Retrying unfinished install(s): %s", ", ".join(sorted(retry)))
        changes = SelectionDiff(to_remove=changes.to_remove, to_install=changes.to_install | retry)
    logger.info(
        "Reconfigure: remove=%s install=%s",
        ",".join(sorted(changes.to_remove)) or "-",
        ",".join(sorted(changes.to_install)) or "-",
    )

    removed: List[str] = []
    for name in graph.order(changes.to_remove):
        if uninstall_package(ctx, name):
            removed.append(name)
    for f in ctx.registry.run_uninstall(ctx, changes.to_remove):
        ctx.progress.add_log(f"  Warning: handler {f.handler} failed: {f.error}")

    report: Optional[InstallReport] = None
    if changes.to_install:
        report = install_packages(ctx, graph.order(changes.to_install)).report

    if ctx.dry_run:
        logger.info("Dry run; saved selection left unchanged")
    else:
        save_persisted_selected_packages(ctx.store, selection.ordered_names())
    return ReconfigureResult(diff=changes, removed=removed, report=report)


def update_packages(ctx: InstallContext, names: Optional[Iterable[str]] = None) -> Dict[str, bool]:
    """``git pull`` every selected module that is already checked out."""

    graph = ctx.graph or load_graph(ctx)
    wanted = graph.order(names if names is not None else load_persisted_selected_packages(ctx.store))

    results: Dict[str, bool] = {}
    for name in wanted:
        dest = ctx.config.modules_dir / name
        if not is_checkout(dest):
            logger.error("Package %s is not installed; install it first", name)
            results[name] = False
            continue
        ok = pull_repository(dest, branch=ctx.config.git_branch, dry_run=ctx.dry_run)
        if not ok:
            logger.error("Updating package %s failed", name)
        results[name] = ok
    return results


def reset(ctx: InstallContext) -> None:
    """Forget the completed installation so the next run starts over."""

    set_install_complete(ctx.store, False)
    reset_persisted_selected_packages(ctx.store)
    save_pending_packages(ctx.store, [])
    ctx.state.setdefault("execution", {})["completed_steps"] = []
    ctx.store.save()
    logger.info("Install status reset; the installer can run again")


__all__ = [
    "ReconfigureResult",
    "load_graph",
    "reconfigure",
    "reset",
    "uninstall_package",
    "update_packages",
]
