from __future__ import annotations

import logging

from ..context import InstallContext
from ..graph import PackageGraph
from ..manifests import load_manifest
from ..progress import InstallStep
from ..selection import SelectionSet
from ..state_store import add_warning, load_persisted_selected_packages, save_persisted_selected_packages

logger = logging.getLogger(__name__)


class LoadPackagesStep:
    step_id = "20_load_packages"
    always_run = True

    def run(self, ctx: InstallContext) -> None:
        ctx.progress.set_step(InstallStep.LOAD_PACKAGE_INFO)

        manifest = load_manifest(ctx.config.manifest_path)
        graph = PackageGraph(manifest.packages)
        graph.validate()
        ctx.progress.add_log(f"Loaded {len(graph)} package(s)")

        selection = SelectionSet.initialize_from_graph(graph)
        stale = selection.merge_with_persisted(load_persisted_selected_packages(ctx.store))
        if stale:
            add_warning(ctx.state, stale_selected_packages=stale)

        for a, b in graph.conflicts(selection.ordered_names()):
            logger.warning("Selected packages %s and %s conflict", a, b)
            ctx.progress.add_log(f"  Warning: {a} conflicts with {b}")
            add_warning(ctx.state, conflict=[a, b])

        save_persisted_selected_packages(ctx.store, selection.ordered_names())
        ctx.progress.add_log(f"{len(selection)} package(s) selected for installation")

        ctx.manifest = manifest
        ctx.graph = graph
        ctx.selection = selection
