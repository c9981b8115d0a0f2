from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Set

from .graph import PackageGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionDiff:
    to_remove: FrozenSet[str]
    to_install: FrozenSet[str]

    @property
    def empty(self) -> bool:
        return not self.to_remove and not self.to_install


def diff(old: Iterable[str], new: Iterable[str]) -> SelectionDiff:
    """Modules present only in ``old`` get removed, those only in ``new`` installed."""

    old_set = frozenset(old)
    new_set = frozenset(new)
    return SelectionDiff(to_remove=old_set - new_set, to_install=new_set - old_set)


class SelectionSet:
    """Names of the packages slated for installation.

    The required+dependencies invariant is established by
    :meth:`initialize_from_graph` only. Toggling afterwards never cascades.
    """

    def __init__(self, graph: PackageGraph, names: Optional[Iterable[str]] = None):
        self._graph = graph
        self._names: Set[str] = set(names or ())

    @classmethod
    def initialize_from_graph(cls, graph: PackageGraph) -> "SelectionSet":
        sel = cls(graph)
        for pkg in graph.required_packages():
            sel._names.add(pkg.name)
            for dep in graph.get_recursive_dependencies(pkg.name):
                if dep in graph:
                    sel._names.add(dep)
                else:
                    logger.warning("Required package %s depends on unknown package %s", pkg.name, dep)
        logger.info("Initial selection: %d package(s) required", len(sel._names))
        return sel

    @property
    def graph(self) -> PackageGraph:
        return self._graph

    def merge_with_persisted(self, persisted: Optional[Iterable[str]]) -> List[str]:
        """Add previously selected names that still exist; return the stale ones."""

        stale: List[str] = []
        for name in persisted or ():
            if name in self._graph:
                self._names.add(name)
            else:
                stale.append(name)

        if stale:
            logger.warning("Ignoring persisted package(s) no longer in the manifest: %s", ", ".join(stale))
        return stale

    def set_selected(self, name: str, selected: bool) -> None:
        if selected:
            self._names.add(name)
        else:
            self._names.discard(name)

    def is_selected(self, name: str) -> bool:
        return name in self._names

    def names(self) -> FrozenSet[str]:
        return frozenset(self._names)

    def ordered_names(self) -> List[str]:
        return self._graph.order(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SelectionSet):
            return NotImplemented
        return self._names == other._names

    def __repr__(self) -> str:
        return f"SelectionSet({sorted(self._names)!r})"
