from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .errors import CyclicDependencyError, ManifestError, UnknownPackageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Package:
    name: str
    display_name: str = ""
    required: bool = False
    dependencies: Tuple[str, ...] = ()
    git_url: Optional[str] = None
    title: str = ""
    description: str = ""
    repulsions: Tuple[str, ...] = ()
    order: int = 0
    tags: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def label(self) -> str:
        return self.display_name or self.name


class PackageGraph:
    """Packages keyed by name, in manifest order, with dependency queries."""

    def __init__(self, packages: Iterable[Package] = ()):
        self._packages: List[Package] = []
        self._by_name: Dict[str, Package] = {}
        self.load(packages)

    def load(self, packages: Iterable[Package]) -> None:
        """Replace the package list. Derived state is the caller's business."""

        ordered: List[Package] = []
        by_name: Dict[str, Package] = {}
        for pkg in packages:
            if pkg.name in by_name:
                raise ManifestError(f"Duplicate package name in manifest: {pkg.name}")
            by_name[pkg.name] = pkg
            ordered.append(pkg)

        self._packages = ordered
        self._by_name = by_name

    def __len__(self) -> int:
        return len(self._packages)

    def __iter__(self):
        return iter(self._packages)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def packages(self) -> List[Package]:
        return list(self._packages)

    def names(self) -> List[str]:
        return [p.name for p in self._packages]

    def find_by_name(self, name: str) -> Optional[Package]:
        return self._by_name.get(name)

    def required_packages(self) -> List[Package]:
        return [p for p in self._packages if p.required]

    def get_recursive_dependencies(self, name: str) -> List[str]:
        """All packages transitively needed by ``name``.

        Direct dependencies come first, in declaration order, followed by
        the dependencies of each of them. A name reachable by several paths
        is listed once. Dependencies missing from the graph are listed but
        cannot be expanded.
        """

        if name not in self._by_name:
            raise UnknownPackageError(name)

        out: List[str] = []
        self._collect(name, [name], out, set())
        return out

    def _collect(self, name: str, path: List[str], out: List[str], expanded: Set[str]) -> None:
        pkg = self._by_name.get(name)
        if pkg is None:
            logger.debug("Dependency %s is not in the manifest; not expanding", name)
            return

        for dep in pkg.dependencies:
            if dep in path:
                raise CyclicDependencyError(path[path.index(dep):] + [dep])
            if dep not in out:
                out.append(dep)

        for dep in pkg.dependencies:
            if dep in expanded:
                continue
            self._collect(dep, path + [dep], out, expanded)
            expanded.add(dep)

    def validate(self) -> None:
        """Walk every package so that a cycle anywhere fails the run up front."""

        for pkg in self._packages:
            self.get_recursive_dependencies(pkg.name)

    def order(self, names: Iterable[str]) -> List[str]:
        """Return ``names`` in manifest order; unknown names go last, sorted."""

        wanted = set(names)
        known = [p.name for p in self._packages if p.name in wanted]
        unknown = sorted(wanted - set(known))
        return known + unknown

    def filter(self, text: Optional[str]) -> List[Package]:
        if not text:
            return list(self._packages)
        needle = text.lower()
        return [
            p
            for p in self._packages
            if needle in p.name.lower()
            or needle in p.label.lower()
            or (p.description and needle in p.description.lower())
        ]

    def conflicts(self, names: Sequence[str]) -> List[Tuple[str, str]]:
        """Pairs of selected packages where one declares the other as a repulsion."""

        selected = set(names)
        pairs: List[Tuple[str, str]] = []
        for name in self.order(selected):
            pkg = self._by_name.get(name)
            if pkg is None:
                continue
            for other in pkg.repulsions:
                if other in selected:
                    pair = tuple(sorted((name, other)))
                    if pair not in pairs:
                        pairs.append(pair)  # type: ignore[arg-type]
        return pairs
