"""Named install/uninstall handlers contributed by modules.

Modules hook into the end of an installation (or the removal of a module)
by registering handlers here, either in code or through the
``module_installer.handlers`` entry point group. An entry point must
resolve to a callable taking the registry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "module_installer.handlers"

HandlerFn = Callable[[Any], None]


@dataclass(frozen=True)
class Handler:
    name: str
    package: Optional[str] = None
    install: Optional[HandlerFn] = None
    uninstall: Optional[HandlerFn] = None


@dataclass(frozen=True)
class HandlerFailure:
    handler: str
    action: str
    error: str


class HandlerRegistry:
    def __init__(self) -> None:
        self._handlers: Dict[str, Handler] = {}

    def register(
        self,
        name: str,
        *,
        package: Optional[str] = None,
        install: Optional[HandlerFn] = None,
        uninstall: Optional[HandlerFn] = None,
    ) -> Handler:
        if name in self._handlers:
            raise ValueError(f"Handler already registered: {name}")
        h = Handler(name=name, package=package, install=install, uninstall=uninstall)
        self._handlers[name] = h
        logger.debug("Registered handler %s (package=%s)", name, package)
        return h

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def handlers(self) -> List[Handler]:
        return list(self._handlers.values())

    def for_packages(self, packages: Iterable[str]) -> List[Handler]:
        """Handlers bound to one of ``packages``, plus unbound ones."""

        wanted = set(packages)
        return [h for h in self._handlers.values() if h.package is None or h.package in wanted]

    def run_install(self, ctx: Any, packages: Iterable[str]) -> List[HandlerFailure]:
        return self._run("install", self.for_packages(packages), ctx)

    def run_uninstall(self, ctx: Any, packages: Iterable[str]) -> List[HandlerFailure]:
        wanted = set(packages)
        bound = [h for h in self._handlers.values() if h.package in wanted]
        return self._run("uninstall", bound, ctx)

    def _run(self, action: str, handlers: List[Handler], ctx: Any) -> List[HandlerFailure]:
        failures: List[HandlerFailure] = []
        for h in handlers:
            fn = h.install if action == "install" else h.uninstall
            if fn is None:
                continue
            logger.info("Running %s handler %s", action, h.name)
            try:
                fn(ctx)
            except Exception as e:
                logger.exception("%s handler %s failed", action.capitalize(), h.name)
                failures.append(HandlerFailure(handler=h.name, action=action, error=str(e)))
        return failures

    def load_entry_points(self, group: str = ENTRY_POINT_GROUP) -> int:
        """Let installed distributions register their handlers. Returns how many loaded."""

        loaded = 0
        for ep in entry_points(group=group):
            logger.info("Loading handler plugin %s (%s)", ep.name, ep.value)
            register = ep.load()
            register(self)
            loaded += 1
        return loaded
