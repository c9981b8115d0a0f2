from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class InstallStep(str, Enum):
    NONE = "none"
    CHECK_ENVIRONMENT = "check_environment"
    LOAD_PACKAGE_INFO = "load_package_info"
    INSTALL_PACKAGES = "install_packages"
    CREATE_DIRECTORIES = "create_directories"
    GENERATE_CONFIG = "generate_config"
    RUN_HANDLERS = "run_handlers"
    COMPLETE = "complete"


class ProgressSink(Protocol):
    """Write-only status channel. Never consulted for decisions."""

    def add_log(self, message: str) -> None:
        ...

    def set_step(self, step: InstallStep, detail: str = "") -> None:
        ...

    def set_package_progress(self, current: int, total: int, package_name: str) -> None:
        ...

    def set_error(self, message: str) -> None:
        ...


@dataclass(frozen=True)
class PackageProgress:
    current: int
    total: int
    name: str


class TranscriptProgress:
    """Keeps a timestamped transcript and mirrors it to logging."""

    def __init__(self, clock=time.localtime) -> None:
        self._clock = clock
        self.lines: List[str] = []
        self.errors: List[str] = []
        self.steps: List[Tuple[InstallStep, str]] = []
        self.step: InstallStep = InstallStep.NONE
        self.package: Optional[PackageProgress] = None

    def _stamp(self, message: str) -> str:
        line = f"[{time.strftime('%H:%M:%S', self._clock())}] {message}"
        self.lines.append(line)
        return line

    def add_log(self, message: str) -> None:
        self._stamp(message)
        logger.info("%s", message)

    def set_step(self, step: InstallStep, detail: str = "") -> None:
        self.step = step
        self.steps.append((step, detail))
        msg = f"Step: {step.value}" + (f" ({detail})" if detail else "")
        self._stamp(msg)
        logger.info("%s", msg)

    def set_package_progress(self, current: int, total: int, package_name: str) -> None:
        self.package = PackageProgress(current=current, total=total, name=package_name)
        self._stamp(f"[{current}/{total}] {package_name}")

    def set_error(self, message: str) -> None:
        self.errors.append(message)
        self._stamp(f"ERROR: {message}")
        logger.error("%s", message)


class NullProgress:
    def add_log(self, message: str) -> None:
        pass

    def set_step(self, step: InstallStep, detail: str = "") -> None:
        pass

    def set_package_progress(self, current: int, total: int, package_name: str) -> None:
        pass

    def set_error(self, message: str) -> None:
        pass
