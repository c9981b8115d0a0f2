from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

DEFAULT_LOG_PATH = ".module-installer/installer.log"
FALLBACK_LOG_NAME = "module-installer.log"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_MARK = "_module_installer_log_path"


def configure_logging(
    log_path: str | Path = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Send every installer decision to one log file (and the console).

    If the requested file cannot be opened, logs go to
    ``module-installer.log`` in the working directory instead. Calling this
    again is a no-op. Returns the file path actually used.
    """

    root = logging.getLogger()
    root.setLevel(level)

    already = getattr(root, _MARK, None)
    if already is not None:
        return already

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    requested = Path(log_path)

    file_handler: Optional[logging.Handler] = None
    try:
        requested.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(requested, encoding="utf-8")
        chosen = str(requested)
    except OSError:
        fallback = Path.cwd() / FALLBACK_LOG_NAME
        file_handler = logging.FileHandler(fallback, encoding="utf-8")
        chosen = str(fallback)

    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        root.addHandler(console)

    setattr(root, _MARK, chosen)
    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", requested, chosen)
    return chosen
