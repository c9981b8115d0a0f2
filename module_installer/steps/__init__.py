from .step_10_check_environment import CheckEnvironmentStep
from .step_20_load_packages import LoadPackagesStep
from .step_30_install_packages import InstallPackagesStep, install_packages
from .step_40_create_directories import CreateDirectoriesStep
from .step_50_write_environment import WriteEnvironmentStep
from .step_60_run_handlers import RunHandlersStep
from .step_90_finalize import FinalizeStep

__all__ = [
    "CheckEnvironmentStep",
    "LoadPackagesStep",
    "InstallPackagesStep",
    "CreateDirectoriesStep",
    "WriteEnvironmentStep",
    "RunHandlersStep",
    "FinalizeStep",
    "install_packages",
]
