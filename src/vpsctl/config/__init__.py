"""vpsctl configuration system."""

from vpsctl.config.loader import find_config_file, load_config
from vpsctl.config.models import (
    DatabaseStep,
    DeployDescriptor,
    ServiceState,
    ServiceStructure,
    ToolkitConfig,
)

__all__ = [
    "DatabaseStep",
    "DeployDescriptor",
    "ServiceState",
    "ServiceStructure",
    "ToolkitConfig",
    "find_config_file",
    "load_config",
]
