from .credentials import HypervisorCredentials, NodeConfig, SshLauncherConfig
from .manager import ConfigManager
from .schema import SchemaError, validate_config_schema

__all__ = [
    "ConfigManager",
    "HypervisorCredentials",
    "NodeConfig",
    "SchemaError",
    "SshLauncherConfig",
    "validate_config_schema",
]
