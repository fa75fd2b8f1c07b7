"""Service layer helpers (command bridge, reference host, config, secrets)."""

from .bridge import BridgeError, CommandBridge, HostBridge
from .config import ClientConfig, load_config
from .local_host import HostError, LocalHost

__all__ = [
    "BridgeError",
    "ClientConfig",
    "CommandBridge",
    "HostBridge",
    "HostError",
    "LocalHost",
    "load_config",
]
