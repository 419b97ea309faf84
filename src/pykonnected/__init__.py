"""PyKonnected - Python library for managing Konnected alarm panels.

Discovers Konnected panels on the local network over SSDP, provisions them
with a callback endpoint and zone assignments, receives zone state changes
and runs a security system (arm/disarm/entry delay/trigger) on top of them.

Example:
    >>> import asyncio
    >>> from pykonnected import ConfigStore, KonnectedPlatform
    >>>
    >>> async def main():
    ...     store = ConfigStore("config.yaml")
    ...     platform = KonnectedPlatform(store.load(), store=store)
    ...     await platform.start()
    ...     await asyncio.sleep(3600)
    ...     await platform.stop()
    >>>
    >>> asyncio.run(main())
"""

from . import const, exceptions
from .actuation import ActuationEngine
from .cache import RuntimeStateCache
from .compiler import CompiledPanel, compile_panel
from .config import ConfigStore
from .connection import PanelClient
from .discovery import DiscoveryEngine
from .models import Panel, PlatformConfig, ZoneConfig, ZoneRuntime
from .platform import KonnectedPlatform
from .provisioning import ProvisioningClient
from .registry import AccessoryInfo, AccessoryRegistry, InMemoryAccessoryRegistry
from .security import SecuritySystemEngine
from .server import CallbackServer

__version__ = "0.1.0"

__all__ = [
    # High-level API (recommended)
    "KonnectedPlatform",
    "ConfigStore",
    # Data model
    "Panel",
    "PlatformConfig",
    "ZoneConfig",
    "ZoneRuntime",
    # Engines (advanced use)
    "ActuationEngine",
    "CallbackServer",
    "CompiledPanel",
    "DiscoveryEngine",
    "PanelClient",
    "ProvisioningClient",
    "RuntimeStateCache",
    "SecuritySystemEngine",
    "compile_panel",
    # Exposition layer boundary
    "AccessoryInfo",
    "AccessoryRegistry",
    "InMemoryAccessoryRegistry",
    # Submodules
    "const",
    "exceptions",
    # Version
    "__version__",
]
