"""Quake II server discovery and status probing.

Collects server endpoints from the UDP master server, an HTTP master mirror
and LAN broadcast, then probes every server for its status with bounded
concurrency.
"""

__version__ = "0.1.0"

from .cancellation import CancellationToken, OperationCancelled
from .config import DiscoveryConfig, load_config, validate_config
from .models import ColorSegment, Endpoint, PlayerEntry, ServerRecord
from .runner import CycleResult, DiscoveryExecutor, GameServerProbe, merge_endpoints

__all__ = [
    "__version__",
    "CancellationToken",
    "OperationCancelled",
    "DiscoveryConfig",
    "load_config",
    "validate_config",
    "ColorSegment",
    "Endpoint",
    "PlayerEntry",
    "ServerRecord",
    "CycleResult",
    "DiscoveryExecutor",
    "GameServerProbe",
    "merge_endpoints",
]
