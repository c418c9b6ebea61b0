"""Configuration data models for discovery cycles.

The configuration is supplied by the surrounding application and stays
read-only for the duration of a discovery cycle.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from ..models import DEFAULT_GAME_PORT

DEFAULT_MASTER_ADDRESS = "master.quake2.com"
DEFAULT_MASTER_PORT = 27900
DEFAULT_HTTP_MASTER_URL = "http://q2servers.com/?raw=2"
DEFAULT_BROADCAST_ADDRESS = "255.255.255.255"

# Upper bounds accepted by the validator
MAX_CONCURRENT_PROBES_LIMIT = 200
MAX_PROBE_TIMEOUT_MS = 30000
MAX_SOURCE_TIMEOUT_MS = 60000


@dataclass(frozen=True)
class DiscoveryConfig:
    """Settings consumed by one discovery cycle."""
    master_server_address: str = DEFAULT_MASTER_ADDRESS
    master_server_port: int = DEFAULT_MASTER_PORT
    master_timeout_ms: int = 5000
    use_http_master: bool = True
    http_master_url: str = DEFAULT_HTTP_MASTER_URL
    udp_master_fallback: bool = False
    enable_lan_broadcast: bool = True
    lan_broadcast_address: str = DEFAULT_BROADCAST_ADDRESS
    lan_ports: tuple[int, ...] = (DEFAULT_GAME_PORT,)
    lan_timeout_ms: int = 2000
    probe_timeout_ms: int = 3000
    max_concurrent_probes: int = 75
    extra_servers: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # YAML hands us lists; keep the frozen config hashable
        object.__setattr__(self, "lan_ports", tuple(self.lan_ports))
        object.__setattr__(self, "extra_servers", tuple(self.extra_servers))

    @property
    def probe_timeout(self) -> float:
        """Probe timeout in seconds."""
        return self.probe_timeout_ms / 1000.0

    @property
    def master_timeout(self) -> float:
        """UDP master timeout in seconds."""
        return self.master_timeout_ms / 1000.0

    @property
    def lan_timeout(self) -> float:
        """LAN collection window in seconds."""
        return self.lan_timeout_ms / 1000.0

    @property
    def http_master_enabled(self) -> bool:
        return self.use_http_master and bool((self.http_master_url or "").strip())

    def replace(self, **changes: Any) -> "DiscoveryConfig":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary for serialization."""
        data = dataclasses.asdict(self)
        data["lan_ports"] = list(self.lan_ports)
        data["extra_servers"] = list(self.extra_servers)
        return data


CONFIG_FIELDS = {f.name for f in dataclasses.fields(DiscoveryConfig)}


@dataclass
class ValidationError:
    """A single validation error."""
    path: str
    message: str
    severity: str = "error"  # "error" or "warning"


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def __str__(self) -> str:
        if self.valid:
            msg = "Valid"
            if self.warnings:
                msg += f" ({self.warning_count} warnings)"
            return msg
        return f"Invalid: {self.error_count} errors, {self.warning_count} warnings"
