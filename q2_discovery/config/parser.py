"""YAML configuration parser.

Parses YAML configuration files into DiscoveryConfig objects. Settings may
sit at the top level or under a ``discovery:`` mapping::

    discovery:
      use_http_master: true
      http_master_url: http://q2servers.com/?raw=2
      max_concurrent_probes: 50
"""

import dataclasses
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

from ..models import split_host_port
from .schema import CONFIG_FIELDS, DiscoveryConfig

logger = logging.getLogger(__name__)

_INT_FIELDS = {
    f.name for f in dataclasses.fields(DiscoveryConfig) if f.type in (int, "int")
}
_BOOL_FIELDS = {
    f.name for f in dataclasses.fields(DiscoveryConfig) if f.type in (bool, "bool")
}
_LIST_FIELDS = {"lan_ports", "extra_servers"}

ENV_HTTP_MASTER_URL = "Q2D_HTTP_MASTER_URL"
ENV_MASTER_SERVER = "Q2D_MASTER_SERVER"
ENV_MAX_CONCURRENT_PROBES = "Q2D_MAX_CONCURRENT_PROBES"
ENV_PROBE_TIMEOUT_MS = "Q2D_PROBE_TIMEOUT_MS"


def parse_config(file_path: Union[str, Path]) -> DiscoveryConfig:
    """Parse a YAML configuration file.

    Args:
        file_path: Path to the YAML file.

    Returns:
        Parsed DiscoveryConfig.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the YAML is malformed or a value has the wrong type.
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    if file_path.suffix not in (".yaml", ".yml"):
        raise ValueError(f"Expected .yaml or .yml file, got: {file_path.suffix}")

    with open(file_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Malformed YAML in {file_path}: {e}") from e

    if data is None:
        # Empty file: all defaults
        return DiscoveryConfig()

    return parse_config_data(data, source=str(file_path))


def parse_config_data(data: Any, source: str = "<inline>") -> DiscoveryConfig:
    """Parse a configuration from an already-loaded mapping.

    Raises:
        ValueError: If the data is not a mapping or a value is malformed.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a YAML mapping, got {type(data).__name__}")

    if "discovery" in data:
        data = data["discovery"]
        if not isinstance(data, dict):
            raise ValueError(f"'discovery' must be a mapping in {source}")

    values: dict[str, Any] = {}
    for key, value in data.items():
        if key not in CONFIG_FIELDS:
            logger.warning("Ignoring unknown config key '%s' in %s", key, source)
            continue
        if value is None:
            continue
        values[key] = _coerce(key, value, source)

    return DiscoveryConfig(**values)


def load_config(file_path: Optional[Union[str, Path]] = None) -> DiscoveryConfig:
    """Load configuration from a file (defaults when no path is given),
    then apply environment overrides."""
    config = parse_config(file_path) if file_path else DiscoveryConfig()
    return apply_env_overrides(config)


def apply_env_overrides(
    config: DiscoveryConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> DiscoveryConfig:
    """Apply ``Q2D_*`` environment variables on top of a config.

    Raises:
        ValueError: If a numeric override is not a number or the master
            server override is not a valid host[:port].
    """
    environ = os.environ if environ is None else environ
    changes: dict[str, Any] = {}

    url = environ.get(ENV_HTTP_MASTER_URL)
    if url:
        changes["http_master_url"] = url.strip()

    master = environ.get(ENV_MASTER_SERVER)
    if master and master.strip():
        host, port = split_host_port(master, config.master_server_port)
        changes["master_server_address"] = host
        changes["master_server_port"] = port

    for env_name, field_name in (
        (ENV_MAX_CONCURRENT_PROBES, "max_concurrent_probes"),
        (ENV_PROBE_TIMEOUT_MS, "probe_timeout_ms"),
    ):
        value = environ.get(env_name)
        if value:
            changes[field_name] = _coerce(field_name, value, env_name)

    return config.replace(**changes) if changes else config


def _coerce(key: str, value: Any, source: str) -> Any:
    """Check and convert a raw config value to the field's type."""
    if key in _BOOL_FIELDS:
        if not isinstance(value, bool):
            raise ValueError(f"'{key}' must be true or false in {source}")
        return value

    if key in _INT_FIELDS:
        if isinstance(value, bool):
            raise ValueError(f"'{key}' must be an integer in {source}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"'{key}' must be an integer in {source}, got {value!r}") from None

    if key == "lan_ports":
        items = value if isinstance(value, list) else [value]
        try:
            return [int(v) for v in items]
        except (TypeError, ValueError):
            raise ValueError(f"'lan_ports' must be a list of integers in {source}") from None

    if key in _LIST_FIELDS:
        items = value if isinstance(value, list) else [value]
        return [str(v).strip() for v in items]

    return str(value).strip()
