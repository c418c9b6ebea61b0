"""Configuration validator.

Validates DiscoveryConfig objects against the ranges the engine supports.
"""

from urllib.parse import urlparse

from ..models import split_host_port
from .schema import (
    DiscoveryConfig,
    MAX_CONCURRENT_PROBES_LIMIT,
    MAX_PROBE_TIMEOUT_MS,
    MAX_SOURCE_TIMEOUT_MS,
    ValidationError,
    ValidationResult,
)


def is_valid_http_url(url: str) -> bool:
    """Whether url is an absolute http(s) URL with a host."""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and bool(parsed.hostname)


def validate_config(config: DiscoveryConfig) -> ValidationResult:
    """Validate a DiscoveryConfig.

    Checks:
    - Port and timeout ranges
    - Probe concurrency bound
    - HTTP master URL when the HTTP source is enabled
    - Manually added server addresses

    Args:
        config: Configuration to validate.

    Returns:
        ValidationResult with errors and warnings.
    """
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []

    _validate_master(config, errors, warnings)
    _validate_lan(config, errors, warnings)
    _validate_probing(config, errors)

    for i, address in enumerate(config.extra_servers):
        try:
            split_host_port(address, 0)
        except ValueError as e:
            errors.append(ValidationError(
                path=f"extra_servers[{i}]",
                message=f"Invalid server address '{address}': {e}",
            ))

    udp_master_active = bool(config.master_server_address) and (
        not config.use_http_master or config.udp_master_fallback
    )
    if not (
        config.http_master_enabled
        or udp_master_active
        or config.enable_lan_broadcast
        or config.extra_servers
    ):
        warnings.append(ValidationError(
            path="",
            message="No discovery source is enabled. Refresh will find no servers.",
            severity="warning",
        ))

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def _check_range(
    errors: list[ValidationError], path: str, value: int, low: int, high: int
) -> None:
    if not low <= value <= high:
        errors.append(ValidationError(
            path=path,
            message=f"Must be between {low} and {high}, got {value}.",
        ))


def _validate_master(
    config: DiscoveryConfig,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    """Validate master server settings."""
    _check_range(errors, "master_server_port", config.master_server_port, 1, 65535)
    _check_range(errors, "master_timeout_ms", config.master_timeout_ms, 1, MAX_SOURCE_TIMEOUT_MS)

    if config.use_http_master:
        if not config.http_master_url:
            warnings.append(ValidationError(
                path="http_master_url",
                message="HTTP master is enabled but no URL is configured.",
                severity="warning",
            ))
        elif not is_valid_http_url(config.http_master_url):
            errors.append(ValidationError(
                path="http_master_url",
                message=f"Invalid HTTP master URL '{config.http_master_url}'. Must be an http:// or https:// URL.",
            ))
    elif not config.master_server_address:
        warnings.append(ValidationError(
            path="master_server_address",
            message="UDP master is the active source but no address is configured.",
            severity="warning",
        ))


def _validate_lan(
    config: DiscoveryConfig,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    """Validate LAN broadcast settings."""
    _check_range(errors, "lan_timeout_ms", config.lan_timeout_ms, 1, MAX_SOURCE_TIMEOUT_MS)
    for i, port in enumerate(config.lan_ports):
        _check_range(errors, f"lan_ports[{i}]", port, 1, 65535)

    if config.enable_lan_broadcast and not config.lan_ports:
        warnings.append(ValidationError(
            path="lan_ports",
            message="LAN broadcast is enabled but no ports are configured.",
            severity="warning",
        ))


def _validate_probing(config: DiscoveryConfig, errors: list[ValidationError]) -> None:
    """Validate probe settings."""
    _check_range(
        errors, "max_concurrent_probes", config.max_concurrent_probes, 1, MAX_CONCURRENT_PROBES_LIMIT
    )
    _check_range(errors, "probe_timeout_ms", config.probe_timeout_ms, 1, MAX_PROBE_TIMEOUT_MS)
