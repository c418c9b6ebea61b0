"""Config module - discovery settings, YAML parsing and validation."""

from .schema import (
    DiscoveryConfig,
    ValidationError,
    ValidationResult,
)
from .parser import apply_env_overrides, load_config, parse_config, parse_config_data
from .validator import is_valid_http_url, validate_config

__all__ = [
    "DiscoveryConfig",
    "ValidationError",
    "ValidationResult",
    "apply_env_overrides",
    "load_config",
    "parse_config",
    "parse_config_data",
    "is_valid_http_url",
    "validate_config",
]
