"""Engine configuration: ``terraspec.toml`` plus ``TERRASPEC_*`` overrides."""

from terraspec.config.loader import ConfigLoadError, effective_config, load_config
from terraspec.config.schema import (
    ConfigValidationError,
    TerraspecConfig,
    assert_valid_config,
    default_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigValidationError",
    "TerraspecConfig",
    "assert_valid_config",
    "default_config",
    "effective_config",
    "load_config",
]
