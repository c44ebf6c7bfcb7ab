"""Public API for devnet configuration."""

from .loader import LEGACY_ENV_ALIASES, load_settings
from .models import (
    DEFAULT_CONFIG_PATH,
    DevnetSettings,
    LedgerSettings,
    LoggingSettings,
    PlatformSettings,
    ProvisioningSettings,
    ReadinessSettings,
    TokenSettings,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DevnetSettings",
    "LEGACY_ENV_ALIASES",
    "LedgerSettings",
    "LoggingSettings",
    "PlatformSettings",
    "ProvisioningSettings",
    "ReadinessSettings",
    "TokenSettings",
    "load_settings",
]
