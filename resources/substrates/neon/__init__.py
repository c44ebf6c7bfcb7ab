"""Neon EVM loader substrate driven through ``neon-cli``."""

from resources.substrates.neon.config import NeonConfig
from resources.substrates.neon.neon_cli import NeonCliInitializer
from resources.substrates.neon.substrate import EnvironmentInitializer

__all__ = [
    "EnvironmentInitializer",
    "NeonCliInitializer",
    "NeonConfig",
]
