"""Settings loading with deterministic precedence.

The cascade is always:
1) CLI params
2) ``DEVNET_`` environment variables (``__`` separates nested keys)
3) Legacy CI variables (``SOLANA_URL``, ``EVM_LOADER``)
4) ~/.config/devnet/devnet.yaml
5) Built-in model defaults

Example: ``DEVNET_LEDGER__URL=http://solana:8899`` -> ``ledger.url``.
"""

from __future__ import annotations

import copy
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar

from pydantic import ValidationError

from packages.devnet_shared.errors import ConfigurationError, codes

from .models import DEFAULT_CONFIG_PATH, DevnetSettings

LEGACY_ENV_ALIASES: dict[str, tuple[str, ...]] = {
    "SOLANA_URL": ("ledger", "url"),
    "EVM_LOADER": ("platform", "loader_id"),
}


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    config_path: str | Path | None = None,
) -> DevnetSettings:
    """Resolve settings and raise ``ConfigurationError`` on invalid values.

    ``DEVNET_`` variables are read from the process environment by
    pydantic-settings; legacy variables are mapped here.
    """
    init_values = _merge_dicts(_legacy_values(os.environ), cli_params or {})
    settings_cls = _settings_class(config_path)
    try:
        return settings_cls(**init_values)
    except ValidationError as exc:
        raise ConfigurationError(
            f"invalid devnet settings: {exc.errors(include_url=False)}",
            code=codes.INVALID_VALUE,
        ) from exc


def _settings_class(config_path: str | Path | None) -> type[DevnetSettings]:
    """Return the settings class bound to the requested YAML path."""
    resolved = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if resolved == DevnetSettings._config_path:
        return DevnetSettings

    class _PathBoundSettings(DevnetSettings):
        _config_path: ClassVar[Path] = resolved

    return _PathBoundSettings


def _legacy_values(env: Mapping[str, str]) -> dict[str, Any]:
    """Map legacy CI variables unless the ``DEVNET_`` spelling is also set."""
    output: dict[str, Any] = {}
    for legacy_key, path in LEGACY_ENV_ALIASES.items():
        raw = env.get(legacy_key, "").strip()
        if not raw:
            continue
        modern_key = "DEVNET_" + "__".join(segment.upper() for segment in path)
        if env.get(modern_key, "").strip():
            continue
        _set_nested(output, list(path), raw)
    return output


def _set_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Set a nested mapping value by path, creating intermediate dicts."""
    cursor: dict[str, Any] = target
    for segment in path[:-1]:
        child = cursor.get(segment)
        if not isinstance(child, dict):
            child = {}
            cursor[segment] = child
        cursor = child
    cursor[path[-1]] = value


def _merge_dicts(
    base: Mapping[str, Any], override: Mapping[str, Any]
) -> dict[str, Any]:
    """Recursively merge mappings, with ``override`` taking precedence."""
    result = {str(key): copy.deepcopy(value) for key, value in base.items()}
    for key, override_value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(override_value, Mapping):
            result[key] = _merge_dicts(base_value, override_value)
            continue
        result[key] = copy.deepcopy(override_value)
    return result
