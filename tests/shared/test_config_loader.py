"""Tests for pydantic-settings-backed devnet configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from packages.devnet_shared.config import load_settings
from packages.devnet_shared.errors import ConfigurationError

_ENV_KEYS = (
    "SOLANA_URL",
    "EVM_LOADER",
    "DEVNET_LEDGER__URL",
    "DEVNET_PLATFORM__LOADER_ID",
    "DEVNET_LOGGING__LEVEL",
    "DEVNET_READINESS__POLL_INTERVAL_SECONDS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_load_settings_uses_devnet_precedence_cascade(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Init params should override env, env should override YAML, then defaults."""
    config_file = tmp_path / "devnet.yaml"
    config_file.write_text(
        "\n".join(
            [
                "logging:",
                "  level: WARNING",
                "ledger:",
                "  url: http://yaml:8899",
                "readiness:",
                "  poll_interval_seconds: 3",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("DEVNET_LOGGING__LEVEL", "ERROR")
    monkeypatch.setenv("DEVNET_READINESS__POLL_INTERVAL_SECONDS", "2.5")

    settings = load_settings(
        cli_params={"logging": {"level": "DEBUG"}},
        config_path=config_file,
    )

    assert settings.logging.level == "DEBUG"
    assert settings.readiness.poll_interval_seconds == 2.5
    assert settings.ledger.url == "http://yaml:8899"
    assert settings.ledger.commitment == "confirmed"


def test_load_settings_uses_model_defaults_when_sources_missing(tmp_path: Path) -> None:
    """Settings should fall back to model defaults when env and YAML are absent."""
    settings = load_settings(config_path=tmp_path / "devnet.yaml")

    assert settings.ledger.url is None
    assert settings.ledger.local_url == "http://localhost:8899"
    assert settings.platform.loader_id is None
    assert settings.readiness.poll_interval_seconds == 1.0
    assert [token.symbol for token in settings.provisioning.tokens] == ["USDT", "ETH"]
    assert [token.decimals for token in settings.provisioning.tokens] == [6, 8]
    assert settings.provisioning.native_token.symbol == "NEON"


def test_legacy_ci_variables_map_to_nested_settings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """SOLANA_URL and EVM_LOADER should keep working for existing CI jobs."""
    monkeypatch.setenv("SOLANA_URL", "http://solana:8899")
    monkeypatch.setenv("EVM_LOADER", "53DfF883gyixYNXnM7s5xhdeyV8mVk9T4i2hGV9vG9io")

    settings = load_settings(config_path=tmp_path / "devnet.yaml")

    assert settings.ledger.url == "http://solana:8899"
    assert settings.platform.loader_id == "53DfF883gyixYNXnM7s5xhdeyV8mVk9T4i2hGV9vG9io"


def test_devnet_variables_win_over_legacy_variables(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """The DEVNET_ spelling should take precedence over the legacy one."""
    monkeypatch.setenv("SOLANA_URL", "http://legacy:8899")
    monkeypatch.setenv("DEVNET_LEDGER__URL", "http://modern:8899")

    settings = load_settings(config_path=tmp_path / "devnet.yaml")

    assert settings.ledger.url == "http://modern:8899"


def test_legacy_variables_win_over_yaml(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Legacy variables are environment input and should beat the YAML file."""
    config_file = tmp_path / "devnet.yaml"
    config_file.write_text("ledger:\n  url: http://yaml:8899\n", encoding="utf-8")
    monkeypatch.setenv("SOLANA_URL", "http://legacy:8899")

    settings = load_settings(config_path=config_file)

    assert settings.ledger.url == "http://legacy:8899"


def test_load_settings_rejects_invalid_values(tmp_path: Path) -> None:
    """Validation failures should surface as configuration errors."""
    with pytest.raises(ConfigurationError, match="invalid devnet settings"):
        load_settings(
            cli_params={"readiness": {"poll_interval_seconds": 0}},
            config_path=tmp_path / "devnet.yaml",
        )


def test_load_settings_rejects_tokens_sharing_a_key_file(tmp_path: Path) -> None:
    """Two tokens configured with one key file would alias one mint."""
    token = {"decimals": 6, "initial_supply": 1, "key_file": "/opt/keys/same.json"}
    with pytest.raises(ConfigurationError, match="reuses key file"):
        load_settings(
            cli_params={
                "provisioning": {
                    "tokens": [
                        {"symbol": "USDT", **token},
                        {"symbol": "ETH", **token},
                    ]
                }
            },
            config_path=tmp_path / "devnet.yaml",
        )
