"""CLI tests for devnet bootstrap Typer commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import actors.cli.main as m
from packages.devnet_core import ReadinessProbe
from packages.devnet_shared.logging import clear_context
from tests.core.fakes import FakeClock, FakeInitializer, FakeLedger, make_key

_ENV_KEYS = (
    "SOLANA_URL",
    "EVM_LOADER",
    "DEVNET_LEDGER__URL",
    "DEVNET_PLATFORM__LOADER_ID",
    "DEVNET_LOGGING__LEVEL",
    "DEVNET_LOGGING__JSON_OUTPUT",
)

LOADER_ID = "53DfF883gyixYNXnM7s5xhdeyV8mVk9T4i2hGV9vG9io"


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    clear_context()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def initializer(monkeypatch: pytest.MonkeyPatch) -> FakeInitializer:
    fake = FakeInitializer()
    monkeypatch.setattr(m, "_build_initializer", lambda config: fake)
    return fake


def _install_ledger(
    monkeypatch: pytest.MonkeyPatch, clock: FakeClock, ledger: FakeLedger
) -> list[str]:
    """Route CLI substrate construction to in-memory fakes; record URLs."""
    urls: list[str] = []

    def build_ledger(config: object) -> FakeLedger:
        urls.append(config.url)  # type: ignore[attr-defined]
        return ledger

    monkeypatch.setattr(m, "_build_ledger", build_ledger)
    monkeypatch.setattr(
        m,
        "_build_probe",
        lambda: ReadinessProbe(sleeper=clock.sleep, monotonic=clock.monotonic),
    )
    return urls


def _write_config(tmp_path: Path) -> Path:
    """Write a settings file pointing owner and token keys at ``tmp_path``."""
    owner = make_key(tmp_path, "owner", 1)
    usdt = make_key(tmp_path, "usdt", 2)
    eth = make_key(tmp_path, "eth", 3)
    config_file = tmp_path / "devnet.yaml"
    config_file.write_text(
        json.dumps(
            {
                "provisioning": {
                    "owner_key_file": str(owner.key_file_path),
                    "tokens": [
                        {
                            "symbol": "USDT",
                            "decimals": 6,
                            "initial_supply": 1000,
                            "key_file": str(usdt.key_file_path),
                        },
                        {
                            "symbol": "ETH",
                            "decimals": 8,
                            "initial_supply": 500,
                            "key_file": str(eth.key_file_path),
                        },
                    ],
                }
            }
        ),
        encoding="utf-8",
    )
    return config_file


def test_wait_for_ledger_reports_attempts(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, clock: FakeClock
) -> None:
    """A ledger that answers on the third poll should succeed with exit 0."""
    urls = _install_ledger(monkeypatch, clock, FakeLedger(unreachable_for=2))

    result = CliRunner().invoke(
        m.app,
        [
            "--config",
            str(tmp_path / "devnet.yaml"),
            "--ledger-url",
            "http://solana:8899",
            "wait-for-ledger",
            "5",
        ],
    )

    assert result.exit_code == m.SUCCESS_EXIT_CODE
    assert "ledger ready at http://solana:8899 after 3 attempt(s)" in result.stdout
    assert urls == ["http://solana:8899"]
    assert clock.sleeps == [1.0, 1.0]


def test_wait_for_ledger_exhaustion_exits_with_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, clock: FakeClock
) -> None:
    """A never-responding ledger should fail after exactly TIMEOUT attempts."""
    ledger = FakeLedger(url="http://solana:8899", unreachable_for=1_000)
    urls = _install_ledger(monkeypatch, clock, ledger)
    monkeypatch.setenv("SOLANA_URL", "http://solana:8899")

    result = CliRunner().invoke(
        m.app,
        ["--config", str(tmp_path / "devnet.yaml"), "wait-for-ledger", "5"],
    )

    assert result.exit_code == m.FAILURE_EXIT_CODE
    assert urls == ["http://solana:8899"]
    assert ledger.version_calls == 5
    assert clock.sleeps == [1.0] * 4
    assert "ledger_wait stage failed" in result.stderr
    assert "ledger node not ready after 5 attempt(s)" in result.stderr
    assert "http://solana:8899" in result.stderr


def test_wait_for_ledger_without_url_exits_with_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, clock: FakeClock
) -> None:
    """No URL from any source should exit 1 before polling anything."""
    ledger = FakeLedger()
    _install_ledger(monkeypatch, clock, ledger)

    result = CliRunner().invoke(
        m.app,
        ["--config", str(tmp_path / "devnet.yaml"), "wait-for-ledger"],
    )

    assert result.exit_code == m.FAILURE_EXIT_CODE
    assert "ledger url is required" in result.stderr
    assert ledger.version_calls == 0


def test_wait_for_platform_configuration_failure_exits_with_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    clock: FakeClock,
    initializer: FakeInitializer,
) -> None:
    """A missing loader id is still a plain failure for the wait commands."""
    _install_ledger(monkeypatch, clock, FakeLedger())
    config_file = tmp_path / "devnet.yaml"
    config_file.write_text(
        json.dumps(
            {"platform": {"loader_key_file": str(tmp_path / "missing.json")}}
        ),
        encoding="utf-8",
    )

    result = CliRunner().invoke(
        m.app,
        [
            "--config",
            str(config_file),
            "--ledger-url",
            "http://solana:8899",
            "wait-for-platform",
            "3",
        ],
    )

    assert result.exit_code == m.FAILURE_EXIT_CODE
    assert "loader id is required" in result.stderr
    assert initializer.calls == 0


def test_wait_for_platform_initializes_after_ledger(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    clock: FakeClock,
    initializer: FakeInitializer,
) -> None:
    """The platform wait should run init-environment once the ledger is up."""
    ledger = FakeLedger()
    _install_ledger(monkeypatch, clock, ledger)

    result = CliRunner().invoke(
        m.app,
        [
            "--config",
            str(tmp_path / "devnet.yaml"),
            "--ledger-url",
            "http://solana:8899",
            "--loader-id",
            LOADER_ID,
            "wait-for-platform",
            "3",
        ],
    )

    assert result.exit_code == m.SUCCESS_EXIT_CODE
    assert f"platform ready with loader {LOADER_ID}" in result.stdout
    assert ledger.version_calls == 1
    assert initializer.calls == 1
    assert ledger.writes == []


def test_deploy_multi_tokens_provisions_then_is_idempotent(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    clock: FakeClock,
    initializer: FakeInitializer,
) -> None:
    """A second run against the same ledger should perform no writes."""
    ledger = FakeLedger()
    urls = _install_ledger(monkeypatch, clock, ledger)
    args = [
        "--config",
        str(_write_config(tmp_path)),
        "--loader-id",
        LOADER_ID,
        "deploy-multi-tokens",
    ]

    first = CliRunner().invoke(m.app, args)

    assert first.exit_code == m.SUCCESS_EXIT_CODE
    assert urls == ["http://localhost:8899"]
    assert "USDT: mint=" in first.stdout
    assert "ETH: mint=" in first.stdout
    assert first.stdout.count("(minted)") == 2
    assert len(ledger.writes_of("mint_to")) == 2

    writes_before = list(ledger.writes)
    second = CliRunner().invoke(m.app, args)

    assert second.exit_code == m.SUCCESS_EXIT_CODE
    assert second.stdout.count("(unchanged)") == 2
    assert ledger.writes == writes_before


def test_bootstrap_json_output(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    clock: FakeClock,
    initializer: FakeInitializer,
) -> None:
    """`--json` should emit one compact JSON document on stdout."""
    _install_ledger(monkeypatch, clock, FakeLedger())

    result = CliRunner().invoke(
        m.app,
        [
            "--config",
            str(_write_config(tmp_path)),
            "--ledger-url",
            "http://solana:8899",
            "--loader-id",
            LOADER_ID,
            "--log-level",
            "ERROR",
            "--json",
            "bootstrap",
        ],
    )

    assert result.exit_code == m.SUCCESS_EXIT_CODE
    payload = json.loads(result.stdout)
    assert payload["ready"] is True
    assert payload["transitions"] == [
        "init",
        "ledger_wait",
        "platform_wait",
        "provisioning",
        "ready",
    ]
    assert sorted(account["symbol"] for account in payload["accounts"]) == [
        "ETH",
        "USDT",
    ]


def test_bootstrap_platform_failure_json_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, clock: FakeClock
) -> None:
    """A failing loader should report stage and category on stderr."""
    ledger = FakeLedger()
    _install_ledger(monkeypatch, clock, ledger)
    monkeypatch.setattr(
        m, "_build_initializer", lambda config: FakeInitializer(failures=10)
    )

    result = CliRunner().invoke(
        m.app,
        [
            "--config",
            str(_write_config(tmp_path)),
            "--ledger-url",
            "http://solana:8899",
            "--loader-id",
            LOADER_ID,
            "--log-level",
            "CRITICAL",
            "--json",
            "bootstrap",
        ],
    )

    assert result.exit_code == m.FAILURE_EXIT_CODE
    error = json.loads(result.stderr)
    assert error["stage"] == "platform_wait"
    assert error["category"] == "exhaustion"
    assert ledger.writes == []


def test_deploy_evm_rejects_loader_id_mismatch(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    clock: FakeClock,
    initializer: FakeInitializer,
) -> None:
    """A loader key file that does not derive the loader id is fatal."""
    ledger = FakeLedger()
    _install_ledger(monkeypatch, clock, ledger)
    loader_key = make_key(tmp_path, "evm_loader", 9)
    config_file = tmp_path / "devnet.yaml"
    owner = make_key(tmp_path, "owner", 1)
    config_file.write_text(
        json.dumps(
            {
                "platform": {"loader_key_file": str(loader_key.key_file_path)},
                "provisioning": {
                    "owner_key_file": str(owner.key_file_path),
                    "native_token": {
                        "symbol": "NEON",
                        "decimals": 9,
                        "initial_supply": 0,
                        "key_file": str(make_key(tmp_path, "neon", 4).key_file_path),
                    },
                },
            }
        ),
        encoding="utf-8",
    )

    result = CliRunner().invoke(
        m.app,
        ["--config", str(config_file), "--loader-id", LOADER_ID, "deploy-evm"],
    )

    assert result.exit_code == m.CONFIGURATION_ERROR_EXIT_CODE
    assert "does not match" in result.stderr
    assert ledger.writes == []


def test_deploy_evm_deploys_loader_and_neon_mint(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    clock: FakeClock,
    initializer: FakeInitializer,
) -> None:
    """deploy-evm should deploy the loader once and create the NEON mint."""
    ledger = FakeLedger()
    _install_ledger(monkeypatch, clock, ledger)
    loader_key = make_key(tmp_path, "evm_loader", 9)
    owner = make_key(tmp_path, "owner", 1)
    neon = make_key(tmp_path, "neon", 4)
    (tmp_path / "evm_loader.so").write_bytes(b"\x7fELF")
    config_file = tmp_path / "devnet.yaml"
    config_file.write_text(
        json.dumps(
            {
                "platform": {
                    "loader_key_file": str(loader_key.key_file_path),
                    "loader_program_file": str(tmp_path / "evm_loader.so"),
                },
                "provisioning": {
                    "owner_key_file": str(owner.key_file_path),
                    "native_token": {
                        "symbol": "NEON",
                        "decimals": 9,
                        "initial_supply": 0,
                        "key_file": str(neon.key_file_path),
                    },
                },
            }
        ),
        encoding="utf-8",
    )
    args = ["--config", str(config_file), "deploy-evm"]

    first = CliRunner().invoke(m.app, args)

    assert first.exit_code == m.SUCCESS_EXIT_CODE
    assert f"evm loader {loader_key.derived_address} deployed" in first.stdout
    assert ledger.writes_of("deploy_program") == [loader_key.derived_address]
    assert ledger.writes_of("create_mint") == [neon.derived_address]
    assert ledger.writes_of("mint_to") == []

    second = CliRunner().invoke(m.app, args)

    assert second.exit_code == m.SUCCESS_EXIT_CODE
    assert "already deployed" in second.stdout
    assert len(ledger.writes_of("deploy_program")) == 1


def test_topology_prints_startup_order_and_gates(tmp_path: Path) -> None:
    """The topology command should describe the bundled service graph."""
    result = CliRunner().invoke(
        m.app, ["--config", str(tmp_path / "devnet.yaml"), "topology"]
    )

    assert result.exit_code == m.SUCCESS_EXIT_CODE
    assert result.stdout.splitlines()[0].startswith("startup order: solana")
    assert "platform gate:" in result.stdout
    assert "neon-core-rpc" in result.stdout
