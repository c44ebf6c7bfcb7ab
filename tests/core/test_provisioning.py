"""Tests for idempotent token provisioning."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from packages.devnet_core.provisioning import (
    AccountProvisioner,
    TokenSpec,
    provision_all,
)
from packages.devnet_shared.config import TokenSettings
from packages.devnet_shared.errors import ConfigurationError, codes
from packages.devnet_shared.keys import KeyMaterial
from resources.substrates.solana import MintInfo
from tests.core.fakes import FakeLedger, make_key


def _spec(key: KeyMaterial, *, symbol: str = "ETH", decimals: int = 8) -> TokenSpec:
    return TokenSpec(
        symbol=symbol,
        decimals=decimals,
        initial_supply=100_000_000_000,
        mint_authority=key,
    )


def test_provision_fresh_ledger_creates_mint_account_and_supply(
    tmp_path: Path,
) -> None:
    """A fresh ledger should end with the exact requested supply."""
    ledger = FakeLedger()
    owner = make_key(tmp_path, "owner", 1)
    spec = _spec(make_key(tmp_path, "eth", 2))

    outcome = AccountProvisioner(ledger, owner=owner).reconcile(spec)
    account = outcome.account

    assert account.mint_address == spec.mint_address
    assert account.decimals == 8
    assert account.minted_supply == Decimal(100_000_000_000)
    assert outcome.created_mint
    assert outcome.created_holding_account
    assert outcome.minted
    assert ledger.mints[spec.mint_address].supply == 100_000_000_000 * 10**8
    holding = ledger.accounts[account.holding_account_address]
    assert holding.owner == owner.derived_address


def test_provision_rerun_changes_nothing(tmp_path: Path) -> None:
    """A second run should observe prior work and leave state untouched."""
    ledger = FakeLedger()
    provisioner = AccountProvisioner(ledger, owner=make_key(tmp_path, "owner", 1))
    spec = _spec(make_key(tmp_path, "eth", 2))

    first = provisioner.reconcile(spec)
    writes_after_first = list(ledger.writes)
    second = provisioner.reconcile(spec)

    assert ledger.writes == writes_after_first
    assert first.performed_work
    assert not second.performed_work
    assert second.account == first.account


def test_provision_returns_equal_accounts_on_repeat(tmp_path: Path) -> None:
    """Repeated provisioning should describe the same on-chain state."""
    ledger = FakeLedger()
    provisioner = AccountProvisioner(ledger, owner=make_key(tmp_path, "owner", 1))
    spec = _spec(make_key(tmp_path, "eth", 2))

    first = provisioner.provision(spec)
    writes_after_first = list(ledger.writes)
    second = provisioner.provision(spec)

    assert first == second
    assert ledger.writes == writes_after_first


def test_provision_decimals_mismatch_is_configuration_error(tmp_path: Path) -> None:
    """An existing mint with other decimals must fail without any mutation."""
    ledger = FakeLedger()
    key = make_key(tmp_path, "usdt", 3)
    ledger.mints[key.derived_address] = MintInfo(
        address=key.derived_address, decimals=6, supply=0
    )
    provisioner = AccountProvisioner(ledger, owner=make_key(tmp_path, "owner", 1))

    with pytest.raises(ConfigurationError, match="has 6 decimals") as exc_info:
        provisioner.provision(_spec(key, symbol="USDT", decimals=8))

    assert exc_info.value.code == codes.STATE_MISMATCH
    assert ledger.writes == []


def test_provision_foreign_mint_authority_is_configuration_error(
    tmp_path: Path,
) -> None:
    """An empty mint owned by another authority must fail before any write."""
    ledger = FakeLedger()
    key = make_key(tmp_path, "usdt", 3)
    ledger.mints[key.derived_address] = MintInfo(
        address=key.derived_address,
        decimals=6,
        supply=0,
        mint_authority="SomeoneElse111",
    )
    provisioner = AccountProvisioner(ledger, owner=make_key(tmp_path, "owner", 1))

    with pytest.raises(ConfigurationError, match="mint authority") as exc_info:
        provisioner.provision(_spec(key, symbol="USDT", decimals=6))

    assert exc_info.value.code == codes.STATE_MISMATCH
    assert ledger.writes == []


def test_provision_skips_minting_when_supply_already_present(tmp_path: Path) -> None:
    """A non-zero supply from an earlier partial run should not be topped up."""
    ledger = FakeLedger()
    owner = make_key(tmp_path, "owner", 1)
    key = make_key(tmp_path, "eth", 2)
    ledger.mints[key.derived_address] = MintInfo(
        address=key.derived_address, decimals=8, supply=5 * 10**8
    )

    outcome = AccountProvisioner(ledger, owner=owner).reconcile(_spec(key))

    assert not outcome.minted
    assert outcome.created_holding_account
    assert outcome.account.minted_supply == Decimal(5)
    assert ledger.writes_of("mint_to") == []


def test_provision_zero_supply_token_creates_no_supply(tmp_path: Path) -> None:
    """A zero initial supply should create mint and account only."""
    ledger = FakeLedger()
    spec = TokenSpec(
        symbol="NEON",
        decimals=9,
        initial_supply=0,
        mint_authority=make_key(tmp_path, "neon", 4),
    )

    provisioner = AccountProvisioner(ledger, owner=make_key(tmp_path, "owner", 1))

    outcome = provisioner.reconcile(spec)

    assert outcome.created_mint
    assert not outcome.minted
    assert outcome.account.minted_supply == Decimal(0)


def test_concurrent_provisioning_of_same_mint_mints_once(tmp_path: Path) -> None:
    """Two concurrent calls for one mint should mint exactly once."""
    ledger = FakeLedger()
    provisioner = AccountProvisioner(ledger, owner=make_key(tmp_path, "owner", 1))
    spec = _spec(make_key(tmp_path, "eth", 2))

    results = provision_all(provisioner, [spec, spec], max_workers=2)

    assert len(ledger.writes_of("mint_to")) == 1
    assert len(ledger.writes_of("create_mint")) == 1
    assert sorted(result.minted for result in results) == [False, True]
    assert results[0].account == results[1].account
    assert results[0].account.minted_supply == Decimal(100_000_000_000)


class _RacingLedger(FakeLedger):
    """Ledger fake where another process mints alongside every mint_to."""

    def mint_to(
        self,
        *,
        mint_address: str,
        recipient_address: str,
        amount: int,
        authority: KeyMaterial,
    ) -> None:
        for _ in range(2):
            super().mint_to(
                mint_address=mint_address,
                recipient_address=recipient_address,
                amount=amount,
                authority=authority,
            )


def test_cross_process_double_mint_is_state_mismatch(tmp_path: Path) -> None:
    """A supply other than the one minted here should fail the run."""
    ledger = _RacingLedger()
    provisioner = AccountProvisioner(ledger, owner=make_key(tmp_path, "owner", 1))

    with pytest.raises(ConfigurationError, match="minted concurrently") as exc_info:
        provisioner.provision(_spec(make_key(tmp_path, "eth", 2)))

    assert exc_info.value.code == codes.STATE_MISMATCH

def test_provision_all_returns_results_in_input_order(tmp_path: Path) -> None:
    """Concurrent provisioning should preserve the caller's spec order."""
    ledger = FakeLedger()
    provisioner = AccountProvisioner(ledger, owner=make_key(tmp_path, "owner", 1))
    usdt = _spec(make_key(tmp_path, "usdt", 3), symbol="USDT", decimals=6)
    eth = _spec(make_key(tmp_path, "eth", 2), symbol="ETH", decimals=8)

    results = provision_all(provisioner, [usdt, eth], max_workers=4)

    assert [result.account.symbol for result in results] == ["USDT", "ETH"]
    assert ledger.mints[usdt.mint_address].supply == 100_000_000_000 * 10**6
    assert ledger.mints[eth.mint_address].supply == 100_000_000_000 * 10**8


def test_provision_all_reraises_first_failure_in_spec_order(tmp_path: Path) -> None:
    """Every spec should run; the first failing spec's error is raised."""
    ledger = FakeLedger()
    bad_key = make_key(tmp_path, "usdt", 3)
    ledger.mints[bad_key.derived_address] = MintInfo(
        address=bad_key.derived_address, decimals=2, supply=0
    )
    provisioner = AccountProvisioner(ledger, owner=make_key(tmp_path, "owner", 1))
    good = _spec(make_key(tmp_path, "eth", 2))

    with pytest.raises(ConfigurationError, match="USDT"):
        provision_all(provisioner, [_spec(bad_key, symbol="USDT"), good])

    assert ledger.mints[good.mint_address].supply == 100_000_000_000 * 10**8


def test_token_spec_from_settings_reads_key_file(tmp_path: Path) -> None:
    """Token settings should resolve into a spec with derived mint address."""
    key = make_key(tmp_path, "usdt", 3)

    spec = TokenSpec.from_settings(
        TokenSettings(
            symbol="USDT",
            decimals=6,
            initial_supply=100_000_000_000,
            key_file=key.key_file_path,
        )
    )

    assert spec.mint_address == key.derived_address
    assert spec.initial_supply_base_units == 100_000_000_000 * 10**6


def test_token_spec_from_settings_missing_key_file(tmp_path: Path) -> None:
    """A missing key file should be a configuration error before any request."""
    with pytest.raises(ConfigurationError, match="key file not found"):
        TokenSpec.from_settings(
            TokenSettings(
                symbol="USDT",
                decimals=6,
                initial_supply=1,
                key_file=tmp_path / "missing.json",
            )
        )
