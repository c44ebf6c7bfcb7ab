"""Idempotent provisioning of fixed-supply test tokens.

Each step re-queries the ledger and acts only on what it observes, so a run
that died half-way can simply be repeated:

1. the mint address is the address of the token's keypair file;
2. a missing mint is created; an existing one must have the requested decimals
   and, while it still needs supply, the owner as its mint authority;
3. a missing holding account is created for the owner;
4. supply is minted only while the on-chain supply is still zero.

The ledger stays the source of truth; nothing here caches on-chain state.
"""

from __future__ import annotations

import contextvars
import threading
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from packages.devnet_shared.config import TokenSettings
from packages.devnet_shared.errors import ConfigurationError, codes
from packages.devnet_shared.keys import KeyMaterial, load_key_material
from packages.devnet_shared.logging import fields, get_logger, log_context
from resources.substrates.solana import LedgerSubstrate, MintInfo, TokenAccountInfo

logger = get_logger(__name__)


class TokenSpec(BaseModel):
    """Intended fixed-supply test token; ``initial_supply`` is in whole tokens."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    symbol: str = Field(min_length=1)
    decimals: int = Field(ge=0, le=255)
    initial_supply: int = Field(ge=0)
    mint_authority: KeyMaterial

    @property
    def mint_address(self) -> str:
        return self.mint_authority.derived_address

    @property
    def initial_supply_base_units(self) -> int:
        return self.initial_supply * 10**self.decimals

    @classmethod
    def from_settings(cls, token: TokenSettings) -> TokenSpec:
        """Resolve one configured token, reading its keypair file."""
        return cls(
            symbol=token.symbol,
            decimals=token.decimals,
            initial_supply=token.initial_supply,
            mint_authority=load_key_material(token.key_file),
        )


class ProvisionedAccount(BaseModel):
    """On-chain state of one provisioned token.

    Holds ledger state only, so repeated calls against the same ledger compare
    equal whether or not they performed the writes.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    symbol: str
    mint_address: str
    holding_account_address: str
    decimals: int
    minted_supply: Decimal


class ProvisioningOutcome(BaseModel):
    """One provisioning call: resulting account plus the writes it issued."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    account: ProvisionedAccount
    created_mint: bool = False
    created_holding_account: bool = False
    minted: bool = False

    @property
    def performed_work(self) -> bool:
        return self.created_mint or self.created_holding_account or self.minted


class AccountProvisioner:
    """Create mints, holding accounts and initial supply exactly once."""

    def __init__(self, ledger: LedgerSubstrate, *, owner: KeyMaterial) -> None:
        self._ledger = ledger
        self._owner = owner
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def owner(self) -> KeyMaterial:
        return self._owner

    def provision(self, spec: TokenSpec) -> ProvisionedAccount:
        """Bring one token to its intended state and return actual on-chain state."""
        return self.reconcile(spec).account

    def reconcile(self, spec: TokenSpec) -> ProvisioningOutcome:
        """Like ``provision``, also reporting which writes this call issued."""
        context = {fields.SYMBOL: spec.symbol, fields.MINT_ADDRESS: spec.mint_address}
        with log_context(context), self._lock_for(spec.mint_address):
            created_mint = self._ensure_mint(spec)
            holding, created_holding = self._ensure_holding_account(spec)
            minted = self._ensure_supply(spec, holding)
            final = self._require_mint(spec)
            # Two processes racing on one fresh mint both fail here; see
            # "Concurrent provisioners" in DESIGN.md.
            if minted and final.supply != spec.initial_supply_base_units:
                raise ConfigurationError(
                    f"mint {spec.mint_address} supply is {final.supply} base units "
                    f"after minting {spec.initial_supply_base_units}; "
                    "another writer minted concurrently",
                    code=codes.STATE_MISMATCH,
                    endpoint=self._ledger.url,
                )
            account = ProvisionedAccount(
                symbol=spec.symbol,
                mint_address=spec.mint_address,
                holding_account_address=holding.address,
                decimals=final.decimals,
                minted_supply=Decimal(final.supply).scaleb(-final.decimals),
            )
        logger.info(
            "%s provisioned: mint=%s holding=%s supply=%s",
            spec.symbol,
            account.mint_address,
            account.holding_account_address,
            account.minted_supply,
        )
        return ProvisioningOutcome(
            account=account,
            created_mint=created_mint,
            created_holding_account=created_holding,
            minted=minted,
        )

    def _ensure_mint(self, spec: TokenSpec) -> bool:
        existing = self._ledger.get_mint(mint_address=spec.mint_address)
        if existing is not None:
            _check_decimals(spec, existing, endpoint=self._ledger.url)
            if existing.supply == 0 and spec.initial_supply > 0:
                self._check_authority(spec, existing)
            logger.debug("mint %s already exists", spec.mint_address)
            return False
        logger.info("creating %s mint with %d decimals", spec.symbol, spec.decimals)
        self._ledger.create_mint(
            mint_key=spec.mint_authority,
            decimals=spec.decimals,
            authority=self._owner,
        )
        created = self._require_mint(spec)
        _check_decimals(spec, created, endpoint=self._ledger.url)
        return True

    def _ensure_holding_account(self, spec: TokenSpec) -> tuple[TokenAccountInfo, bool]:
        existing = self._find_holding_account(spec)
        if existing is not None:
            return existing, False
        logger.info("creating %s holding account", spec.symbol)
        self._ledger.create_token_account(
            mint_address=spec.mint_address, owner=self._owner
        )
        created = self._find_holding_account(spec)
        if created is None:
            raise ConfigurationError(
                f"holding account for mint {spec.mint_address} missing after creation",
                code=codes.STATE_MISMATCH,
                endpoint=self._ledger.url,
            )
        return created, True

    def _ensure_supply(self, spec: TokenSpec, holding: TokenAccountInfo) -> bool:
        current = self._require_mint(spec)
        if current.supply != 0:
            logger.info(
                "%s supply already %d base units; skipping mint",
                spec.symbol,
                current.supply,
            )
            return False
        if spec.initial_supply == 0:
            return False
        with log_context({fields.HOLDING_ACCOUNT: holding.address}):
            logger.info("minting %d %s", spec.initial_supply, spec.symbol)
            self._ledger.mint_to(
                mint_address=spec.mint_address,
                recipient_address=holding.address,
                amount=spec.initial_supply,
                authority=self._owner,
            )
        return True

    def _check_authority(self, spec: TokenSpec, mint: MintInfo) -> None:
        if mint.mint_authority == self._owner.derived_address:
            return
        raise ConfigurationError(
            f"mint {spec.mint_address} has mint authority {mint.mint_authority}; "
            f"{spec.symbol} supply must be minted by {self._owner.derived_address}",
            code=codes.STATE_MISMATCH,
            endpoint=self._ledger.url,
        )

    def _find_holding_account(self, spec: TokenSpec) -> TokenAccountInfo | None:
        return self._ledger.find_token_account(
            owner_address=self._owner.derived_address,
            mint_address=spec.mint_address,
        )

    def _require_mint(self, spec: TokenSpec) -> MintInfo:
        mint = self._ledger.get_mint(mint_address=spec.mint_address)
        if mint is None:
            raise ConfigurationError(
                f"mint {spec.mint_address} not found on ledger",
                code=codes.STATE_MISMATCH,
                endpoint=self._ledger.url,
            )
        return mint

    def _lock_for(self, mint_address: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(mint_address, threading.Lock())


def provision_all(
    provisioner: AccountProvisioner,
    specs: Sequence[TokenSpec],
    *,
    max_workers: int = 4,
) -> tuple[ProvisioningOutcome, ...]:
    """Provision independent specs concurrently; outcomes follow input order.

    Every spec runs to completion; the first failure in spec order is
    re-raised afterwards.
    """
    if not specs:
        return tuple()
    workers = max(1, min(max_workers, len(specs)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures: list[Future[ProvisioningOutcome]] = [
            executor.submit(contextvars.copy_context().run, provisioner.reconcile, spec)
            for spec in specs
        ]
    failures = [future.exception() for future in futures]
    for failure in failures:
        if failure is not None:
            raise failure
    return tuple(future.result() for future in futures)


def _check_decimals(spec: TokenSpec, mint: MintInfo, *, endpoint: str) -> None:
    if mint.decimals == spec.decimals:
        return
    raise ConfigurationError(
        f"mint {spec.mint_address} has {mint.decimals} decimals "
        f"but {spec.symbol} requests {spec.decimals}",
        code=codes.STATE_MISMATCH,
        endpoint=endpoint,
    )
