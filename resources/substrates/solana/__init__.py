"""Solana ledger substrate: JSON-RPC reads and CLI-driven provisioning writes."""

from resources.substrates.solana.config import SolanaConfig, solana_config_from_settings
from resources.substrates.solana.rpc_client import SolanaRpcClient
from resources.substrates.solana.solana_substrate import SolanaLedgerSubstrate
from resources.substrates.solana.substrate import (
    LedgerSubstrate,
    LedgerVersion,
    MintInfo,
    ProgramInfo,
    TokenAccountInfo,
)

__all__ = [
    "LedgerSubstrate",
    "LedgerVersion",
    "MintInfo",
    "ProgramInfo",
    "SolanaConfig",
    "SolanaLedgerSubstrate",
    "SolanaRpcClient",
    "TokenAccountInfo",
    "solana_config_from_settings",
]
