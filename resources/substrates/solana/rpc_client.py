"""JSON-RPC read client for the Solana ledger over httpx.

Every failure mode (transport error, non-2xx status, invalid JSON, RPC
``error`` payload, unexpected result shape) maps to ``ConnectivityError`` so
readiness gates treat it as "not yet". An account that exists but is not of
the expected kind is a ``ConfigurationError``: the environment is stale.
"""

from __future__ import annotations

import itertools
from typing import Any

import httpx

from packages.devnet_shared.errors import ConfigurationError, ConnectivityError, codes

from .config import SolanaConfig
from .substrate import LedgerVersion, MintInfo, ProgramInfo, TokenAccountInfo


class SolanaRpcClient:
    """Thin synchronous JSON-RPC wrapper over ``httpx.Client``."""

    def __init__(
        self,
        config: SolanaConfig,
        *,
        transport: httpx.BaseTransport | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._config = config
        self._ids = itertools.count(1)
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=config.timeout_seconds,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    @property
    def url(self) -> str:
        return self._config.url

    def close(self) -> None:
        """Close underlying transport resources when owned."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> SolanaRpcClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Issue one JSON-RPC request and return its ``result`` member."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            response = self._client.post(self._config.url, json=payload)
        except httpx.RequestError as exc:
            raise ConnectivityError(
                f"{method} request failed: {type(exc).__name__}",
                code=codes.ENDPOINT_UNREACHABLE,
                endpoint=self._config.url,
            ) from exc

        if response.is_error:
            raise ConnectivityError(
                f"{method} returned HTTP {response.status_code}",
                code=codes.ENDPOINT_UNREACHABLE,
                endpoint=self._config.url,
                metadata={"status_code": str(response.status_code)},
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise self._malformed(method, "body is not JSON") from exc

        if not isinstance(body, dict):
            raise self._malformed(method, "body is not a JSON object")
        error = body.get("error")
        if error is not None:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise ConnectivityError(
                f"{method} failed: {message}",
                code=codes.RPC_ERROR,
                endpoint=self._config.url,
            )
        if "result" not in body:
            raise self._malformed(method, "missing result")
        return body["result"]

    def get_version(self) -> LedgerVersion:
        """Return the node version; any other shape is malformed."""
        result = self.call("getVersion")
        if not isinstance(result, dict) or not isinstance(
            result.get("solana-core"), str
        ):
            raise self._malformed("getVersion", "missing solana-core version")
        feature_set = result.get("feature-set")
        return LedgerVersion(
            solana_core=result["solana-core"],
            feature_set=feature_set if isinstance(feature_set, int) else None,
        )

    def get_account_info(self, address: str) -> dict[str, Any] | None:
        """Return the jsonParsed account value or ``None`` when absent."""
        result = self.call(
            "getAccountInfo",
            [address, {"encoding": "jsonParsed", "commitment": self._config.commitment}],
        )
        if not isinstance(result, dict) or "value" not in result:
            raise self._malformed("getAccountInfo", "missing value")
        value = result["value"]
        if value is None:
            return None
        if not isinstance(value, dict):
            raise self._malformed("getAccountInfo", "value is not an object")
        return value

    def get_mint(self, *, mint_address: str) -> MintInfo | None:
        """Return mint state, or raise when the address holds something else."""
        value = self.get_account_info(mint_address)
        if value is None:
            return None
        parsed = _parsed_data(value)
        if parsed is None or parsed.get("type") != "mint":
            raise ConfigurationError(
                f"account {mint_address} exists but is not a token mint",
                code=codes.STATE_MISMATCH,
                endpoint=self._config.url,
            )
        try:
            info = parsed["info"]
            return MintInfo(
                address=mint_address,
                decimals=int(info["decimals"]),
                supply=int(info["supply"]),
                mint_authority=info.get("mintAuthority"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise self._malformed("getAccountInfo", "unexpected mint layout") from exc

    def find_token_account(
        self, *, owner_address: str, mint_address: str
    ) -> TokenAccountInfo | None:
        """Return the owner's holding account for one mint, lowest address first."""
        result = self.call(
            "getTokenAccountsByOwner",
            [
                owner_address,
                {"mint": mint_address},
                {"encoding": "jsonParsed", "commitment": self._config.commitment},
            ],
        )
        if not isinstance(result, dict) or not isinstance(result.get("value"), list):
            raise self._malformed("getTokenAccountsByOwner", "missing value list")
        accounts: list[TokenAccountInfo] = []
        for entry in result["value"]:
            try:
                info = _parsed_data(entry["account"])["info"]
                accounts.append(
                    TokenAccountInfo(
                        address=entry["pubkey"],
                        mint=info["mint"],
                        owner=info["owner"],
                        amount=int(info["tokenAmount"]["amount"]),
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise self._malformed(
                    "getTokenAccountsByOwner", "unexpected token account layout"
                ) from exc
        if not accounts:
            return None
        return min(accounts, key=lambda account: account.address)

    def get_program(self, *, program_id: str) -> ProgramInfo | None:
        """Return program account state or ``None`` when absent."""
        value = self.get_account_info(program_id)
        if value is None:
            return None
        try:
            return ProgramInfo(
                address=program_id,
                executable=bool(value["executable"]),
                owner=str(value["owner"]),
            )
        except KeyError as exc:
            raise self._malformed("getAccountInfo", "unexpected program layout") from exc

    def _malformed(self, method: str, reason: str) -> ConnectivityError:
        return ConnectivityError(
            f"{method} returned a malformed response: {reason}",
            code=codes.MALFORMED_RESPONSE,
            endpoint=self._config.url,
        )


def _parsed_data(account: dict[str, Any]) -> dict[str, Any] | None:
    """Return ``data.parsed`` for jsonParsed accounts, ``None`` for raw data."""
    data = account.get("data")
    if not isinstance(data, dict):
        return None
    parsed = data.get("parsed")
    return parsed if isinstance(parsed, dict) else None
