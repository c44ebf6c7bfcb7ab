"""Idempotent deployment of the Neon EVM loader program."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from packages.devnet_shared.errors import ConfigurationError, codes
from packages.devnet_shared.keys import KeyMaterial
from packages.devnet_shared.logging import get_logger
from resources.substrates.solana import LedgerSubstrate

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DeployedProgram:
    """Program state observed after ``ensure_deployed``."""

    program_id: str
    deployed: bool


class ProgramDeployer:
    """Deploy a program only when its address holds no executable account."""

    def __init__(self, ledger: LedgerSubstrate, *, payer: KeyMaterial) -> None:
        self._ledger = ledger
        self._payer = payer

    def ensure_deployed(
        self, *, program_key: KeyMaterial, program_path: Path
    ) -> DeployedProgram:
        program_id = program_key.derived_address
        existing = self._ledger.get_program(program_id=program_id)
        if existing is not None:
            if not existing.executable:
                raise ConfigurationError(
                    f"account {program_id} exists but is not an executable program",
                    code=codes.STATE_MISMATCH,
                    endpoint=self._ledger.url,
                )
            logger.info("program %s already deployed", program_id)
            return DeployedProgram(program_id=program_id, deployed=False)

        if not program_path.is_file():
            raise ConfigurationError(
                f"program binary not found: {program_path}",
                code=codes.MISSING_REQUIRED_VALUE,
                endpoint=self._ledger.url,
            )
        logger.info("deploying %s as %s", program_path.name, program_id)
        self._ledger.deploy_program(
            program_key=program_key,
            program_path=str(program_path),
            payer=self._payer,
        )
        deployed = self._ledger.get_program(program_id=program_id)
        if deployed is None or not deployed.executable:
            raise ConfigurationError(
                f"program {program_id} not executable after deployment",
                code=codes.STATE_MISMATCH,
                endpoint=self._ledger.url,
            )
        return DeployedProgram(program_id=program_id, deployed=True)
