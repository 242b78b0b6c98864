"""Genesis loading: initial governors, threshold policy and governed contracts from YAML.

Example::

    governors:
      - address: "0x1111111111111111111111111111111111111111"
        power: 1
    policy:
      kind: percentage
      percent: 51
    governed:
      - label: fee_registry
        parameters:
          fee_bps: 30

Each ``governed`` entry deploys a :class:`GovernedContract` owned by the
governance contract.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from govledger.chain.governed import GovernedContract
from govledger.chain.host import ContractHost
from govledger.core.config import PolicyConfig, Settings
from govledger.core.types import Governor, to_address
from govledger.governance.base import GovernanceContract
from govledger.governance.journal import EventJournal
from govledger.governance.offchain import HybridGovernance, OffchainGovernance
from govledger.governance.onchain import OnchainGovernance
from govledger.governance.policy import create_policy
from govledger.governance.registry import GovernorRegistry

logger = logging.getLogger(__name__)

# Default path to the bundled genesis file
_DEFAULT_GENESIS_PATH = Path(__file__).resolve().parents[3] / "config" / "genesis.yml"

GOVERNANCE_MODES: dict[str, type[GovernanceContract]] = {
    "onchain": OnchainGovernance,
    "offchain": OffchainGovernance,
    "hybrid": HybridGovernance,
}


class GovernedDefinition(BaseModel):
    """A governed contract deployed at genesis."""

    label: str = Field(min_length=1)
    address: str | None = None
    parameters: dict[str, int] = Field(default_factory=dict)

    @field_validator("address")
    @classmethod
    def _normalize_address(cls, value: str | None) -> str | None:
        return to_address(value) if value is not None else None

    @field_validator("parameters")
    @classmethod
    def _check_parameters(cls, value: dict[str, int]) -> dict[str, int]:
        for key, number in value.items():
            if not key or number < 0:
                raise ValueError(f"Invalid parameter {key!r}: {number}")
        return value


class GenesisDefinition(BaseModel):
    """Parsed genesis file."""

    governors: list[Governor] = Field(default_factory=list)
    policy: dict[str, Any] | None = None
    governed: list[GovernedDefinition] = Field(default_factory=list)


def load_genesis(path: str | Path) -> GenesisDefinition:
    """Load a genesis definition from YAML.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a governor address or a governed label appears twice.
    """
    with open(path) as fh:
        data = yaml.safe_load(fh) or {}

    genesis = GenesisDefinition(
        governors=[Governor(**entry) for entry in data.get("governors", [])],
        policy=data.get("policy"),
        governed=[GovernedDefinition(**entry) for entry in data.get("governed", [])],
    )
    seen: set[str] = set()
    for governor in genesis.governors:
        if governor.address in seen:
            raise ValueError(f"Duplicate governor {governor.address} in {path}")
        seen.add(governor.address)

    labels: set[str] = set()
    for entry in genesis.governed:
        if entry.label in labels:
            raise ValueError(f"Duplicate governed contract '{entry.label}' in {path}")
        labels.add(entry.label)
    return genesis


def create_governance(
    settings: Settings | None = None,
    host: ContractHost | None = None,
    genesis: GenesisDefinition | None = None,
    journal: EventJournal | None = None,
) -> GovernanceContract:
    """Build and register the governance contract described by ``settings``.

    The genesis file named by ``settings.genesis.path`` is loaded unless a
    ``genesis`` is passed in. A ``policy`` section in the genesis overrides
    ``settings.policy``. Contracts from the ``governed`` section are
    registered on the same host, owned by the new governance contract.

    Raises:
        ValueError: If ``settings.mode`` is unknown or a governed address is
            already taken on the host.
    """
    if settings is None:
        settings = Settings()

    mode = settings.mode.lower()
    if mode not in GOVERNANCE_MODES:
        raise ValueError(
            f"Unknown governance mode '{settings.mode}'. "
            f"Available modes: {list(GOVERNANCE_MODES.keys())}"
        )

    if genesis is None:
        genesis = load_genesis(settings.genesis.path or _DEFAULT_GENESIS_PATH)

    policy_config = settings.policy
    if genesis.policy:
        policy_config = PolicyConfig(**{**settings.policy.model_dump(), **genesis.policy})

    host = host or ContractHost()
    governance = GOVERNANCE_MODES[mode](
        host,
        GovernorRegistry(genesis.governors),
        create_policy(policy_config),
        journal=journal or EventJournal(config=settings.journal),
    )
    for entry in genesis.governed:
        contract = GovernedContract(
            entry.address or host.new_address(entry.label),
            owner=governance.address,
            parameters=entry.parameters,
            label=entry.label,
        )
        host.register(contract)
        logger.info("Deployed governed contract %s at %s", entry.label, contract.address)
    return governance
