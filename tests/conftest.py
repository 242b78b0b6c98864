"""Shared test fixtures and helpers."""

from __future__ import annotations

import pytest

from govledger.chain.governed import GovernedContract
from govledger.chain.host import ContractHost
from govledger.core.types import Governor
from govledger.governance.journal import EventJournal
from govledger.governance.onchain import OnchainGovernance
from govledger.governance.policy import FixedPolicy, MajorityPolicy
from govledger.governance.registry import GovernorRegistry


ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
DAVE = "0x" + "d4" * 20
OUTSIDER = "0x" + "ee" * 20


def make_registry(**powers: int) -> GovernorRegistry:
    """Build a registry from ``alice=1, bob=2``-style keyword powers."""
    addresses = {"alice": ALICE, "bob": BOB, "carol": CAROL, "dave": DAVE}
    return GovernorRegistry(
        [Governor(address=addresses[name], power=power) for name, power in powers.items()]
    )


def record_backup_frames(governance: OnchainGovernance, monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    """Collect the backup frame of every transition ``governance`` opens from now on."""
    frames: list[dict] = []
    original = governance._snapshot

    def recording_snapshot() -> dict:
        state = original()
        frames.append(state["ledger"][0])
        return state

    monkeypatch.setattr(governance, "_snapshot", recording_snapshot)
    return frames


@pytest.fixture()
def host() -> ContractHost:
    return ContractHost()


@pytest.fixture()
def journal() -> EventJournal:
    return EventJournal()


@pytest.fixture()
def governance(host: ContractHost, journal: EventJournal) -> OnchainGovernance:
    """Three equal governors, majority threshold (required == 2)."""
    return OnchainGovernance(
        host,
        make_registry(alice=1, bob=1, carol=1),
        MajorityPolicy(),
        journal=journal,
    )


@pytest.fixture()
def target(host: ContractHost, governance: OnchainGovernance) -> GovernedContract:
    """A contract owned by the governance fixture."""
    contract = GovernedContract(host.new_address("target"), owner=governance.address)
    host.register(contract)
    return contract


@pytest.fixture()
def solo_governance(host: ContractHost) -> OnchainGovernance:
    """Single governor whose own confirmation meets the threshold."""
    return OnchainGovernance(host, make_registry(alice=3), FixedPolicy(2))
