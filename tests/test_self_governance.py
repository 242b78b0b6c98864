"""Tests for governor changes through approved governance calls and capability discovery."""

from __future__ import annotations

import pytest

from govledger.chain.abi import decode_arguments, encode_call, interface_id
from govledger.chain.contract import CallMessage
from govledger.chain.host import ContractHost
from govledger.core.errors import CallRevertedError, ExternalCallError
from govledger.core.types import EventKind
from govledger.governance.base import CAPABILITY_INTERFACE, READ_INTERFACE
from govledger.governance.offchain import OFFCHAIN_INTERFACE, HybridGovernance, OffchainGovernance
from govledger.governance.onchain import ONCHAIN_INTERFACE, OnchainGovernance
from govledger.governance.policy import FixedPolicy, MajorityPolicy

from tests.conftest import ALICE, BOB, CAROL, DAVE, OUTSIDER, make_registry, record_backup_frames


def _set_governor(address: str, power: int) -> bytes:
    return encode_call("setGovernor(address,uint256)", address, power)


def _approve(governance: OnchainGovernance, data: bytes) -> int:
    """Create a self-targeted transaction and confirm it with Bob."""
    tx_id = governance.create_transaction(ALICE, governance.address, 0, data)
    governance.confirm_transaction(BOB, tx_id)
    return tx_id


class TestSetGovernor:
    def test_add_governor_through_transaction(self, governance: OnchainGovernance) -> None:
        _approve(governance, _set_governor(DAVE, 2))
        assert governance.power_of(DAVE) == 2
        assert governance.total_power() == 5
        # required is recomputed from the new total
        assert governance.required() == 3

    def test_remove_governor(self, governance: OnchainGovernance) -> None:
        _approve(governance, _set_governor(CAROL, 0))
        assert governance.power_of(CAROL) == 0
        assert governance.total_power() == 2
        assert [g.address for g in governance.governors] == [ALICE, BOB]

    def test_power_updated_event(self, governance: OnchainGovernance) -> None:
        tx_id = _approve(governance, _set_governor(DAVE, 4))
        updates = governance.journal.query(kind=EventKind.POWER_UPDATED)
        assert len(updates) == 1
        assert updates[0].actor == governance.address
        assert updates[0].details == {"governor": DAVE, "previous_power": 0, "power": 4}
        # the power update happens during execution, before the execution event
        kinds = [e.kind for e in governance.journal.events]
        assert kinds.index(EventKind.POWER_UPDATED) < kinds.index(EventKind.TRANSACTION_EXECUTED)
        assert governance.get_transaction(tx_id).executed is True

    def test_power_updated_event_uses_normalized_address(self, governance: OnchainGovernance) -> None:
        governance.set_governor(CallMessage(sender=governance.address), "0x" + DAVE[2:].upper(), 2)
        update = governance.journal.query(kind=EventKind.POWER_UPDATED)[0]
        assert update.details["governor"] == DAVE
        assert governance.power_of(DAVE) == 2

    def test_direct_call_from_governor_reverts(self, host: ContractHost, governance: OnchainGovernance) -> None:
        with pytest.raises(CallRevertedError, match="only callable by the governance contract"):
            host.call(ALICE, governance.address, 0, _set_governor(DAVE, 10))
        assert governance.power_of(DAVE) == 0

    def test_direct_call_from_outsider_reverts(self, host: ContractHost, governance: OnchainGovernance) -> None:
        with pytest.raises(CallRevertedError):
            host.call(OUTSIDER, governance.address, 0, _set_governor(OUTSIDER, 10))
        assert governance.total_power() == 3

    def test_removed_governor_loses_pending_confirmations(self, governance: OnchainGovernance) -> None:
        pending = governance.create_transaction(CAROL, OUTSIDER, 0, b"")
        assert governance.get_transaction(pending).votes == 1

        _approve(governance, _set_governor(CAROL, 0))

        record = governance.get_transaction(pending)
        assert record.votes == 0
        assert governance.confirmations(pending) == []

    def test_power_change_adjusts_pending_votes(self, host: ContractHost) -> None:
        governance = OnchainGovernance(host, make_registry(alice=1, bob=1, carol=1), FixedPolicy(2))
        pending = governance.create_transaction(CAROL, OUTSIDER, 0, b"")
        _approve(governance, _set_governor(CAROL, 5))
        assert governance.get_transaction(pending).votes == 5

    def test_power_change_only_copies_affected_transactions(
        self, governance: OnchainGovernance, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        carol_pending = [governance.create_transaction(CAROL, OUTSIDER, 0, b"") for _ in range(3)]
        for _ in range(50):
            governance.create_transaction(ALICE, OUTSIDER, 0, b"")
        frames = record_backup_frames(governance, monkeypatch)

        tx_id = _approve(governance, _set_governor(CAROL, 0))

        # create, confirm, then the nested setGovernor transition
        assert [set(frame) for frame in frames] == [
            {tx_id},
            {tx_id, *carol_pending},
            set(carol_pending),
        ]
        assert all(governance.get_transaction(t).votes == 0 for t in carol_pending)

    def test_rolled_back_confirmation_is_not_adjusted_later(self, governance: OnchainGovernance) -> None:
        tx_id = governance.create_transaction(ALICE, governance.address, 0, b"\x00\x00\x00\x01")
        with pytest.raises(ExternalCallError):
            governance.confirm_transaction(BOB, tx_id)

        _approve(governance, _set_governor(BOB, 0))

        assert governance.get_transaction(tx_id).votes == 1
        assert governance.confirmations(tx_id) == [ALICE]

    def test_executed_record_votes_are_frozen(self, governance: OnchainGovernance) -> None:
        executed = governance.create_transaction(ALICE, OUTSIDER, 0, b"")
        governance.confirm_transaction(BOB, executed)
        _approve(governance, _set_governor(ALICE, 7))
        assert governance.get_transaction(executed).votes == 2

    def test_failed_change_leaves_registry_untouched(self, host: ContractHost) -> None:
        governance = OnchainGovernance(host, make_registry(alice=1, bob=1), MajorityPolicy())
        tx_id = governance.create_transaction(ALICE, governance.address, 0, b"\x00\x00\x00\x01")
        with pytest.raises(ExternalCallError, match="Unknown selector"):
            governance.confirm_transaction(BOB, tx_id)
        assert governance.total_power() == 2
        assert governance.get_transaction(tx_id).executed is False

    def test_governor_change_requires_consensus(self, governance: OnchainGovernance) -> None:
        tx_id = governance.create_transaction(ALICE, governance.address, 0, _set_governor(ALICE, 100))
        assert governance.power_of(ALICE) == 1
        assert governance.get_transaction(tx_id).executed is False


class TestCapabilityDiscovery:
    def test_onchain_interfaces(self, governance: OnchainGovernance) -> None:
        assert governance.supports_interface(interface_id(CAPABILITY_INTERFACE))
        assert governance.supports_interface(interface_id(READ_INTERFACE))
        assert governance.supports_interface(interface_id(ONCHAIN_INTERFACE))
        assert not governance.supports_interface(interface_id(OFFCHAIN_INTERFACE))

    def test_offchain_interfaces(self, host: ContractHost) -> None:
        governance = OffchainGovernance(host, make_registry(alice=1), MajorityPolicy())
        assert governance.supports_interface(interface_id(OFFCHAIN_INTERFACE))
        assert not governance.supports_interface(interface_id(ONCHAIN_INTERFACE))

    def test_hybrid_supports_both(self, host: ContractHost) -> None:
        governance = HybridGovernance(host, make_registry(alice=1), MajorityPolicy())
        assert governance.supports_interface(interface_id(ONCHAIN_INTERFACE))
        assert governance.supports_interface(interface_id(OFFCHAIN_INTERFACE))
        assert len(governance.interface_ids()) == 4

    def test_unknown_or_malformed_id(self, governance: OnchainGovernance) -> None:
        assert not governance.supports_interface(b"\xff\xff\xff\xff")
        assert not governance.supports_interface(b"\x01\x02")

    def test_supports_interface_through_host(self, host: ContractHost, governance: OnchainGovernance) -> None:
        data = encode_call("supportsInterface(bytes4)", interface_id(ONCHAIN_INTERFACE))
        result = host.call(OUTSIDER, governance.address, 0, data)
        assert decode_arguments(["bool"], result) == [True]
