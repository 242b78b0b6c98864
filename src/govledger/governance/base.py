"""Governance contract base: governor registry, threshold and capability discovery.

Concrete deployments add a write interface on top (:mod:`onchain`,
:mod:`offchain`). Governor changes are only reachable through the
``setGovernor(address,uint256)`` entry point when the caller is the
governance contract itself, so changing governors requires an approved
governance call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, ClassVar

from govledger.chain.abi import encode_arguments, interface_id
from govledger.chain.contract import BaseContract, CallMessage, external
from govledger.chain.host import ContractHost
from govledger.core.errors import AuthorizationError, CallRevertedError, ExternalCallError
from govledger.core.types import EventKind, Governor, to_address
from govledger.governance.journal import EventJournal
from govledger.governance.policy import RequiredPolicy
from govledger.governance.registry import GovernorRegistry

logger = logging.getLogger(__name__)

CAPABILITY_INTERFACE = ("supportsInterface(bytes4)",)
READ_INTERFACE = ("powerOf(address)", "totalPower()", "required()")


class GovernanceContract(BaseContract):
    """Shared state and read interface of every governance deployment.

    Args:
        host: Execution host the contract is registered on.
        registry: Initial governor registry.
        policy: Strategy computing ``required()`` from total power.
        journal: Notification journal. Defaults to an in-memory one.
        address: Contract address. Allocated from the host when omitted.
    """

    INTERFACES: ClassVar[tuple[tuple[str, ...], ...]] = (CAPABILITY_INTERFACE, READ_INTERFACE)
    MODE: ClassVar[str] = "base"

    def __init__(
        self,
        host: ContractHost,
        registry: GovernorRegistry,
        policy: RequiredPolicy,
        journal: EventJournal | None = None,
        address: str | None = None,
    ) -> None:
        super().__init__(address or host.new_address("governance"))
        self._host = host
        self._registry = registry
        self._policy = policy
        self._journal = journal or EventJournal()
        host.register(self)

    # --- Read interface ---

    def power_of(self, governor: str) -> int:
        return self._registry.power_of(governor)

    def total_power(self) -> int:
        return self._registry.total_power

    def required(self) -> int:
        """Threshold for the current total power, recomputed on every call."""
        return self._policy.required(self._registry.total_power)

    @property
    def governors(self) -> list[Governor]:
        return self._registry.governors

    @property
    def journal(self) -> EventJournal:
        return self._journal

    @property
    def host(self) -> ContractHost:
        return self._host

    @property
    def policy(self) -> RequiredPolicy:
        return self._policy

    # --- Capability discovery ---

    @classmethod
    def interface_ids(cls) -> list[bytes]:
        """Ids of every interface this class implements, in declaration order."""
        ids: list[bytes] = []
        for klass in reversed(cls.__mro__):
            for signatures in vars(klass).get("INTERFACES", ()):
                iid = interface_id(signatures)
                if iid not in ids:
                    ids.append(iid)
        return ids

    def supports_interface(self, iid: bytes) -> bool:
        if len(iid) != 4:
            return False
        return bytes(iid) in self.interface_ids()

    # --- Call-data entry points ---

    @external("supportsInterface(bytes4)")
    def _supports_interface_call(self, msg: CallMessage, iid: bytes) -> bytes:
        return encode_arguments(["bool"], [self.supports_interface(iid)])

    @external("powerOf(address)")
    def _power_of_call(self, msg: CallMessage, governor: str) -> bytes:
        return encode_arguments(["uint256"], [self.power_of(governor)])

    @external("totalPower()")
    def _total_power_call(self, msg: CallMessage) -> bytes:
        return encode_arguments(["uint256"], [self.total_power()])

    @external("required()")
    def _required_call(self, msg: CallMessage) -> bytes:
        return encode_arguments(["uint256"], [self.required()])

    @external("setGovernor(address,uint256)")
    def set_governor(self, msg: CallMessage, governor: str, power: int) -> None:
        """Set or remove (``power == 0``) a governor.

        Raises:
            AuthorizationError: Unless the call comes from this contract.
        """
        if msg.sender != self.address:
            raise AuthorizationError("setGovernor is only callable by the governance contract itself")

        governor = to_address(governor)
        with self._transition():
            previous = self._registry.set_power(governor, power)
            self._on_power_changed(governor, previous, power)
            self._journal.record(
                EventKind.POWER_UPDATED,
                contract=self.address,
                actor=msg.sender,
                details={"governor": governor, "previous_power": previous, "power": power},
            )
        logger.info("Governor %s power %d -> %d", governor, previous, power)

    # --- Internals ---

    def _require_governor(self, caller: str) -> str:
        caller = to_address(caller)
        if not self._registry.is_governor(caller):
            raise AuthorizationError(f"{caller} is not a governor")
        return caller

    def _on_power_changed(self, governor: str, previous: int, power: int) -> None:
        """Hook for write interfaces that track per-governor vote weight."""

    def _execute_call(self, destination: str, value: int, data: bytes) -> bytes:
        try:
            return self._host.call(self.address, destination, value, data)
        except CallRevertedError as exc:
            logger.warning("Governance call to %s failed: %s", destination, exc)
            raise ExternalCallError(f"Call to {destination} failed: {exc}") from exc

    def _snapshot(self) -> dict[str, Any]:
        return {"registry": self._registry.snapshot()}

    def _restore(self, state: dict[str, Any]) -> None:
        self._registry.restore(state["registry"])

    def _release(self, state: dict[str, Any]) -> None:
        """Hook run when the transition that took ``state`` commits."""

    @contextmanager
    def _transition(self) -> Iterator[None]:
        """Run a block as one all-or-nothing state transition."""
        state = self._snapshot()
        try:
            with self._journal.atomic():
                yield
        except Exception:
            self._restore(state)
            raise
        self._release(state)
