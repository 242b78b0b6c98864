"""Off-chain approved execution: one call carrying every governor signature."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, ClassVar

from govledger.chain.contract import CallMessage, external
from govledger.core.errors import NonceMismatchError, SignatureOrderError, ThresholdNotMetError
from govledger.core.types import EventKind, to_address
from govledger.governance.base import GovernanceContract
from govledger.governance.onchain import OnchainGovernance
from govledger.governance.signing import message_digest, recover_signer

logger = logging.getLogger(__name__)

OFFCHAIN_INTERFACE = ("executeTransaction(uint256,address,bytes,bytes[])",)


class OffchainGovernance(GovernanceContract):
    """Governance deployment executing calls approved by collected signatures.

    Each execution consumes the current nonce, so a set of signatures can be
    used at most once.
    """

    INTERFACES: ClassVar[tuple[tuple[str, ...], ...]] = (OFFCHAIN_INTERFACE,)
    MODE: ClassVar[str] = "offchain"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._nonce = 0
        super().__init__(*args, **kwargs)

    @property
    def nonce(self) -> int:
        """Nonce the next signed execution must use."""
        return self._nonce

    def transaction_digest(self, nonce: int, destination: str, data: bytes) -> bytes:
        """Digest governors sign to approve ``data`` against ``destination``."""
        return message_digest(self.address, nonce, destination, data)

    def execute_signed(
        self,
        nonce: int,
        destination: str,
        data: bytes,
        signatures: Sequence[bytes],
    ) -> bytes:
        """Execute a call approved by ``signatures``.

        Signatures must be sorted by strictly ascending signer address; a
        repeated or out-of-order signer is rejected outright. Signers that
        are not governors contribute no power.

        Returns:
            Return data of the governed call.

        Raises:
            NonceMismatchError: If ``nonce`` is not the current nonce.
            SignatureError: If a signature does not verify.
            SignatureOrderError: If signers are not strictly ascending.
            ThresholdNotMetError: If signer power is below ``required()``.
            ExternalCallError: If the governed call fails.
        """
        destination = to_address(destination)
        if nonce != self._nonce:
            raise NonceMismatchError(f"Expected nonce {self._nonce}, got {nonce}")

        digest = self.transaction_digest(nonce, destination, data)
        signers: list[str] = []
        votes = 0
        for signature in signatures:
            signer = recover_signer(digest, signature)
            if signers and signer <= signers[-1]:
                raise SignatureOrderError(
                    "Signatures must be sorted by strictly ascending signer address"
                )
            signers.append(signer)
            votes += self._registry.power_of(signer)

        required = self.required()
        if votes < required:
            raise ThresholdNotMetError(f"Signers hold {votes} power, {required} required")

        with self._transition():
            self._nonce += 1
            result = self._execute_call(destination, 0, bytes(data))
            self._journal.record(
                EventKind.TRANSACTION_EXECUTED,
                contract=self.address,
                actor=signers[0],
                details={
                    "nonce": nonce,
                    "destination": destination,
                    "signers": signers,
                    "votes": votes,
                    "result": "0x" + result.hex(),
                },
            )
        logger.info("Executed signed call %d to %s with %d votes", nonce, destination, votes)
        return result

    @external("executeTransaction(uint256,address,bytes,bytes[])")
    def _execute_signed_call(
        self, msg: CallMessage, nonce: int, destination: str, data: bytes, signatures: list[bytes]
    ) -> bytes:
        return self.execute_signed(nonce, destination, data, signatures)

    def _snapshot(self) -> dict[str, Any]:
        state = super()._snapshot()
        state["nonce"] = self._nonce
        return state

    def _restore(self, state: dict[str, Any]) -> None:
        super()._restore(state)
        self._nonce = state["nonce"]


class HybridGovernance(OnchainGovernance, OffchainGovernance):
    """Deployment offering both the on-chain and the off-chain write interface."""

    MODE: ClassVar[str] = "hybrid"
