"""Transaction approval ledger: on-chain multi-signature governance.

Governors propose administrative calls, confirm or revoke them, and a call is
executed once the confirming governors' combined power reaches
``required()``. Creating a transaction also confirms it for its creator.

For every pending transaction ``votes`` equals the summed current power of
governors with an active confirmation. Executed records are frozen.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, ClassVar

from govledger.chain.abi import encode_arguments
from govledger.chain.contract import CallMessage, external
from govledger.core.errors import (
    AlreadyExecutedError,
    ConfirmationNotFoundError,
    DuplicateConfirmationError,
    ThresholdNotMetError,
    TransactionNotFoundError,
)
from govledger.core.types import EventKind, TransactionRecord, to_address
from govledger.governance.base import GovernanceContract

logger = logging.getLogger(__name__)

ONCHAIN_INTERFACE = (
    "createTransaction(address,uint256,bytes)",
    "confirmTransaction(uint256)",
    "revokeConfirmation(uint256)",
    "executeTransaction(uint256)",
)


class OnchainGovernance(GovernanceContract):
    """Governance deployment with the propose/confirm/execute write interface."""

    INTERFACES: ClassVar[tuple[tuple[str, ...], ...]] = (ONCHAIN_INTERFACE,)
    MODE: ClassVar[str] = "onchain"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._transactions: dict[int, TransactionRecord] = {}
        self._confirmations: dict[int, set[str]] = {}
        # Pending transaction ids each governor has confirmed.
        self._pending_by_governor: dict[str, set[int]] = {}
        # One frame per open transition: pre-transition copies of changed entries.
        self._backups: list[dict[int, tuple[TransactionRecord, set[str]] | None]] = []
        self._next_id = 0
        super().__init__(*args, **kwargs)

    # --- Write interface ---

    def create_transaction(
        self,
        caller: str,
        destination: str,
        value: int = 0,
        data: bytes = b"",
    ) -> int:
        """Propose a call and confirm it on behalf of the creator.

        Returns:
            The new transaction id.

        Raises:
            AuthorizationError: If the caller is not a governor.
            ExternalCallError: If the creator's confirmation reaches the
                threshold and the call fails. Nothing is recorded.
        """
        caller = self._require_governor(caller)
        destination = to_address(destination)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"Value must be a non-negative integer, got {value!r}")

        with self._transition():
            transaction_id = self._next_id
            self._next_id += 1
            self._touch(transaction_id)
            record = TransactionRecord(
                transaction_id=transaction_id,
                destination=destination,
                value=value,
                data=bytes(data),
                creator=caller,
            )
            self._transactions[transaction_id] = record
            self._confirmations[transaction_id] = set()
            self._journal.record(
                EventKind.TRANSACTION_CREATED,
                contract=self.address,
                actor=caller,
                transaction_id=transaction_id,
                details={"destination": destination, "value": value, "data": "0x" + record.data.hex()},
            )
            self._confirm(record, caller)

        return transaction_id

    def confirm_transaction(self, caller: str, transaction_id: int) -> None:
        """Add the caller's power to a pending transaction.

        Executes the transaction when the votes reach ``required()``. If that
        execution fails the error propagates and the confirmation is not
        recorded, so a later confirmation or a direct execution can retry.

        Raises:
            AuthorizationError: If the caller is not a governor.
            TransactionNotFoundError: If the id is unknown.
            AlreadyExecutedError: If the transaction was executed.
            DuplicateConfirmationError: If the caller already confirmed.
            ExternalCallError: If the triggered execution fails.
        """
        caller = self._require_governor(caller)
        with self._transition():
            record = self._get_pending(transaction_id)
            self._confirm(record, caller)

    def revoke_confirmation(self, caller: str, transaction_id: int) -> None:
        """Withdraw the caller's confirmation from a pending transaction.

        Raises:
            AuthorizationError: If the caller is not a governor.
            TransactionNotFoundError: If the id is unknown.
            AlreadyExecutedError: If the transaction was executed.
            ConfirmationNotFoundError: If the caller has not confirmed.
        """
        caller = self._require_governor(caller)
        with self._transition():
            record = self._get_pending(transaction_id)
            confirmations = self._confirmations[transaction_id]
            if caller not in confirmations:
                raise ConfirmationNotFoundError(
                    f"{caller} has no confirmation on transaction {transaction_id}"
                )
            self._touch(transaction_id)
            self._unindex(transaction_id)
            confirmations.remove(caller)
            self._index(transaction_id)
            record.votes -= self._registry.power_of(caller)
            self._journal.record(
                EventKind.TRANSACTION_REVOKED,
                contract=self.address,
                actor=caller,
                transaction_id=transaction_id,
                details={"votes": record.votes},
            )

    def execute_transaction(self, caller: str, transaction_id: int) -> bytes:
        """Execute a pending transaction whose votes meet ``required()``.

        Anyone may call this; it is how a failed execution is retried.

        Returns:
            Return data of the governed call.

        Raises:
            TransactionNotFoundError: If the id is unknown.
            AlreadyExecutedError: If the transaction was executed.
            ThresholdNotMetError: If votes are below ``required()``.
            ExternalCallError: If the governed call fails.
        """
        caller = to_address(caller)
        with self._transition():
            record = self._get_pending(transaction_id)
            required = self.required()
            if record.votes < required:
                raise ThresholdNotMetError(
                    f"Transaction {transaction_id} has {record.votes} votes, {required} required"
                )
            return self._execute(record, caller)

    # --- Queries ---

    def get_transaction(self, transaction_id: int) -> TransactionRecord:
        """Return a copy of a transaction record.

        Raises:
            TransactionNotFoundError: If the id is unknown.
        """
        return self._get_record(transaction_id).model_copy(deep=True)

    def transactions(self, pending_only: bool = False) -> list[TransactionRecord]:
        return [
            record.model_copy(deep=True)
            for _, record in sorted(self._transactions.items())
            if not (pending_only and record.executed)
        ]

    @property
    def transaction_count(self) -> int:
        return len(self._transactions)

    def is_confirmed(self, transaction_id: int, governor: str) -> bool:
        self._get_record(transaction_id)
        return to_address(governor) in self._confirmations[transaction_id]

    def confirmations(self, transaction_id: int) -> list[str]:
        """Governors with an active confirmation, sorted by address."""
        self._get_record(transaction_id)
        return sorted(self._confirmations[transaction_id])

    # --- Call-data entry points ---

    @external("createTransaction(address,uint256,bytes)")
    def _create_transaction_call(
        self, msg: CallMessage, destination: str, value: int, data: bytes
    ) -> bytes:
        transaction_id = self.create_transaction(msg.sender, destination, value, data)
        return encode_arguments(["uint256"], [transaction_id])

    @external("confirmTransaction(uint256)")
    def _confirm_transaction_call(self, msg: CallMessage, transaction_id: int) -> None:
        self.confirm_transaction(msg.sender, transaction_id)

    @external("revokeConfirmation(uint256)")
    def _revoke_confirmation_call(self, msg: CallMessage, transaction_id: int) -> None:
        self.revoke_confirmation(msg.sender, transaction_id)

    @external("executeTransaction(uint256)")
    def _execute_transaction_call(self, msg: CallMessage, transaction_id: int) -> bytes:
        return self.execute_transaction(msg.sender, transaction_id)

    # --- Internals ---

    def _get_record(self, transaction_id: int) -> TransactionRecord:
        record = self._transactions.get(transaction_id)
        if record is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        return record

    def _get_pending(self, transaction_id: int) -> TransactionRecord:
        record = self._get_record(transaction_id)
        if record.executed:
            raise AlreadyExecutedError(f"Transaction {transaction_id} is already executed")
        return record

    def _confirm(self, record: TransactionRecord, governor: str) -> None:
        confirmations = self._confirmations[record.transaction_id]
        if governor in confirmations:
            raise DuplicateConfirmationError(
                f"{governor} already confirmed transaction {record.transaction_id}"
            )
        self._touch(record.transaction_id)
        confirmations.add(governor)
        self._pending_by_governor.setdefault(governor, set()).add(record.transaction_id)
        record.votes += self._registry.power_of(governor)
        self._journal.record(
            EventKind.TRANSACTION_CONFIRMED,
            contract=self.address,
            actor=governor,
            transaction_id=record.transaction_id,
            details={"votes": record.votes},
        )
        if record.votes >= self.required():
            self._execute(record, governor)

    def _execute(self, record: TransactionRecord, caller: str) -> bytes:
        self._touch(record.transaction_id)
        self._unindex(record.transaction_id)
        # Marked before the call so a re-entrant call cannot execute it twice.
        record.executed = True
        record.executed_at = datetime.now(timezone.utc)
        result = self._execute_call(record.destination, record.value, record.data)
        self._journal.record(
            EventKind.TRANSACTION_EXECUTED,
            contract=self.address,
            actor=caller,
            transaction_id=record.transaction_id,
            details={"votes": record.votes, "result": "0x" + result.hex()},
        )
        logger.info(
            "Executed transaction %d to %s with %d votes",
            record.transaction_id, record.destination, record.votes,
        )
        return result

    def _on_power_changed(self, governor: str, previous: int, power: int) -> None:
        governor = to_address(governor)
        for transaction_id in sorted(self._pending_by_governor.get(governor, ())):
            self._touch(transaction_id)
            self._transactions[transaction_id].votes += power - previous
            if power == 0:
                self._confirmations[transaction_id].discard(governor)
        if power == 0:
            self._pending_by_governor.pop(governor, None)
        super()._on_power_changed(governor, previous, power)

    def _index(self, transaction_id: int) -> None:
        if self._transactions[transaction_id].executed:
            return
        for governor in self._confirmations[transaction_id]:
            self._pending_by_governor.setdefault(governor, set()).add(transaction_id)

    def _unindex(self, transaction_id: int) -> None:
        for governor in self._confirmations.get(transaction_id, ()):
            pending = self._pending_by_governor.get(governor)
            if pending is None:
                continue
            pending.discard(transaction_id)
            if not pending:
                del self._pending_by_governor[governor]

    def _touch(self, transaction_id: int) -> None:
        """Back up a transaction before the current transition first changes it."""
        frame = self._backups[-1]
        if transaction_id in frame:
            return
        record = self._transactions.get(transaction_id)
        if record is None:
            frame[transaction_id] = None
        else:
            frame[transaction_id] = (
                record.model_copy(deep=True),
                set(self._confirmations[transaction_id]),
            )

    def _snapshot(self) -> dict[str, Any]:
        state = super()._snapshot()
        frame: dict[int, tuple[TransactionRecord, set[str]] | None] = {}
        self._backups.append(frame)
        state["ledger"] = (frame, self._next_id)
        return state

    def _restore(self, state: dict[str, Any]) -> None:
        super()._restore(state)
        frame, self._next_id = state["ledger"]
        self._backups.pop()
        for transaction_id, backup in frame.items():
            self._unindex(transaction_id)
            if backup is None:
                self._transactions.pop(transaction_id, None)
                self._confirmations.pop(transaction_id, None)
                continue
            record, confirmations = backup
            self._transactions[transaction_id] = record
            self._confirmations[transaction_id] = confirmations
            self._index(transaction_id)

    def _release(self, state: dict[str, Any]) -> None:
        frame, _ = state["ledger"]
        self._backups.pop()
        if self._backups:
            parent = self._backups[-1]
            for transaction_id, backup in frame.items():
                parent.setdefault(transaction_id, backup)
        super()._release(state)
