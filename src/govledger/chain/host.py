"""Sequential execution host for governance and governed contracts."""

from __future__ import annotations

import hashlib
import logging

from govledger.chain.contract import CallMessage, Contract
from govledger.core.errors import CallRevertedError
from govledger.core.types import to_address

logger = logging.getLogger(__name__)


class ContractHost:
    """Registry of contracts plus native-currency balances.

    Every call runs to completion before the next one starts. Value moves
    from sender to destination before the destination contract runs and is
    moved back if the contract reverts.
    """

    def __init__(self) -> None:
        self._contracts: dict[str, Contract] = {}
        self._balances: dict[str, int] = {}
        self._address_nonce = 0

    def new_address(self, label: str = "contract") -> str:
        """Allocate a fresh deterministic address."""
        self._address_nonce += 1
        seed = f"{label}:{self._address_nonce}".encode()
        return to_address(hashlib.sha3_256(seed).digest()[-20:])

    def register(self, contract: Contract) -> Contract:
        """Register a contract at its address.

        Raises:
            ValueError: If the address is already taken.
        """
        address = to_address(contract.address)
        if address in self._contracts:
            raise ValueError(f"A contract is already registered at {address}")
        self._contracts[address] = contract
        return contract

    def get(self, address: str) -> Contract | None:
        """Get the contract deployed at an address."""
        return self._contracts.get(to_address(address))

    def balance_of(self, address: str) -> int:
        return self._balances.get(to_address(address), 0)

    def credit(self, address: str, amount: int) -> None:
        """Mint native currency to an address."""
        if amount < 0:
            raise ValueError("Credit amount must be non-negative")
        address = to_address(address)
        self._balances[address] = self._balances.get(address, 0) + amount

    def call(
        self,
        sender: str,
        destination: str,
        value: int = 0,
        data: bytes = b"",
    ) -> bytes:
        """Send ``value`` and ``data`` from ``sender`` to ``destination``.

        A destination without a contract is a plain transfer and ``data`` is
        ignored.

        Returns:
            The contract's return data.

        Raises:
            CallRevertedError: On insufficient balance or if the contract
                reverts. Balances are left unchanged, also when the
                contract raises any other exception.
        """
        sender = to_address(sender)
        destination = to_address(destination)
        if value < 0:
            raise ValueError("Call value must be non-negative")

        available = self._balances.get(sender, 0)
        if available < value:
            raise CallRevertedError(
                f"Insufficient balance: {sender} holds {available}, call needs {value}"
            )

        self._transfer(sender, destination, value)
        contract = self._contracts.get(destination)
        if contract is None:
            logger.debug("Transfer of %d from %s to %s", value, sender, destination)
            return b""

        try:
            result = contract.handle(CallMessage(sender=sender, value=value, data=bytes(data)))
        except Exception:
            self._transfer(destination, sender, value)
            raise

        logger.debug(
            "Call %s -> %s selector=0x%s value=%d",
            sender, destination, bytes(data[:4]).hex(), value,
        )
        return result

    def _transfer(self, source: str, target: str, amount: int) -> None:
        if amount == 0:
            return
        self._balances[source] = self._balances.get(source, 0) - amount
        self._balances[target] = self._balances.get(target, 0) + amount

    @property
    def contract_addresses(self) -> list[str]:
        return list(self._contracts.keys())
