"""A contract whose administrative functions belong to a single owner.

The owner is normally a governance contract, so every administrative change
has to go through an approved governance transaction.
"""

from __future__ import annotations

import logging
from typing import Any

from govledger.chain.abi import encode_arguments
from govledger.chain.contract import BaseContract, CallMessage, external
from govledger.core.errors import CallRevertedError
from govledger.core.types import ZERO_ADDRESS, to_address

logger = logging.getLogger(__name__)


class GovernedContract(BaseContract):
    """Owned contract with a small key/value parameter store.

    Args:
        address: Contract address.
        owner: Account allowed to call the administrative functions.
        parameters: Initial parameter values.
        label: Human-readable name, used in listings.
    """

    def __init__(
        self,
        address: str,
        owner: str,
        parameters: dict[str, int] | None = None,
        label: str = "",
    ) -> None:
        super().__init__(address)
        self._owner = to_address(owner)
        self._parameters: dict[str, int] = dict(parameters or {})
        self.label = label

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def parameters(self) -> dict[str, int]:
        return dict(self._parameters)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "label": self.label,
            "owner": self._owner,
            "parameters": self.parameters,
        }

    def _only_owner(self, msg: CallMessage) -> None:
        if msg.sender != self._owner:
            raise CallRevertedError(f"Caller {msg.sender} is not the owner")

    @external("owner()")
    def _owner_call(self, msg: CallMessage) -> bytes:
        return encode_arguments(["address"], [self._owner])

    @external("parameter(string)")
    def _parameter_call(self, msg: CallMessage, key: str) -> bytes:
        return encode_arguments(["uint256"], [self._parameters.get(key, 0)])

    @external("transferOwnership(address)")
    def transfer_ownership(self, msg: CallMessage, new_owner: str) -> None:
        self._only_owner(msg)
        if new_owner == ZERO_ADDRESS:
            raise CallRevertedError("New owner is the zero address")
        logger.info("Ownership of %s transferred from %s to %s", self.address, self._owner, new_owner)
        self._owner = new_owner

    @external("setParameter(string,uint256)")
    def set_parameter(self, msg: CallMessage, key: str, value: int) -> None:
        self._only_owner(msg)
        if not key:
            raise CallRevertedError("Parameter key must not be empty")
        self._parameters[key] = value
