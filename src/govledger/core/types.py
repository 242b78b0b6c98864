"""Core type definitions shared across all govledger modules."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

ZERO_ADDRESS = "0x" + "00" * 20

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def to_address(value: str | bytes) -> str:
    """Normalize an address to lowercase ``0x``-prefixed hex.

    Accepts a hex string or the raw 20 bytes.

    Raises:
        ValueError: If the value is not a 20-byte address.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise ValueError(f"Address must be 20 bytes, got {len(value)}")
        return "0x" + bytes(value).hex()
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise ValueError(f"Invalid address {value!r}")
    return value.lower()


def address_bytes(address: str) -> bytes:
    """Return the raw 20 bytes of an address."""
    return bytes.fromhex(to_address(address)[2:])


class EventKind(StrEnum):
    """Notifications emitted by a governance contract."""

    POWER_UPDATED = "power_updated"
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_CONFIRMED = "transaction_confirmed"
    TRANSACTION_REVOKED = "transaction_revoked"
    TRANSACTION_EXECUTED = "transaction_executed"


class GovernanceEvent(BaseModel):
    """A committed governance notification."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sequence: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    kind: EventKind
    contract: str
    actor: str
    transaction_id: int | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class Governor(BaseModel):
    """An identity holding voting power."""

    address: str
    power: int = Field(ge=0)

    @field_validator("address")
    @classmethod
    def _normalize_address(cls, value: str) -> str:
        return to_address(value)


class TransactionRecord(BaseModel):
    """A proposed administrative call to a governed contract."""

    transaction_id: int
    destination: str
    value: int = 0
    data: bytes = b""
    executed: bool = False
    votes: int = 0
    creator: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    executed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict with ``data`` as hex."""
        payload = self.model_dump(mode="json", exclude={"data"})
        payload["data"] = "0x" + self.data.hex()
        return payload
