"""Governor signatures for off-chain approved executions.

Signed message layout::

    0x19 || 0x00 || governance address (20) || nonce (32, big-endian)
         || destination address (20) || call data

Governors sign the SHA3-256 digest of the message with Ed25519. A packed
signature is the signer's 32-byte verify key followed by the 64-byte
signature, and the signer's address is the last 20 bytes of the SHA3-256
digest of the verify key.
"""

from __future__ import annotations

import hashlib

from nacl.exceptions import CryptoError
from nacl.signing import SigningKey, VerifyKey

from govledger.core.errors import SignatureError
from govledger.core.types import address_bytes, to_address

MESSAGE_PREFIX = b"\x19"
MESSAGE_VERSION = b"\x00"
KEY_LENGTH = 32
SIGNATURE_LENGTH = KEY_LENGTH + 64


def signer_address(verify_key: bytes) -> str:
    """Derive the governor address for an Ed25519 verify key."""
    return to_address(hashlib.sha3_256(bytes(verify_key)).digest()[-20:])


def encode_message(governance: str, nonce: int, destination: str, data: bytes) -> bytes:
    if nonce < 0:
        raise ValueError("Nonce must be non-negative")
    return (
        MESSAGE_PREFIX
        + MESSAGE_VERSION
        + address_bytes(governance)
        + nonce.to_bytes(32, "big")
        + address_bytes(destination)
        + bytes(data)
    )


def message_digest(governance: str, nonce: int, destination: str, data: bytes) -> bytes:
    return hashlib.sha3_256(encode_message(governance, nonce, destination, data)).digest()


def recover_signer(digest: bytes, signature: bytes) -> str:
    """Verify a packed signature over ``digest`` and return the signer address.

    Raises:
        SignatureError: If the signature is malformed or does not verify.
    """
    if len(signature) != SIGNATURE_LENGTH:
        raise SignatureError(
            f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}"
        )
    key_bytes = bytes(signature[:KEY_LENGTH])
    try:
        VerifyKey(key_bytes).verify(digest, bytes(signature[KEY_LENGTH:]))
    except CryptoError as exc:
        raise SignatureError(f"Invalid signature for key 0x{key_bytes.hex()}") from exc
    return signer_address(key_bytes)


class GovernorKey:
    """An Ed25519 key pair identifying a governor."""

    def __init__(self, signing_key: SigningKey) -> None:
        self._signing_key = signing_key
        self._address = signer_address(bytes(signing_key.verify_key))

    @classmethod
    def generate(cls) -> GovernorKey:
        return cls(SigningKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> GovernorKey:
        """Deterministic key from a 32-byte seed."""
        return cls(SigningKey(bytes(seed)))

    @property
    def address(self) -> str:
        return self._address

    @property
    def verify_key(self) -> bytes:
        return bytes(self._signing_key.verify_key)

    def sign(self, digest: bytes) -> bytes:
        """Return the packed signature over ``digest``."""
        return self.verify_key + self._signing_key.sign(digest).signature

    def sign_execution(self, governance: str, nonce: int, destination: str, data: bytes) -> bytes:
        return self.sign(message_digest(governance, nonce, destination, data))
