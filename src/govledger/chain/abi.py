"""Call-data codec for contract calls.

A call is a 4-byte function selector followed by the encoded arguments.
Selectors are the first four bytes of the SHA3-256 digest of the canonical
signature, e.g. ``setGovernor(address,uint256)``. Arguments are laid out in
32-byte words: static types inline, ``bytes`` and ``string`` as an offset in
the head pointing at a length-prefixed, zero-padded tail. A ``bytes[]`` tail
is the element count, one offset per element relative to the first offset
word, then the elements encoded like ``bytes``.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable, Sequence
from typing import Any

from govledger.core.types import address_bytes, to_address

WORD = 32

_STATIC_TYPES = {"address", "uint256", "bool", "bytes4", "bytes32"}
_DYNAMIC_TYPES = {"bytes", "string", "bytes[]"}
_SIGNATURE_RE = re.compile(r"^([A-Za-z_]\w*)\(([\w,\[\]]*)\)$")
_UINT_LIMIT = 1 << 256


def function_selector(signature: str) -> bytes:
    """Return the 4-byte selector for a canonical function signature."""
    return hashlib.sha3_256(signature.encode("ascii")).digest()[:4]


def interface_id(signatures: Iterable[str]) -> bytes:
    """XOR of the selectors of every function in an interface."""
    result = 0
    for signature in signatures:
        result ^= int.from_bytes(function_selector(signature), "big")
    return result.to_bytes(4, "big")


def parse_signature(signature: str) -> tuple[str, list[str]]:
    """Split ``name(type,...)`` into its name and argument types.

    Raises:
        ValueError: If the signature is malformed or uses an unsupported type.
    """
    match = _SIGNATURE_RE.match(signature)
    if match is None:
        raise ValueError(f"Malformed function signature {signature!r}")
    types = [t for t in match.group(2).split(",") if t]
    for arg_type in types:
        if arg_type not in _STATIC_TYPES | _DYNAMIC_TYPES:
            raise ValueError(f"Unsupported argument type {arg_type!r} in {signature!r}")
    return match.group(1), types


def encode_arguments(types: Sequence[str], args: Sequence[Any]) -> bytes:
    """Encode ``args`` according to ``types``."""
    if len(types) != len(args):
        raise ValueError(f"Expected {len(types)} arguments, got {len(args)}")

    head: list[bytes] = []
    tail = b""
    head_size = WORD * len(types)
    for arg_type, value in zip(types, args):
        if arg_type in _DYNAMIC_TYPES:
            head.append(_encode_uint(head_size + len(tail)))
            tail += _encode_dynamic(arg_type, value)
        else:
            head.append(_encode_static(arg_type, value))
    return b"".join(head) + tail


def encode_call(signature: str, *args: Any) -> bytes:
    """Build call data for ``signature`` with ``args``."""
    _, types = parse_signature(signature)
    return function_selector(signature) + encode_arguments(types, args)


def decode_arguments(types: Sequence[str], payload: bytes) -> list[Any]:
    """Decode an argument payload produced by :func:`encode_arguments`.

    Raises:
        ValueError: If the payload is truncated or a word is out of range
            for its type.
    """
    values: list[Any] = []
    for index, arg_type in enumerate(types):
        word = _read_word(payload, index * WORD)
        if arg_type == "bytes[]":
            offset = int.from_bytes(word, "big")
            count = int.from_bytes(_read_word(payload, offset), "big")
            base = offset + WORD
            values.append([
                _read_bytes(payload, base + int.from_bytes(_read_word(payload, base + i * WORD), "big"), index)
                for i in range(count)
            ])
        elif arg_type in _DYNAMIC_TYPES:
            raw = _read_bytes(payload, int.from_bytes(word, "big"), index)
            values.append(raw.decode("utf-8") if arg_type == "string" else raw)
        elif arg_type == "uint256":
            values.append(int.from_bytes(word, "big"))
        elif arg_type == "bool":
            flag = int.from_bytes(word, "big")
            if flag not in (0, 1):
                raise ValueError(f"Invalid bool word at position {index}")
            values.append(bool(flag))
        elif arg_type == "address":
            if any(word[:12]):
                raise ValueError(f"Dirty address word at position {index}")
            values.append(to_address(word[12:]))
        elif arg_type == "bytes4":
            values.append(word[:4])
        else:
            values.append(word)
    return values


def decode_call(signature: str, data: bytes) -> list[Any]:
    """Check the selector of ``data`` against ``signature`` and decode its arguments."""
    _, types = parse_signature(signature)
    if data[:4] != function_selector(signature):
        raise ValueError(f"Call data does not target {signature}")
    return decode_arguments(types, data[4:])


def _read_word(payload: bytes, offset: int) -> bytes:
    chunk = payload[offset:offset + WORD]
    if len(chunk) != WORD:
        raise ValueError(f"Call data truncated at offset {offset}")
    return chunk


def _read_bytes(payload: bytes, offset: int, index: int) -> bytes:
    length = int.from_bytes(_read_word(payload, offset), "big")
    start = offset + WORD
    raw = payload[start:start + length]
    if len(raw) != length:
        raise ValueError(f"Truncated dynamic argument at position {index}")
    return raw


def _encode_uint(value: int) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected an integer, got {value!r}")
    if not 0 <= value < _UINT_LIMIT:
        raise ValueError(f"Integer {value} out of uint256 range")
    return value.to_bytes(WORD, "big")


def _encode_static(arg_type: str, value: Any) -> bytes:
    if arg_type == "uint256":
        return _encode_uint(value)
    if arg_type == "bool":
        return _encode_uint(1 if value else 0)
    if arg_type == "address":
        return address_bytes(value).rjust(WORD, b"\x00")
    size = 4 if arg_type == "bytes4" else 32
    raw = bytes(value)
    if len(raw) != size:
        raise ValueError(f"{arg_type} requires exactly {size} bytes, got {len(raw)}")
    return raw.ljust(WORD, b"\x00")


def _encode_dynamic(arg_type: str, value: Any) -> bytes:
    if arg_type == "bytes[]":
        elements = [_encode_dynamic("bytes", item) for item in value]
        offsets: list[bytes] = []
        position = WORD * len(elements)
        for element in elements:
            offsets.append(_encode_uint(position))
            position += len(element)
        return _encode_uint(len(elements)) + b"".join(offsets) + b"".join(elements)
    raw = value.encode("utf-8") if arg_type == "string" else bytes(value)
    padded = -(-len(raw) // WORD) * WORD
    return _encode_uint(len(raw)) + raw.ljust(padded, b"\x00")
