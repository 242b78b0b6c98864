"""Contract protocol and selector-dispatching base class."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ConfigDict

from govledger.chain.abi import decode_arguments, function_selector, parse_signature
from govledger.core.errors import CallRevertedError, GovernanceError
from govledger.core.types import to_address

_F = TypeVar("_F", bound=Callable[..., Any])


class CallMessage(BaseModel):
    """Context of a single call: who sent it, with what value and payload."""

    model_config = ConfigDict(frozen=True)

    sender: str
    value: int = 0
    data: bytes = b""


@runtime_checkable
class Contract(Protocol):
    """Anything the host can route calls to."""

    @property
    def address(self) -> str: ...

    def handle(self, msg: CallMessage) -> bytes: ...


def external(signature: str) -> Callable[[_F], _F]:
    """Expose a method as a call-data entry point.

    The method is invoked as ``method(msg, *decoded_args)`` and may return
    encoded return data (``bytes``) or ``None``.
    """

    def decorator(func: _F) -> _F:
        parse_signature(signature)
        func.__external_signature__ = signature  # type: ignore[attr-defined]
        return func

    return decorator


class BaseContract:
    """Base class for contracts that dispatch call data by selector.

    Subclasses declare entry points with :func:`external`. Empty call data is
    a plain value transfer and is accepted.
    """

    _externals: dict[bytes, tuple[str, str]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        table: dict[bytes, tuple[str, str]] = {}
        for klass in reversed(cls.__mro__):
            for attr, member in vars(klass).items():
                signature = getattr(member, "__external_signature__", None)
                if signature is not None:
                    table[function_selector(signature)] = (signature, attr)
        cls._externals = table

    def __init__(self, address: str) -> None:
        self._address = to_address(address)

    @property
    def address(self) -> str:
        return self._address

    @property
    def external_signatures(self) -> list[str]:
        """Signatures of every call-data entry point, sorted."""
        return sorted(signature for signature, _ in self._externals.values())

    def handle(self, msg: CallMessage) -> bytes:
        """Dispatch ``msg.data`` to the matching entry point."""
        if not msg.data:
            return b""

        entry = self._externals.get(msg.data[:4])
        if entry is None:
            raise CallRevertedError(
                f"Unknown selector 0x{msg.data[:4].hex()} on {self._address}"
            )

        signature, attr = entry
        _, types = parse_signature(signature)
        try:
            args = decode_arguments(types, msg.data[4:])
        except ValueError as exc:
            raise CallRevertedError(f"Malformed call data for {signature}: {exc}") from exc

        try:
            result = getattr(self, attr)(msg, *args)
        except GovernanceError as exc:
            raise CallRevertedError(f"{signature} reverted: {exc}") from exc
        return result if isinstance(result, bytes) else b""
