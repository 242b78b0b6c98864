"""Error taxonomy for governance operations.

Every error aborts the attempted state transition as a whole. Subclasses also
derive from the builtin exception a caller would naturally catch
(``PermissionError``, ``ValueError``, ``KeyError``).
"""

from __future__ import annotations


class GovernanceError(Exception):
    """Base class for governance failures."""


class AuthorizationError(GovernanceError, PermissionError):
    """Caller lacks the required role."""


class StateError(GovernanceError, ValueError):
    """The transaction or confirmation is not in a state that allows the action."""


class TransactionNotFoundError(StateError, KeyError):
    """No transaction exists with the given id."""

    def __str__(self) -> str:
        # KeyError would repr() the message
        return str(self.args[0]) if self.args else ""


class AlreadyExecutedError(StateError):
    """The transaction has already been executed."""


class DuplicateConfirmationError(StateError):
    """The governor already confirmed this transaction."""


class ConfirmationNotFoundError(StateError):
    """The governor has no active confirmation to revoke."""


class NonceMismatchError(StateError):
    """A signed execution used a nonce other than the current one."""


class ThresholdNotMetError(GovernanceError):
    """Accumulated power is below ``required()``."""


class ExternalCallError(GovernanceError):
    """The call to the governed contract failed."""


class SignatureError(GovernanceError, ValueError):
    """A signature is malformed or does not verify."""


class SignatureOrderError(SignatureError):
    """Signatures are not sorted by strictly ascending signer address."""


class CallRevertedError(Exception):
    """Raised by the host or a contract when a call reverts."""
