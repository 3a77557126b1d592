"""
Error taxonomy for transaction execution.

Only PreConditionFailed, PostConditionFailed, NonceOutOfSync and
DeadlineExceeded leave TransactionExecutor.transact. Everything else is
transient from the engine's point of view and is absorbed by a retry loop.
"""

import re
from enum import Enum
from typing import Any, Optional


class ExecutionError(Exception):
    """Base exception for execution errors."""
    pass


class PreConditionFailed(ExecutionError):
    """The caller's pre-condition was false; nothing was broadcast."""

    def __init__(self, message: str = "pre-condition check failed"):
        super().__init__(message)


class PostConditionFailed(ExecutionError):
    """The transaction was mined but the post-condition never held before the deadline."""

    def __init__(self, message: str = "post-condition check failed", tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class NonceOutOfSync(ExecutionError):
    """Another transaction holds this nonce at an equal or higher gas price."""

    def __init__(self, message: str = "nonce is out of sync", nonce: Optional[int] = None):
        super().__init__(message)
        self.nonce = nonce


class DeadlineExceeded(ExecutionError, TimeoutError):
    """The caller-supplied deadline passed before the operation finished."""

    def __init__(self, message: str = "deadline exceeded", stage: Optional[str] = None):
        super().__init__(f"{message} ({stage})" if stage else message)
        self.stage = stage


class RpcError(ExecutionError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data


class GasOracleError(ExecutionError):
    """Gas price oracle could not produce a price."""
    pass


class AddressNotFound(KeyError):
    """Key does not have an entry in the address book."""
    pass


class DuplicateAddress(ValueError):
    """The key has already been mapped to another address."""
    pass


class SubmissionErrorKind(str, Enum):
    """How a failed broadcast should be handled."""

    NONCE_TOO_LOW = "nonce_too_low"
    NONCE_TOO_HIGH = "nonce_too_high"
    REPLACEMENT_UNDERPRICED = "replacement_underpriced"
    NONCE_OTHER = "nonce_other"
    OTHER = "other"


_NONCE_TOO_LOW = re.compile(r"nonce (is )?too low")
_NONCE_TOO_HIGH = re.compile(r"nonce (is )?too high")
_UNDERPRICED = re.compile(r"replacement (transaction )?underpriced")


def classify_submission_error(error: BaseException) -> SubmissionErrorKind:
    """Map a broadcast failure onto the nonce-retry decision table."""
    if isinstance(error, NonceOutOfSync):
        return SubmissionErrorKind.REPLACEMENT_UNDERPRICED

    message = str(error).lower()
    # Checked first: geth wording does not contain "nonce" but it is a nonce race
    if _UNDERPRICED.search(message):
        return SubmissionErrorKind.REPLACEMENT_UNDERPRICED
    if _NONCE_TOO_LOW.search(message):
        return SubmissionErrorKind.NONCE_TOO_LOW
    if _NONCE_TOO_HIGH.search(message):
        return SubmissionErrorKind.NONCE_TOO_HIGH
    if "nonce" in message:
        return SubmissionErrorKind.NONCE_OTHER
    return SubmissionErrorKind.OTHER
