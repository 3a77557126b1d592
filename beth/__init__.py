"""Reliable transaction submission for Ethereum accounts."""

from .core.execution import (
    DeadlineExceeded,
    ExecutionError,
    NonceOutOfSync,
    PostConditionFailed,
    PreConditionFailed,
    TransactionResult,
)
from .core.wallet import Account, AddressBook, ERC20

__version__ = "0.1.0"

__all__ = [
    "Account",
    "AddressBook",
    "ERC20",
    "TransactionResult",
    "ExecutionError",
    "PreConditionFailed",
    "PostConditionFailed",
    "NonceOutOfSync",
    "DeadlineExceeded",
]
