"""
Transaction Execution Layer

Provides the machinery for submitting transactions from one account:
- TransactionExecutor: pre-condition, nonce-aware submission, inclusion,
  post-condition and confirmation waits
- NonceManager: lock-guarded nonce and gas price state
- TransactionBuilder: transaction dicts and ERC20 calldata
- BackoffPolicy / Deadline / poll_until: shared retry primitives

Usage:
    from beth.core.execution import TransactionExecutor, NonceManager

    result = await executor.transact(
        submit,
        pre_condition=has_funds,
        post_condition=balance_arrived,
        confirm_blocks=2,
        timeout=300,
    )
"""

from .errors import (
    ExecutionError,
    PreConditionFailed,
    PostConditionFailed,
    NonceOutOfSync,
    DeadlineExceeded,
    RpcError,
    GasOracleError,
    AddressNotFound,
    DuplicateAddress,
    SubmissionErrorKind,
    classify_submission_error,
)

from .models import (
    GasTier,
    TransactionStatus,
    TransactOpts,
    TxReceipt,
    TransactionResult,
)

from .retry import (
    BackoffPolicy,
    Deadline,
    poll_until,
)

from .nonce_manager import (
    NonceManager,
    NonceState,
)

from .tx_builder import (
    TransactionBuilder,
)

from .executor import (
    TransactionExecutor,
)

__all__ = [
    # Errors
    "ExecutionError",
    "PreConditionFailed",
    "PostConditionFailed",
    "NonceOutOfSync",
    "DeadlineExceeded",
    "RpcError",
    "GasOracleError",
    "AddressNotFound",
    "DuplicateAddress",
    "SubmissionErrorKind",
    "classify_submission_error",
    # Models
    "GasTier",
    "TransactionStatus",
    "TransactOpts",
    "TxReceipt",
    "TransactionResult",
    # Retry
    "BackoffPolicy",
    "Deadline",
    "poll_until",
    # Nonce Manager
    "NonceManager",
    "NonceState",
    # Transaction Builder
    "TransactionBuilder",
    # Executor
    "TransactionExecutor",
]
