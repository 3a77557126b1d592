"""
Shared fakes for engine and account tests.
"""

from typing import Dict, List, Optional

import pytest
from eth_account import Account as EthAccount

from beth.core.execution.errors import DeadlineExceeded, GasOracleError
from beth.core.execution.models import TransactOpts, TxReceipt
from beth.core.execution.nonce_manager import NonceManager
from beth.core.execution.executor import TransactionExecutor
from beth.core.execution.retry import BackoffPolicy
from beth.core.wallet.account import Account


TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
RECIPIENT = "0x2222222222222222222222222222222222222222"
GWEI = 10**9

FAST_BACKOFF = BackoffPolicy(initial_delay_seconds=0.01, multiplier=1.6, max_delay_seconds=0.05)


class FakeLedger:
    """In-memory stand-in for LedgerClient."""

    def __init__(self, pending_nonce: int = 0, balance: int = 10**18, height: int = 100):
        self.pending = pending_nonce
        self.balance_wei = balance
        self.height = height
        self.height_step = 1
        self.mine = True
        self.chain = 3
        self.node_gas_price = 5 * GWEI

        self.broadcast_errors: List[Exception] = []
        self.broadcasts: List[int] = []
        self.raw_transactions: List[bytes] = []
        self.receipts: Dict[str, TxReceipt] = {}
        self.call_results: Dict[str, str] = {}
        self.calls: List[dict] = []
        self.pending_nonce_reads = 0

    def _record(self, nonce: int) -> str:
        if self.broadcast_errors:
            raise self.broadcast_errors.pop(0)
        self.broadcasts.append(nonce)
        tx_hash = "0x" + format(len(self.broadcasts), "064x")
        if self.mine:
            self.receipts[tx_hash] = TxReceipt(tx_hash=tx_hash, block_number=self.height + 1)
        return tx_hash

    async def broadcast(self, opts: TransactOpts) -> str:
        """Submit function used directly by engine tests."""
        return self._record(opts.nonce)

    async def send_raw_transaction(self, raw: bytes, deadline=None) -> str:
        self.raw_transactions.append(raw)
        return self._record(len(self.raw_transactions) - 1)

    async def chain_id(self, deadline=None) -> int:
        return self.chain

    async def gas_price(self, deadline=None) -> int:
        return self.node_gas_price

    async def pending_nonce(self, address: str, deadline=None) -> int:
        self.pending_nonce_reads += 1
        return self.pending

    async def balance(self, address: str, block: str = "latest", deadline=None) -> int:
        return self.balance_wei

    async def get_receipt(self, tx_hash: str, deadline=None) -> Optional[TxReceipt]:
        return self.receipts.get(tx_hash)

    async def wait_included(self, tx_hash: str, deadline=None) -> TxReceipt:
        receipt = self.receipts.get(tx_hash)
        if receipt is not None:
            return receipt
        await deadline.sleep(deadline.remaining())
        raise DeadlineExceeded(stage="wait_included")

    async def block_number_of(self, tx_hash: str, deadline=None) -> int:
        return self.receipts[tx_hash].block_number

    async def current_block_number(self, deadline=None) -> int:
        height = self.height
        self.height += self.height_step
        return height

    async def call(self, tx: dict, block: str = "latest", deadline=None) -> str:
        self.calls.append(tx)
        return self.call_results.get(tx["data"][:10], "0x" + "0" * 64)

    async def estimate_gas(self, tx: dict, deadline=None) -> int:
        return 60000

    async def close(self) -> None:
        pass


class FailingOracle:
    """Gas oracle that is always down."""

    def __init__(self):
        self.calls = 0

    async def suggested_gas_price(self, tier):
        self.calls += 1
        raise GasOracleError("oracle unavailable")

    async def close(self) -> None:
        pass


@pytest.fixture
def signer():
    return EthAccount.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def make_executor(signer):
    def _make(ledger, nonce: int = 0, gas_price: int = 20 * GWEI, gas_oracle=None) -> TransactionExecutor:
        executor = TransactionExecutor(
            ledger=ledger,
            signer=signer,
            nonce_manager=NonceManager(signer.address, nonce, gas_price),
            chain_id=1,
            gas_oracle=gas_oracle,
            backoff=FAST_BACKOFF,
        )
        executor.confirmation_poll_interval = 0.001
        executor.nonce_retry_delay = 0.001
        return executor

    return _make


@pytest.fixture
def make_account(signer):
    def _make(ledger, nonce: int = 0, gas_price: int = 20 * GWEI, address_book=None) -> Account:
        account = Account(
            signer=signer,
            ledger=ledger,
            chain_id=3,
            nonce=nonce,
            gas_price=gas_price,
            address_book=address_book,
            backoff=FAST_BACKOFF,
        )
        account.executor.confirmation_poll_interval = 0.001
        account.executor.nonce_retry_delay = 0.001
        return account

    return _make
