"""
Transaction executor for on-chain execution.

Handles the full lifecycle of a write to the ledger:
- Pre-condition check
- Nonce-aware submission with retries
- Waiting for inclusion
- Post-condition polling
- Waiting for block confirmations
"""

import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from eth_account.signers.local import LocalAccount

from ...config import settings
from ...providers.gas_oracle import GasPriceOracle
from ...providers.ledger import LedgerClient
from .errors import (
    DeadlineExceeded,
    NonceOutOfSync,
    PostConditionFailed,
    PreConditionFailed,
    RpcError,
    SubmissionErrorKind,
    classify_submission_error,
)
from .models import (
    GasTier,
    TransactionResult,
    TransactionStatus,
    TransactOpts,
    TxReceipt,
    utcnow,
)
from .nonce_manager import NonceManager
from .retry import BackoffPolicy, Deadline, poll_until


logger = logging.getLogger(__name__)

SubmitFn = Callable[[TransactOpts], Awaitable[str]]
Predicate = Callable[[], Union[bool, Awaitable[bool]]]


async def _evaluate(predicate: Predicate) -> bool:
    result = predicate()
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


class TransactionExecutor:
    """
    Executes transactions for a single account.

    Responsibilities:
    - Serialize submissions through the NonceManager lock
    - Keep the cached nonce in step with the ledger on nonce errors
    - Refresh the gas price before every attempt
    - Wait for inclusion, the post-condition and confirmations
    """

    def __init__(
        self,
        ledger: LedgerClient,
        signer: LocalAccount,
        nonce_manager: NonceManager,
        chain_id: int,
        gas_oracle: Optional[GasPriceOracle] = None,
        gas_tier: "GasTier | str | None" = None,
        backoff: Optional[BackoffPolicy] = None,
    ):
        self.ledger = ledger
        self.signer = signer
        self.nonce_manager = nonce_manager
        self.chain_id = chain_id
        self.gas_oracle = gas_oracle
        self.gas_tier = GasTier.parse(gas_tier or settings.gas_price_tier)
        self.backoff = backoff or BackoffPolicy.from_settings()

        self.gas_limit = settings.default_gas_limit
        self.inclusion_timeout = settings.inclusion_timeout_seconds
        self.confirmation_poll_interval = settings.confirmation_poll_seconds
        self.nonce_retry_attempts = settings.nonce_retry_attempts
        self.nonce_retry_delay = settings.nonce_retry_delay_seconds

    def _transact_opts(self, gas_price: Optional[int] = None) -> TransactOpts:
        nonce, cached_price = self.nonce_manager.snapshot()
        if gas_price is None:
            gas_price = cached_price
        return TransactOpts(
            from_address=self.signer.address,
            nonce=nonce,
            gas_price=gas_price,
            chain_id=self.chain_id,
            signer=self.signer,
            gas_limit=self.gas_limit,
        )

    async def transact(
        self,
        submit: SubmitFn,
        *,
        pre_condition: Optional[Predicate] = None,
        post_condition: Optional[Predicate] = None,
        confirm_blocks: int = 0,
        gas_price: Optional[int] = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> TransactionResult:
        """
        Submit a transaction and wait until it is durable.

        Args:
            submit: Signs and broadcasts a transaction for the given
                TransactOpts, returning its hash
            pre_condition: Checked once before anything is broadcast
            post_condition: Polled after inclusion until it holds
            confirm_blocks: Blocks required on top of the inclusion block
            gas_price: Price in wei for every attempt, instead of the
                account's oracle-refreshed price
            timeout: Overall deadline in seconds (default: from settings)
            deadline: Explicit deadline, overrides timeout

        Returns:
            TransactionResult for the mined transaction

        Raises:
            PreConditionFailed: pre_condition was false
            NonceOutOfSync: another transaction holds the nonce at an equal
                or higher gas price
            PostConditionFailed: post_condition never held before the deadline
            DeadlineExceeded: the deadline passed in any other stage
        """
        if confirm_blocks < 0:
            raise ValueError(f"confirm_blocks must be non-negative, got {confirm_blocks}")
        if gas_price is not None and gas_price <= 0:
            raise ValueError(f"gas price must be positive, got {gas_price}")
        if deadline is None:
            deadline = Deadline.after(timeout if timeout is not None else settings.transact_timeout_seconds)

        if pre_condition is not None and not await _evaluate(pre_condition):
            raise PreConditionFailed()

        result, receipt = await self._submit_until_mined(submit, deadline, gas_price)
        result.receipt = receipt

        await self._wait_post_condition(post_condition, result.tx_hash, deadline)

        block_number, height = await self._wait_confirmations(
            result.tx_hash, receipt, confirm_blocks, deadline
        )
        result.block_number = block_number
        result.confirmations = height - block_number
        result.confirmed_at = utcnow()
        if receipt.succeeded:
            result.status = TransactionStatus.CONFIRMED
            logger.info(
                f"Transaction confirmed: {result.tx_hash} "
                f"(block {block_number}, {result.confirmations} confirmations)"
            )
        else:
            result.status = TransactionStatus.REVERTED
            logger.warning(f"Transaction {result.tx_hash} was mined in block {block_number} but reverted")
        return result

    async def _submit_until_mined(
        self,
        submit: SubmitFn,
        deadline: Deadline,
        gas_price: Optional[int] = None,
    ) -> Tuple[TransactionResult, TxReceipt]:
        """Broadcast attempts under the account lock until one is mined."""
        delays = self.backoff.delays()
        # Every broadcast of this call; any of them may still be mined
        broadcast: List[TransactionResult] = []
        attempts = 0

        while True:
            deadline.check("submit")
            attempts += 1
            try:
                async with self.nonce_manager.lock:
                    mined = await self._find_mined(broadcast, deadline)
                    if mined is not None:
                        return mined

                    await self.nonce_manager.refresh_gas_price(self.gas_oracle, self.gas_tier)
                    tx_hash, opts = await self._submit_with_nonce_retry(submit, deadline, gas_price)
                    result = TransactionResult(
                        tx_hash=tx_hash,
                        nonce=opts.nonce,
                        gas_price=opts.gas_price,
                        submitted_at=utcnow(),
                        attempts=attempts,
                    )
                    broadcast.append(result)

                    receipt = await self.ledger.wait_included(
                        tx_hash,
                        deadline=deadline.child(self.inclusion_timeout),
                    )
                    result.status = TransactionStatus.CONFIRMING
                    return result, receipt

            except NonceOutOfSync:
                raise
            except DeadlineExceeded as e:
                if deadline.expired:
                    raise
                logger.warning(f"Attempt {attempts} not mined in time: {e}")
            except Exception as e:
                if classify_submission_error(e) is SubmissionErrorKind.REPLACEMENT_UNDERPRICED:
                    raise NonceOutOfSync(nonce=self.nonce_manager.nonce) from e
                logger.warning(f"Attempt {attempts} failed: {e}")

            await deadline.sleep(next(delays), stage="submit")

    async def _find_mined(
        self,
        broadcast: List[TransactionResult],
        deadline: Deadline,
    ) -> Optional[Tuple[TransactionResult, TxReceipt]]:
        """Receipt of the first earlier attempt that has been mined since it timed out."""
        for earlier in broadcast:
            receipt = await self.ledger.get_receipt(earlier.tx_hash, deadline=deadline)
            if receipt is not None:
                logger.info(f"Earlier attempt {earlier.tx_hash} was mined, not resubmitting")
                earlier.status = TransactionStatus.CONFIRMING
                return earlier, receipt
        return None

    async def _submit_with_nonce_retry(
        self,
        submit: SubmitFn,
        deadline: Deadline,
        gas_price: Optional[int] = None,
    ) -> Tuple[str, TransactOpts]:
        """
        Call submit until the ledger stops rejecting our nonce.

        Nonce too low/high adjust the cached nonce and retry immediately; any
        other nonce complaint waits, rereads the pending nonce from the
        ledger and retries. Each of those consumes one of
        nonce_retry_attempts. The caller holds the nonce manager lock.
        """
        retries = 0

        while True:
            deadline.check("submit")
            opts = self._transact_opts(gas_price)
            try:
                tx_hash = await submit(opts)
            except Exception as e:
                kind = classify_submission_error(e)
                if kind is SubmissionErrorKind.REPLACEMENT_UNDERPRICED:
                    raise NonceOutOfSync(nonce=opts.nonce) from e
                if kind is SubmissionErrorKind.OTHER:
                    raise
                if retries >= self.nonce_retry_attempts:
                    logger.error(f"Giving up on nonce {opts.nonce} after {retries} retries: {e}")
                    raise
                retries += 1

                if kind is SubmissionErrorKind.NONCE_TOO_LOW:
                    self.nonce_manager.increment_nonce()
                elif kind is SubmissionErrorKind.NONCE_TOO_HIGH:
                    self.nonce_manager.decrement_nonce()
                else:
                    await deadline.sleep(self.nonce_retry_delay, stage="submit")
                    try:
                        await self.nonce_manager.sync_from_ledger(self.ledger, deadline)
                    except DeadlineExceeded:
                        raise
                    except Exception as sync_error:
                        logger.warning(f"Cannot read pending nonce: {sync_error}")
                        continue

                logger.info(f"Nonce {opts.nonce} rejected ({kind.value}), retrying with {self.nonce_manager.nonce}")
                continue

            self.nonce_manager.increment_nonce()
            logger.debug(f"Broadcast {tx_hash} with nonce {opts.nonce}, gas price {opts.gas_price}")
            return tx_hash, opts

    async def _wait_post_condition(
        self,
        post_condition: Optional[Predicate],
        tx_hash: str,
        deadline: Deadline,
    ) -> None:
        if post_condition is None:
            return

        async def holds() -> bool:
            return await _evaluate(post_condition)

        try:
            await poll_until(
                holds,
                deadline=deadline,
                backoff=self.backoff,
                retry_on=(Exception,),
                stage="post_condition",
            )
        except DeadlineExceeded as e:
            raise PostConditionFailed(tx_hash=tx_hash) from e

    async def _wait_confirmations(
        self,
        tx_hash: str,
        receipt: TxReceipt,
        confirm_blocks: int,
        deadline: Deadline,
    ) -> Tuple[int, int]:
        """Wait until the chain is confirm_blocks past the inclusion block."""
        block_number = receipt.block_number
        if block_number is None:
            block_number = await self.ledger.block_number_of(tx_hash, deadline=deadline)

        async def deep_enough() -> Optional[int]:
            height = await self.ledger.current_block_number(deadline=deadline)
            if height - block_number >= confirm_blocks:
                return height
            return None

        height = await poll_until(
            deep_enough,
            deadline=deadline,
            interval=self.confirmation_poll_interval,
            retry_on=(RpcError,),
            stage="confirmations",
        )
        return block_number, height
