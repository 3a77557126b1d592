"""
Account facade.

An Account is an Ethereum external account defined by its private key. It
can submit write transactions to the ledger through its TransactionExecutor;
ERC20 helpers and the command line build on this class only.
"""

import logging
from typing import Optional, Union

from eth_account import Account as EthAccount
from eth_account.signers.local import LocalAccount

from ...config import settings
from ...providers.gas_oracle import GasPriceOracle
from ...providers.ledger import LedgerClient
from ..execution.errors import ExecutionError, GasOracleError
from ..execution.executor import Predicate, SubmitFn, TransactionExecutor
from ..execution.models import TransactionResult, TransactOpts, gwei_to_wei
from ..execution.nonce_manager import NonceManager
from ..execution.retry import BackoffPolicy, Deadline
from ..execution.tx_builder import TransactionBuilder
from .address_book import AddressBook
from .erc20 import ERC20


logger = logging.getLogger(__name__)


class InsufficientBalance(ExecutionError):
    """Balance does not cover the transfer fee."""
    pass


class Account:
    """
    A key holder that can read from and write to the ledger.

    Concurrent transact/transfer calls on one Account are serialized by its
    NonceManager lock; separate Accounts are independent.
    """

    def __init__(
        self,
        signer: LocalAccount,
        ledger: LedgerClient,
        chain_id: int,
        nonce: int,
        gas_price: int,
        gas_oracle: Optional[GasPriceOracle] = None,
        address_book: Optional[AddressBook] = None,
        backoff: Optional[BackoffPolicy] = None,
    ):
        self._signer = signer
        self.ledger = ledger
        self.chain_id = chain_id
        self.gas_oracle = gas_oracle
        self.address_book = address_book if address_book is not None else AddressBook()
        self.nonce_manager = NonceManager(signer.address, nonce, gas_price)
        self.executor = TransactionExecutor(
            ledger=ledger,
            signer=signer,
            nonce_manager=self.nonce_manager,
            chain_id=chain_id,
            gas_oracle=gas_oracle,
            backoff=backoff,
        )

    @classmethod
    async def connect(
        cls,
        private_key: Union[str, bytes],
        rpc_url: Optional[str] = None,
        *,
        use_gas_oracle: bool = True,
        address_book: Optional[AddressBook] = None,
        timeout: float = 60.0,
    ) -> "Account":
        """
        Connect an account for private_key to the node at rpc_url.

        Reads the chain id and the pending nonce from the ledger, then takes
        the gas price from the oracle, falling back to the node's suggestion
        when the oracle is unavailable.
        """
        signer: LocalAccount = EthAccount.from_key(private_key)
        ledger = LedgerClient(rpc_url)
        deadline = Deadline.after(timeout)

        chain_id = await ledger.chain_id(deadline)
        nonce = await ledger.pending_nonce(signer.address, deadline)

        gas_oracle = GasPriceOracle() if use_gas_oracle else None
        gas_price: Optional[int] = None
        if gas_oracle is not None:
            try:
                gas_price = await gas_oracle.suggested_gas_price(settings.gas_price_tier)
            except GasOracleError as e:
                logger.warning(f"cannot update gas price = {e}")
        if gas_price is None:
            gas_price = await ledger.gas_price(deadline)

        if address_book is None and settings.address_book_path is not None:
            address_book = AddressBook.load(settings.address_book_path, chain_id)

        logger.info(f"Connected {signer.address} on chain {chain_id} (nonce {nonce})")
        return cls(
            signer=signer,
            ledger=ledger,
            chain_id=chain_id,
            nonce=nonce,
            gas_price=gas_price,
            gas_oracle=gas_oracle,
            address_book=address_book,
        )

    @property
    def address(self) -> str:
        """Checksum address of the account holder."""
        return self._signer.address

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
        """See TransactionExecutor.transact."""
        return await self.executor.transact(
            submit,
            pre_condition=pre_condition,
            post_condition=post_condition,
            confirm_blocks=confirm_blocks,
            gas_price=gas_price,
            timeout=timeout,
            deadline=deadline,
        )

    async def transfer(
        self,
        to: str,
        value: Optional[int] = None,
        *,
        gas_price: Optional[int] = None,
        confirm_blocks: int = 0,
        send_all: bool = False,
        timeout: Optional[float] = None,
    ) -> TransactionResult:
        """
        Send value wei of ether to an address or address book alias.

        Args:
            to: Recipient address or alias
            value: Amount in wei (ignored when send_all is set)
            gas_price: Gas price in wei overriding the account's price
            confirm_blocks: Blocks to wait for after inclusion
            send_all: Send the whole balance minus the fee, measured when
                the transaction is built
            timeout: Overall deadline in seconds

        Returns:
            TransactionResult of the transfer
        """
        if not send_all and (value is None or value < 0):
            raise ValueError(f"transfer needs a non-negative value, got {value!r}")
        to_address = self.address_book.resolve(to)
        deadline = Deadline.after(timeout if timeout is not None else settings.transact_timeout_seconds)

        async def has_funds() -> bool:
            try:
                balance = await self.ledger.balance(self.address, deadline=deadline)
            except ExecutionError as e:
                logger.warning(f"Cannot read balance of {self.address}: {e}")
                return False
            if send_all:
                return balance > 0
            return balance >= value

        async def submit(opts: TransactOpts) -> str:
            amount = value
            if send_all:
                balance = await self.ledger.balance(self.address, deadline=deadline)
                amount = balance - opts.gas_limit * opts.gas_price
                if amount <= 0:
                    raise InsufficientBalance(
                        f"balance {balance} does not cover fee {opts.gas_limit * opts.gas_price}"
                    )
            tx = TransactionBuilder.build_native_transfer(opts, to_address, amount)
            return await self.ledger.send_raw_transaction(opts.sign(tx), deadline=deadline)

        return await self.executor.transact(
            submit,
            pre_condition=has_funds,
            confirm_blocks=confirm_blocks,
            gas_price=gas_price,
            deadline=deadline,
        )

    def sign(self, message_digest: bytes) -> bytes:
        """Sign a 32-byte digest, returning the 65-byte r||s||v signature."""
        if len(message_digest) != 32:
            raise ValueError(f"expected a 32-byte digest, got {len(message_digest)} bytes")
        return bytes(self._signer.unsafe_sign_hash(message_digest).signature)

    async def set_gas_price(self, gwei: float) -> None:
        """Set the gas price used by the next transaction, in gwei."""
        await self.nonce_manager.set_gas_price(gwei_to_wei(gwei))

    async def resync_nonce(self, cool_down: float = 0.0, timeout: Optional[float] = None) -> int:
        """Wait cool_down seconds, then reset the nonce to the ledger's pending nonce."""
        deadline = Deadline.after(timeout) if timeout is not None else None
        return await self.nonce_manager.resync_nonce(self.ledger, cool_down, deadline)

    def write_address(self, key: str, address: str) -> None:
        self.address_book.write(key, address)

    def read_address(self, key: str) -> str:
        return self.address_book.read(key)

    def erc20(self, address_or_alias: str) -> ERC20:
        return ERC20(self, self.address_book.resolve(address_or_alias))

    async def close(self) -> None:
        await self.ledger.close()
        if self.gas_oracle is not None:
            await self.gas_oracle.close()

    async def __aenter__(self) -> "Account":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
