"""
ERC20 token helper built on Account.transact.
"""

import logging
from typing import TYPE_CHECKING, Optional

from eth_utils import to_checksum_address

from ...config import settings
from ..execution.models import TransactOpts
from ..execution.retry import Deadline
from ..execution.tx_builder import TransactionBuilder, decode_uint256

if TYPE_CHECKING:
    from .account import Account


logger = logging.getLogger(__name__)

# Token writes wait for one block on top of the inclusion block
ERC20_CONFIRM_BLOCKS = 1


class ERC20:
    """An ERC20 token contract seen through one Account."""

    def __init__(self, account: "Account", token_address: str):
        self.account = account
        self.address = to_checksum_address(token_address)

    async def balance_of(self, who: Optional[str] = None, deadline: Optional[Deadline] = None) -> int:
        owner = who or self.account.address
        call = TransactionBuilder.erc20_balance_of_call(self.address, owner)
        return decode_uint256(await self.account.ledger.call(call, deadline=deadline))

    async def allowance(self, owner: str, spender: str, deadline: Optional[Deadline] = None) -> int:
        call = TransactionBuilder.erc20_allowance_call(self.address, owner, spender)
        return decode_uint256(await self.account.ledger.call(call, deadline=deadline))

    async def transfer(self, to: str, amount: Optional[int] = None, timeout: Optional[float] = None) -> str:
        """Transfer amount tokens to an address; None sends the whole balance."""
        to = self.account.address_book.resolve(to)
        if amount is None:
            amount = await self.balance_of()
        return await self._send(TransactionBuilder.erc20_transfer_data(to, amount), timeout)

    async def approve(self, spender: str, amount: int, timeout: Optional[float] = None) -> str:
        spender = self.account.address_book.resolve(spender)
        return await self._send(TransactionBuilder.erc20_approve_data(spender, amount), timeout)

    async def transfer_from(self, owner: str, to: str, amount: int, timeout: Optional[float] = None) -> str:
        return await self._send(TransactionBuilder.erc20_transfer_from_data(owner, to, amount), timeout)

    async def _send(self, data: str, timeout: Optional[float]) -> str:
        ledger = self.account.ledger
        deadline = Deadline.after(timeout if timeout is not None else settings.transact_timeout_seconds)

        async def submit(opts: TransactOpts) -> str:
            gas = await ledger.estimate_gas(
                {"from": opts.from_address, "to": self.address, "data": data},
                deadline=deadline,
            )
            tx = opts.build(self.address, data=data, gas=gas)
            return await ledger.send_raw_transaction(opts.sign(tx), deadline=deadline)

        result = await self.account.transact(
            submit,
            confirm_blocks=ERC20_CONFIRM_BLOCKS,
            deadline=deadline,
        )
        logger.info(f"ERC20 {self.address} call mined in {result.tx_hash}")
        return result.tx_hash
