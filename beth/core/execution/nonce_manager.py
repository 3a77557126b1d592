"""
Nonce and gas price state for one account.

A single asyncio.Lock guards both values. TransactionExecutor holds the lock
for a whole submission attempt (broadcast through inclusion), so every
transaction from an account is sent strictly one after another.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Tuple

from .errors import GasOracleError
from .models import GasTier, utcnow
from .retry import Deadline

if TYPE_CHECKING:
    from ...providers.gas_oracle import GasPriceOracle
    from ...providers.ledger import LedgerClient


logger = logging.getLogger(__name__)


@dataclass
class NonceState:
    """Tracks nonce and gas price for an address."""
    address: str
    nonce: int                                  # Next nonce to broadcast with
    gas_price: int                              # Wei, always positive
    last_synced: datetime = field(default_factory=utcnow)


class NonceManager:
    """
    Owns the NonceState of one account.

    increment_nonce, decrement_nonce, refresh_gas_price and sync_from_ledger
    run inside a submission and expect the caller to hold `lock`.
    set_gas_price and resync_nonce take the lock themselves.
    """

    def __init__(self, address: str, nonce: int, gas_price: int):
        if nonce < 0:
            raise ValueError(f"nonce must be non-negative, got {nonce}")
        if gas_price <= 0:
            raise ValueError(f"gas price must be positive, got {gas_price}")
        self.lock = asyncio.Lock()
        self._state = NonceState(address=address, nonce=nonce, gas_price=gas_price)

    @property
    def address(self) -> str:
        return self._state.address

    @property
    def nonce(self) -> int:
        return self._state.nonce

    @property
    def gas_price(self) -> int:
        return self._state.gas_price

    def snapshot(self) -> Tuple[int, int]:
        """Current (nonce, gas_price)."""
        return self._state.nonce, self._state.gas_price

    def increment_nonce(self) -> int:
        self._state.nonce += 1
        return self._state.nonce

    def decrement_nonce(self) -> int:
        if self._state.nonce > 0:
            self._state.nonce -= 1
        return self._state.nonce

    async def refresh_gas_price(
        self,
        oracle: Optional["GasPriceOracle"],
        tier: "GasTier | str" = GasTier.FAST,
    ) -> int:
        """
        Replace the cached gas price with the oracle's recommendation.

        Failures are logged and the previous price is kept.
        """
        if oracle is None:
            return self._state.gas_price
        try:
            price = await oracle.suggested_gas_price(tier)
        except GasOracleError as e:
            logger.warning(f"cannot update gas price = {e}")
            return self._state.gas_price

        if price > 0:
            self._state.gas_price = price
        return self._state.gas_price

    async def set_gas_price(self, gas_price: int) -> None:
        """Explicitly set the gas price (wei) used by the next attempt."""
        if gas_price <= 0:
            raise ValueError(f"gas price must be positive, got {gas_price}")
        async with self.lock:
            self._state.gas_price = gas_price

    async def sync_from_ledger(self, ledger: "LedgerClient", deadline: Optional[Deadline] = None) -> int:
        """Overwrite the cached nonce with the ledger's pending nonce."""
        nonce = await ledger.pending_nonce(self._state.address, deadline=deadline)
        self._state.nonce = nonce
        self._state.last_synced = utcnow()
        return nonce

    async def resync_nonce(
        self,
        ledger: "LedgerClient",
        cool_down: float = 0.0,
        deadline: Optional[Deadline] = None,
    ) -> int:
        """
        Wait cool_down seconds, then reset the nonce to the ledger's pending nonce.

        Takes the account lock for the whole operation, so it queues behind
        any in-flight transaction.

        Args:
            ledger: Ledger to read the pending nonce from
            cool_down: Seconds to wait before reading
            deadline: Bound on the wait and the read

        Returns:
            The new nonce
        """
        async with self.lock:
            if cool_down > 0:
                if deadline is not None:
                    await deadline.sleep(cool_down, stage="resync_nonce")
                    deadline.check("resync_nonce")
                else:
                    await asyncio.sleep(cool_down)
            previous = self._state.nonce
            nonce = await self.sync_from_ledger(ledger, deadline)
            logger.info(f"Nonce for {self.address} resynced {previous} -> {nonce}")
            return nonce
