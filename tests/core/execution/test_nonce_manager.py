"""
Tests for the lock-guarded nonce and gas price state.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from beth.core.execution.errors import DeadlineExceeded
from beth.core.execution.nonce_manager import NonceManager
from beth.core.execution.retry import Deadline

from conftest import FailingOracle, FakeLedger, GWEI

ADDRESS = "0x1111111111111111111111111111111111111111"


def test_rejects_invalid_initial_state():
    with pytest.raises(ValueError):
        NonceManager(ADDRESS, -1, GWEI)
    with pytest.raises(ValueError):
        NonceManager(ADDRESS, 0, 0)


def test_increment_and_decrement():
    manager = NonceManager(ADDRESS, 5, GWEI)

    assert manager.increment_nonce() == 6
    assert manager.decrement_nonce() == 5
    assert manager.snapshot() == (5, GWEI)


def test_decrement_stops_at_zero():
    manager = NonceManager(ADDRESS, 0, GWEI)
    assert manager.decrement_nonce() == 0


@pytest.mark.asyncio
async def test_failed_gas_refresh_keeps_previous_price():
    manager = NonceManager(ADDRESS, 0, 7 * GWEI)
    oracle = FailingOracle()

    prices = [await manager.refresh_gas_price(oracle) for _ in range(5)]

    assert prices == [7 * GWEI] * 5
    assert manager.gas_price == 7 * GWEI
    assert oracle.calls == 5


@pytest.mark.asyncio
async def test_successful_gas_refresh_replaces_price():
    manager = NonceManager(ADDRESS, 0, 7 * GWEI)
    oracle = AsyncMock()
    oracle.suggested_gas_price = AsyncMock(return_value=42 * GWEI)

    assert await manager.refresh_gas_price(oracle, "fastest") == 42 * GWEI
    oracle.suggested_gas_price.assert_awaited_once_with("fastest")


@pytest.mark.asyncio
async def test_refresh_without_oracle_is_a_no_op():
    manager = NonceManager(ADDRESS, 0, 7 * GWEI)
    assert await manager.refresh_gas_price(None) == 7 * GWEI


@pytest.mark.asyncio
async def test_set_gas_price_validates_and_takes_lock():
    manager = NonceManager(ADDRESS, 0, GWEI)

    with pytest.raises(ValueError):
        await manager.set_gas_price(0)

    async with manager.lock:
        pending = asyncio.create_task(manager.set_gas_price(3 * GWEI))
        await asyncio.sleep(0)
        assert not pending.done()
    await pending
    assert manager.gas_price == 3 * GWEI


@pytest.mark.asyncio
async def test_resync_nonce_overwrites_with_pending_nonce():
    manager = NonceManager(ADDRESS, 12, GWEI)
    ledger = FakeLedger(pending_nonce=9)

    assert await manager.resync_nonce(ledger, cool_down=0.01) == 9
    assert manager.nonce == 9
    assert ledger.pending_nonce_reads == 1


@pytest.mark.asyncio
async def test_resync_nonce_cool_down_respects_deadline():
    manager = NonceManager(ADDRESS, 12, GWEI)
    ledger = FakeLedger(pending_nonce=9)

    with pytest.raises(DeadlineExceeded):
        await manager.resync_nonce(ledger, cool_down=5, deadline=Deadline.after(0.02))

    assert manager.nonce == 12
    assert ledger.pending_nonce_reads == 0
    assert not manager.lock.locked()
