"""
Tests for calldata encoding and TransactOpts.
"""

import pytest
from eth_account import Account as EthAccount

from beth.core.execution.models import GasTier, TransactOpts, TxReceipt, gwei_to_wei
from beth.core.execution.tx_builder import (
    ERC20_TRANSFER_SELECTOR,
    MAX_UINT256,
    TransactionBuilder,
    decode_uint256,
)

from conftest import GWEI, RECIPIENT


@pytest.fixture
def opts(signer):
    return TransactOpts(
        from_address=signer.address,
        nonce=7,
        gas_price=20 * GWEI,
        chain_id=3,
        signer=signer,
    )


def test_native_transfer_uses_attempt_nonce(opts):
    tx = TransactionBuilder.build_native_transfer(opts, RECIPIENT, 5)

    assert tx["nonce"] == 7
    assert tx["gas"] == 21000
    assert tx["gasPrice"] == 20 * GWEI
    assert tx["chainId"] == 3
    assert tx["value"] == 5


def test_native_transfer_gas_price_override(opts):
    tx = TransactionBuilder.build_native_transfer(opts, RECIPIENT, 5, gas_price=99)
    assert tx["gasPrice"] == 99


def test_native_transfer_rejects_negative_amount(opts):
    with pytest.raises(ValueError):
        TransactionBuilder.build_native_transfer(opts, RECIPIENT, -1)


def test_signed_transaction_recovers_sender(opts, signer):
    raw = opts.sign(TransactionBuilder.build_native_transfer(opts, RECIPIENT, 5))
    assert EthAccount.recover_transaction(raw) == signer.address


def test_erc20_transfer_data_layout():
    data = TransactionBuilder.erc20_transfer_data(RECIPIENT, 1000)

    assert data.startswith(ERC20_TRANSFER_SELECTOR)
    assert len(data) == 10 + 64 * 2
    assert data[10:74] == "0" * 24 + RECIPIENT[2:].lower()
    assert int(data[74:], 16) == 1000


def test_approve_defaults_to_unlimited():
    data = TransactionBuilder.erc20_approve_data(RECIPIENT)
    assert data[-64:] == "f" * 64


def test_uint256_range_is_checked():
    with pytest.raises(ValueError):
        TransactionBuilder.erc20_transfer_data(RECIPIENT, MAX_UINT256 + 1)


def test_invalid_address_rejected():
    with pytest.raises(ValueError):
        TransactionBuilder.erc20_transfer_data("0x1234", 1)


def test_decode_uint256():
    assert decode_uint256("0x" + format(42, "064x")) == 42
    with pytest.raises(ValueError):
        decode_uint256("0x")


def test_gas_tier_parse():
    assert GasTier.parse("safe_low") is GasTier.SAFE_LOW
    assert GasTier.parse("FASTEST") is GasTier.FASTEST
    with pytest.raises(ValueError):
        GasTier.parse("ludicrous")


def test_gwei_to_wei_is_exact():
    assert gwei_to_wei(1.1) == 1_100_000_000


def test_receipt_from_rpc():
    receipt = TxReceipt.from_rpc(
        {"transactionHash": "0xabc", "blockNumber": "0x10", "status": "0x0", "gasUsed": "0x5208"}
    )
    assert receipt.block_number == 16
    assert receipt.gas_used == 21000
    assert not receipt.succeeded
