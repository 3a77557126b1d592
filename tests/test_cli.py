"""
Tests for the beth command line.
"""

import argparse
import json

import pytest
from unittest.mock import AsyncMock

from eth_account import Account as EthAccount

from beth import cli
from beth.core.execution.errors import GasOracleError
from beth.core.execution.models import GasTier
from beth.core.wallet.account import Account

from conftest import FakeLedger, GWEI, RECIPIENT, TEST_PRIVATE_KEY


@pytest.fixture
def keystore(tmp_path):
    path = tmp_path / "keystore.json"
    encrypted = EthAccount.encrypt(TEST_PRIVATE_KEY, "hunter2", kdf="pbkdf2", iterations=2)
    path.write_text(json.dumps(encrypted))
    return path


def test_ether_to_wei():
    assert cli.ether_to_wei("1.5") == 15 * 10**17
    assert cli.ether_to_wei("0") == 0
    with pytest.raises(argparse.ArgumentTypeError):
        cli.ether_to_wei("lots")
    with pytest.raises(argparse.ArgumentTypeError):
        cli.ether_to_wei("-1")


def test_parse_transfer():
    args = cli.build_parser().parse_args(
        ["transfer", "0.1", "key.json", "pw", RECIPIENT, "--confirm-blocks", "2", "--send-all"]
    )

    assert args.command == "transfer"
    assert args.amount == 10**17
    assert args.confirm_blocks == 2
    assert args.send_all


def test_decrypt_keystore(keystore, signer):
    key = cli.decrypt_keystore(keystore, "hunter2")
    assert EthAccount.from_key(key).address == signer.address


@pytest.mark.asyncio
async def test_no_command_prints_help(capsys):
    assert await cli.main([]) == 0
    assert "usage" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_transfer_command(monkeypatch, keystore, make_account, capsys):
    ledger = FakeLedger()
    account = make_account(ledger)
    connect = AsyncMock(return_value=account)
    monkeypatch.setattr(Account, "connect", connect)

    code = await cli.main(["transfer", "0.01", str(keystore), "hunter2", RECIPIENT, "--rpc-url", "http://node.test"])

    assert code == 0
    assert connect.await_args.args[1] == "http://node.test"
    assert len(ledger.raw_transactions) == 1
    assert "✅" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_transfer_wrong_passphrase(keystore, capsys):
    code = await cli.main(["transfer", "0.01", str(keystore), "wrong", RECIPIENT])

    assert code == 1
    assert "Cannot unlock keystore" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_transfer_insufficient_funds(monkeypatch, keystore, make_account, capsys):
    ledger = FakeLedger(balance=0)
    monkeypatch.setattr(Account, "connect", AsyncMock(return_value=make_account(ledger)))

    code = await cli.main(["transfer", "1", str(keystore), "hunter2", RECIPIENT])

    assert code == 1
    assert "Transfer failed" in capsys.readouterr().out
    assert ledger.raw_transactions == []


@pytest.mark.asyncio
async def test_gas_info(monkeypatch, capsys):
    oracle = AsyncMock()
    oracle.url = "http://oracle.test"
    oracle.gas_prices = AsyncMock(return_value={GasTier.FAST: 45 * GWEI, GasTier.SAFE_LOW: 10 * GWEI})
    monkeypatch.setattr(cli, "GasPriceOracle", lambda url=None: oracle)

    assert await cli.main(["gas-info"]) == 0

    out = capsys.readouterr().out
    assert "fast" in out
    assert "45" in out


@pytest.mark.asyncio
async def test_gas_info_oracle_down(monkeypatch, capsys):
    oracle = AsyncMock()
    oracle.gas_prices = AsyncMock(side_effect=GasOracleError("cannot connect to ethgasstation"))
    monkeypatch.setattr(cli, "GasPriceOracle", lambda url=None: oracle)

    assert await cli.main(["gas-info", "--url", "http://oracle.test"]) == 1
    assert "cannot connect" in capsys.readouterr().out
