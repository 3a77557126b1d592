#!/usr/bin/env python3
"""Command line for sending ether and inspecting gas prices"""

import argparse
import asyncio
import json
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from eth_account import Account as EthAccount

from .core.execution.errors import AddressNotFound, ExecutionError
from .core.execution.models import WEI_PER_GWEI
from .core.wallet.account import Account
from .logging_config import bind_account, setup_logging, unbind_account
from .providers.gas_oracle import GasPriceOracle

WEI_PER_ETHER = 10**18
TRANSFER_TIMEOUT_SECONDS = 5 * 60


def decrypt_keystore(path: Path, passphrase: str) -> bytes:
    """Private key from an encrypted JSON keystore file."""
    keystore = json.loads(path.read_text(encoding="utf-8"))
    return bytes(EthAccount.decrypt(keystore, passphrase))


def ether_to_wei(amount: str) -> int:
    try:
        value = Decimal(amount)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {amount!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError("amount must not be negative")
    return int(value * WEI_PER_ETHER)


async def cli_transfer(
    amount_wei: int,
    keystore: Path,
    passphrase: str,
    to: str,
    rpc_url: Optional[str] = None,
    confirm_blocks: int = 0,
    send_all: bool = False,
) -> int:
    """Transfer ether from the keystore's account to an address"""
    try:
        private_key = decrypt_keystore(keystore, passphrase)
    except (OSError, ValueError) as e:
        print(f"❌ Cannot unlock keystore: {e}")
        return 1

    try:
        account = await Account.connect(private_key, rpc_url)
    except ExecutionError as e:
        print(f"❌ Cannot connect: {e}")
        return 1
    bind_account(account.address, account.chain_id)
    try:
        async with account:
            what = "entire balance" if send_all else f"{Decimal(amount_wei) / WEI_PER_ETHER} ETH"
            print(f"💸 Sending {what} from {account.address} to {to}...")
            try:
                result = await account.transfer(
                    to,
                    amount_wei,
                    confirm_blocks=confirm_blocks,
                    send_all=send_all,
                    timeout=TRANSFER_TIMEOUT_SECONDS,
                )
            except (ExecutionError, AddressNotFound) as e:
                print(f"❌ Transfer failed: {e}")
                return 1
    finally:
        unbind_account()

    print(f"✅ {result.tx_hash} mined in block {result.block_number} ({result.confirmations} confirmations)")
    return 0


async def cli_gas_info(url: Optional[str] = None) -> int:
    """Print the oracle's price for every speed tier"""
    oracle = GasPriceOracle(url)
    try:
        prices = await oracle.gas_prices()
    except ExecutionError as e:
        print(f"❌ {e}")
        return 1
    finally:
        await oracle.close()

    print(f"\n⛽ Gas prices ({oracle.url})")
    print("=" * 40)
    for tier, price in prices.items():
        print(f"{tier.value:<10} {Decimal(price) / WEI_PER_GWEI:>10} gwei")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ethereum account CLI")
    parser.add_argument("--log-level", help="Override settings.log_level")
    subparsers = parser.add_subparsers(dest="command")

    transfer_parser = subparsers.add_parser("transfer", help="Send ether to an address")
    transfer_parser.add_argument("amount", type=ether_to_wei, help="Amount in ether")
    transfer_parser.add_argument("keystore", type=Path, help="Path to an encrypted keystore file")
    transfer_parser.add_argument("passphrase", help="Passphrase unlocking the keystore")
    transfer_parser.add_argument("to", help="Recipient address or address book alias")
    transfer_parser.add_argument("--rpc-url", help="Node URL (default: settings.rpc_url)")
    transfer_parser.add_argument("--confirm-blocks", type=int, default=0, help="Blocks to wait for after inclusion")
    transfer_parser.add_argument("--send-all", action="store_true", help="Send the whole balance minus the fee")

    gas_parser = subparsers.add_parser("gas-info", help="Show recommended gas prices")
    gas_parser.add_argument("--url", help="Oracle URL (default: settings.gas_oracle_url)")

    return parser


async def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(args.log_level)

    if args.command == "transfer":
        return await cli_transfer(
            args.amount,
            args.keystore,
            args.passphrase,
            args.to,
            rpc_url=args.rpc_url,
            confirm_blocks=args.confirm_blocks,
            send_all=args.send_all,
        )
    if args.command == "gas-info":
        return await cli_gas_info(args.url)

    parser.print_help()
    return 2


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
