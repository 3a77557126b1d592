"""
Calldata and transaction dict builders.
"""

from typing import Any, Dict, Optional

from eth_utils import to_checksum_address

from .models import TransactOpts


# Common contract ABIs (minimal for encoding)
ERC20_APPROVE_SELECTOR = "0x095ea7b3"  # approve(address,uint256)
ERC20_TRANSFER_SELECTOR = "0xa9059cbb"  # transfer(address,uint256)
ERC20_TRANSFER_FROM_SELECTOR = "0x23b872dd"  # transferFrom(address,address,uint256)
ERC20_BALANCE_OF_SELECTOR = "0x70a08231"  # balanceOf(address)
ERC20_ALLOWANCE_SELECTOR = "0xdd62ed3e"  # allowance(address,address)

# Maximum uint256 for unlimited approval
MAX_UINT256 = 2**256 - 1


def _encode_uint256(value: int) -> str:
    """Encode a uint256 as a 32-byte hex string (without 0x prefix)."""
    if not 0 <= value <= MAX_UINT256:
        raise ValueError(f"value out of uint256 range: {value}")
    return format(value, "064x")


def _encode_address(address: str) -> str:
    """Encode an address as a 32-byte hex string (without 0x prefix)."""
    addr = to_checksum_address(address).lower()[2:]
    return addr.zfill(64)


def decode_uint256(data: Optional[str]) -> int:
    """Decode a single uint256 return value from eth_call output."""
    if not data or data == "0x":
        raise ValueError("empty return data")
    return int(data[2:66] if data.startswith("0x") else data[:64], 16)


class TransactionBuilder:
    """
    Builds transaction dicts and ERC20 calldata.

    Handles:
    - Native value transfers
    - ERC20 transfer / approve / transferFrom
    - ERC20 balanceOf / allowance read calls
    """

    @staticmethod
    def build_native_transfer(
        opts: TransactOpts,
        to_address: str,
        amount_wei: int,
        gas_price: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Plain value transfer using the attempt's nonce and the 21000 gas stipend."""
        if amount_wei < 0:
            raise ValueError(f"cannot transfer a negative amount: {amount_wei}")
        return opts.build(to_address, value=amount_wei, gas=opts.gas_limit, gas_price=gas_price)

    @staticmethod
    def erc20_transfer_data(to_address: str, amount: int) -> str:
        return ERC20_TRANSFER_SELECTOR + _encode_address(to_address) + _encode_uint256(amount)

    @staticmethod
    def erc20_approve_data(spender_address: str, amount: int = MAX_UINT256) -> str:
        return ERC20_APPROVE_SELECTOR + _encode_address(spender_address) + _encode_uint256(amount)

    @staticmethod
    def erc20_transfer_from_data(from_address: str, to_address: str, amount: int) -> str:
        return (
            ERC20_TRANSFER_FROM_SELECTOR
            + _encode_address(from_address)
            + _encode_address(to_address)
            + _encode_uint256(amount)
        )

    @staticmethod
    def erc20_balance_of_call(token_address: str, owner_address: str) -> Dict[str, str]:
        return {
            "to": to_checksum_address(token_address),
            "data": ERC20_BALANCE_OF_SELECTOR + _encode_address(owner_address),
        }

    @staticmethod
    def erc20_allowance_call(token_address: str, owner_address: str, spender_address: str) -> Dict[str, str]:
        return {
            "to": to_checksum_address(token_address),
            "data": ERC20_ALLOWANCE_SELECTOR + _encode_address(owner_address) + _encode_address(spender_address),
        }
