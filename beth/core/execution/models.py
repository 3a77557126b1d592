"""
Transaction execution models and types.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address


WEI_PER_GWEI = 10**9


class GasTier(str, Enum):
    """Speed tiers offered by the gas price oracle."""
    SAFE_LOW = "safeLow"
    AVERAGE = "average"
    FAST = "fast"
    FASTEST = "fastest"

    @classmethod
    def parse(cls, value: "str | GasTier") -> "GasTier":
        if isinstance(value, GasTier):
            return value
        normalized = value.replace("_", "").replace("-", "").lower()
        for tier in cls:
            if tier.value.lower() == normalized:
                return tier
        raise ValueError(f"invalid speed tier: {value!r}")


class TransactionStatus(str, Enum):
    """Transaction lifecycle status."""
    PENDING = "pending"          # Created, not yet submitted
    SUBMITTED = "submitted"      # Broadcast to network
    CONFIRMING = "confirming"    # Mined, waiting for confirmations
    CONFIRMED = "confirmed"      # Mined with enough confirmations
    REVERTED = "reverted"        # Mined with status 0


def gwei_to_wei(gwei: float) -> int:
    return int(Decimal(str(gwei)) * WEI_PER_GWEI)


def _hex_to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    return int(value, 16)


@dataclass(frozen=True)
class TransactOpts:
    """
    Snapshot handed to a submit function for one broadcast attempt.

    Carries the nonce and gas price the engine wants used, plus the signing
    capability of the account. A new snapshot is built for every attempt.
    """
    from_address: str
    nonce: int
    gas_price: int
    chain_id: int
    signer: LocalAccount = field(repr=False, compare=False)
    gas_limit: int = 21000

    def build(
        self,
        to: str,
        value: int = 0,
        data: str = "0x",
        gas: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Build a legacy transaction dict bound to this attempt's nonce."""
        return {
            "to": to_checksum_address(to),
            "value": value,
            "data": data,
            "gas": gas if gas is not None else self.gas_limit,
            "gasPrice": gas_price if gas_price is not None else self.gas_price,
            "nonce": self.nonce,
            "chainId": self.chain_id,
        }

    def sign(self, tx: Dict[str, Any]) -> bytes:
        """Sign a transaction dict, returning the raw bytes to broadcast."""
        return bytes(self.signer.sign_transaction(tx).raw_transaction)


@dataclass
class TxReceipt:
    """The parts of a JSON-RPC transaction receipt the engine relies on."""
    tx_hash: str
    block_number: Optional[int]
    block_hash: Optional[str] = None
    status: int = 1
    gas_used: Optional[int] = None
    effective_gas_price: Optional[int] = None

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "TxReceipt":
        return cls(
            tx_hash=data["transactionHash"],
            block_number=_hex_to_int(data.get("blockNumber")),
            block_hash=data.get("blockHash"),
            status=_hex_to_int(data.get("status")) if data.get("status") is not None else 1,
            gas_used=_hex_to_int(data.get("gasUsed")),
            effective_gas_price=_hex_to_int(data.get("effectiveGasPrice")),
        )

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass
class TransactionResult:
    """Result of a completed transact call."""
    tx_hash: str
    nonce: int
    gas_price: int
    status: TransactionStatus = TransactionStatus.SUBMITTED

    # Confirmation details
    block_number: Optional[int] = None
    confirmations: int = 0
    receipt: Optional[TxReceipt] = None

    # Timing
    submitted_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None

    # Broadcast attempts made by the engine loop (nonce retries not counted)
    attempts: int = 1

    @property
    def is_success(self) -> bool:
        return self.status == TransactionStatus.CONFIRMED


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
