"""
JSON-RPC ledger client.

Thin façade over an Ethereum node. Transport failures are retried with the
shared backoff until the caller's deadline; JSON-RPC error objects are raised
immediately as RpcError so the engine can classify them.
"""

import itertools
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.execution.errors import RpcError
from ..core.execution.models import TxReceipt
from ..core.execution.retry import BackoffPolicy, Deadline, poll_until


logger = logging.getLogger(__name__)


class TransportError(Exception):
    """The node could not be reached or returned an unusable response."""
    pass


class LedgerClient:
    """
    Read and broadcast access to an Ethereum node.

    Every method takes an optional deadline; without one, reads keep
    retrying transport errors for settings.ledger_retry_timeout_seconds.
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        backoff: Optional[BackoffPolicy] = None,
    ):
        self.rpc_url = rpc_url or settings.rpc_url
        self._client = client or httpx.AsyncClient(timeout=settings.rpc_timeout_seconds)
        self._backoff = backoff or BackoffPolicy.from_settings()
        self._ids = itertools.count(1)

    def _deadline(self, deadline: Optional[Deadline]) -> Deadline:
        return deadline or Deadline.after(settings.ledger_retry_timeout_seconds)

    async def _post(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }

        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TransportError(f"{method}: {e}") from e

        if not isinstance(result, dict):
            raise TransportError(f"{method}: unexpected response {result!r}")

        if result.get("error"):
            error = result["error"]
            if isinstance(error, dict):
                raise RpcError(
                    error.get("message", str(error)),
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise RpcError(str(error))

        return result.get("result")

    async def _rpc_call(
        self,
        method: str,
        params: List[Any],
        deadline: Optional[Deadline] = None,
    ) -> Any:
        """Make an RPC call, retrying transport errors until the deadline."""
        # A null result is a valid answer here; box it so poll_until stops
        async def attempt() -> List[Any]:
            return [await self._post(method, params)]

        boxed = await poll_until(
            attempt,
            deadline=self._deadline(deadline),
            backoff=self._backoff,
            retry_on=(TransportError,),
            stage=method,
        )
        return boxed[0]

    async def chain_id(self, deadline: Optional[Deadline] = None) -> int:
        return int(await self._rpc_call("eth_chainId", [], deadline), 16)

    async def pending_nonce(self, address: str, deadline: Optional[Deadline] = None) -> int:
        """Nonce to use for the next transaction, counting pending ones."""
        result = await self._rpc_call("eth_getTransactionCount", [address, "pending"], deadline)
        return int(result, 16)

    async def balance(
        self,
        address: str,
        block: str = "latest",
        deadline: Optional[Deadline] = None,
    ) -> int:
        result = await self._rpc_call("eth_getBalance", [address, block], deadline)
        return int(result, 16)

    async def gas_price(self, deadline: Optional[Deadline] = None) -> int:
        """The node's own gas price suggestion, in wei."""
        return int(await self._rpc_call("eth_gasPrice", [], deadline), 16)

    async def send_raw_transaction(self, raw: bytes, deadline: Optional[Deadline] = None) -> str:
        """Broadcast a signed transaction and return its hash."""
        tx_hash = await self._rpc_call("eth_sendRawTransaction", ["0x" + raw.hex()], deadline)
        logger.info(f"Transaction submitted: {tx_hash}")
        return tx_hash

    async def get_receipt(self, tx_hash: str, deadline: Optional[Deadline] = None) -> Optional[TxReceipt]:
        receipt = await self._rpc_call("eth_getTransactionReceipt", [tx_hash], deadline)
        if not receipt or receipt.get("blockNumber") is None:
            return None
        return TxReceipt.from_rpc(receipt)

    async def wait_included(self, tx_hash: str, deadline: Optional[Deadline] = None) -> TxReceipt:
        """
        Poll for the receipt of tx_hash until it is mined or the deadline passes.

        Node errors while polling (e.g. "header not found" from a lagging
        backend) only delay the next read.
        """
        deadline = self._deadline(deadline)

        async def mined() -> Optional[TxReceipt]:
            return await self.get_receipt(tx_hash, deadline)

        receipt = await poll_until(
            mined,
            deadline=deadline,
            backoff=self._backoff,
            retry_on=(TransportError, RpcError),
            stage="wait_included",
        )
        logger.info(f"Transaction {tx_hash} mined in block {receipt.block_number}")
        return receipt

    async def block_number_of(self, tx_hash: str, deadline: Optional[Deadline] = None) -> int:
        """Block number containing tx_hash, polling until the node reports one."""
        deadline = self._deadline(deadline)

        async def lookup() -> Optional[int]:
            tx = await self._rpc_call("eth_getTransactionByHash", [tx_hash], deadline)
            if not tx or not tx.get("blockNumber"):
                return None
            return int(tx["blockNumber"], 16)

        return await poll_until(
            lookup,
            deadline=deadline,
            backoff=self._backoff,
            retry_on=(TransportError, RpcError),
            stage="block_number_of",
        )

    async def current_block_number(self, deadline: Optional[Deadline] = None) -> int:
        return int(await self._rpc_call("eth_blockNumber", [], deadline), 16)

    async def call(
        self,
        tx: Dict[str, Any],
        block: str = "latest",
        deadline: Optional[Deadline] = None,
    ) -> str:
        """Read-only contract call, returning the hex encoded output."""
        return await self._rpc_call("eth_call", [tx, block], deadline)

    async def estimate_gas(self, tx: Dict[str, Any], deadline: Optional[Deadline] = None) -> int:
        return int(await self._rpc_call("eth_estimateGas", [tx], deadline), 16)

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
