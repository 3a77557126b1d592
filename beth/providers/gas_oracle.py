import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..core.execution.errors import GasOracleError
from ..core.execution.models import GasTier


logger = logging.getLogger(__name__)

# ethgasstation quotes prices in units of 0.1 gwei
WEI_PER_ORACLE_UNIT = 10**8


class GasPriceOracle:
    """Gas price recommendations from an ethgasstation-style endpoint"""

    name = "ethgasstation"

    def __init__(self, url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.url = url or settings.gas_oracle_url
        self.timeout_s = settings.gas_oracle_timeout_seconds
        self._client = client

    async def _fetch(self) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        try:
            if self._client is not None:
                response = await self._client.get(self.url, headers=headers, timeout=self.timeout_s)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(self.url, headers=headers, timeout=self.timeout_s)
        except httpx.HTTPError as e:
            raise GasOracleError(f"cannot connect to {self.name}: {e}") from e

        if response.status_code != 200:
            raise GasOracleError(f"unexpected status code {response.status_code} from {self.name}")

        try:
            data = response.json()
        except ValueError as e:
            raise GasOracleError(f"cannot decode response body from {self.name}: {e}") from e

        if not isinstance(data, dict):
            raise GasOracleError(f"unexpected response body from {self.name}")
        return data

    @staticmethod
    def _to_wei(data: Dict[str, Any], tier: GasTier) -> int:
        raw = data.get(tier.value)
        if raw is None or isinstance(raw, bool):
            raise GasOracleError(f"no {tier.value} price in oracle response")
        try:
            price = int(Decimal(str(raw)) * WEI_PER_ORACLE_UNIT)
        except (InvalidOperation, ValueError, OverflowError) as e:
            raise GasOracleError(f"malformed {tier.value} price {raw!r}") from e
        if price <= 0:
            raise GasOracleError(f"non-positive {tier.value} price {raw!r}")
        return price

    async def suggested_gas_price(self, tier: "GasTier | str" = GasTier.FAST) -> int:
        """
        Gas price in wei recommended for the given speed tier.

        Raises:
            GasOracleError: the service could not be reached or answered badly
        """
        tier = GasTier.parse(tier)
        return self._to_wei(await self._fetch(), tier)

    async def gas_prices(self) -> Dict[GasTier, int]:
        """Prices in wei for every tier the oracle reports."""
        data = await self._fetch()
        prices: Dict[GasTier, int] = {}
        for tier in GasTier:
            try:
                prices[tier] = self._to_wei(data, tier)
            except GasOracleError as e:
                logger.warning(f"Skipping gas tier {tier.value}: {e}")
        if not prices:
            raise GasOracleError(f"no usable prices from {self.name}")
        return prices

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
