from .gas_oracle import GasPriceOracle
from .ledger import LedgerClient, TransportError

__all__ = ["GasPriceOracle", "LedgerClient", "TransportError"]
