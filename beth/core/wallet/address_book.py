"""
Named addresses, optionally seeded from a per-network JSON file.

File format:
    {"mainnet": [{"name": "REN", "address": "0x..."}], "ropsten": [...], "kovan": [...]}
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from eth_utils import is_address, to_checksum_address

from ..execution.errors import AddressNotFound, DuplicateAddress


logger = logging.getLogger(__name__)

NETWORKS_BY_CHAIN_ID: Dict[int, str] = {
    1: "mainnet",
    3: "ropsten",
    42: "kovan",
}


class AddressBook:
    """Mapping of alias -> checksum address."""

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, str] = {}
        for key, address in (entries or {}).items():
            self.write(key, address)

    @classmethod
    def load(cls, path: Union[str, Path], chain_id: int) -> "AddressBook":
        """Load the entries for chain_id; unknown networks give an empty book."""
        network = NETWORKS_BY_CHAIN_ID.get(chain_id)
        if network is None:
            return cls()

        data = json.loads(Path(path).read_text(encoding="utf-8"))
        book = cls()
        for entry in data.get(network) or []:
            book.write(entry["name"], entry["address"])
        logger.debug(f"Loaded {len(book)} {network} addresses from {path}")
        return book

    def write(self, key: str, address: str) -> None:
        if key in self._entries:
            raise DuplicateAddress(f"{key!r} has already been mapped to {self._entries[key]}")
        self._entries[key] = to_checksum_address(address)

    def read(self, key: str) -> str:
        try:
            return self._entries[key]
        except KeyError:
            raise AddressNotFound(f"{key!r} does not have an entry in the address book") from None

    def resolve(self, address_or_alias: str) -> str:
        """Alias lookup, falling back to treating the value as a literal address."""
        if address_or_alias in self._entries:
            return self._entries[address_or_alias]
        if is_address(address_or_alias):
            return to_checksum_address(address_or_alias)
        raise AddressNotFound(f"{address_or_alias!r} is neither an alias nor an address")

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
