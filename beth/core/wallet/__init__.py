from .account import Account, InsufficientBalance
from .address_book import AddressBook
from .erc20 import ERC20

__all__ = ["Account", "InsufficientBalance", "AddressBook", "ERC20"]
