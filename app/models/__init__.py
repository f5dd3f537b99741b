# Database models package

from .blockchain import Blockchain, BlockchainCurrency, WhitelistedSmartContract
from .deposit import Deposit
from .transaction import Transaction
from .wallet import PaymentAddress, Wallet, wallet_currencies
from .withdrawal import Withdrawal

__all__ = [
    "Blockchain",
    "BlockchainCurrency",
    "WhitelistedSmartContract",
    "Deposit",
    "Transaction",
    "PaymentAddress",
    "Wallet",
    "wallet_currencies",
    "Withdrawal",
]
