# Business logic services package

from app.services.address_service import AddressService, AddressServiceError
from app.services.blockchain_service import (
    BalanceLoadError,
    BlockchainService,
    BlockchainServiceError,
    get_blockchain_service,
)
from app.services.collection_service import CollectionService, CollectionServiceError
from app.services.deposit_service import DepositService, DepositServiceError
from app.services.transaction_service import (
    DepositCandidates,
    TransactionService,
    TransactionServiceError,
)
from app.services.withdrawal_service import WithdrawalService, WithdrawalServiceError

__all__ = [
    "AddressService",
    "AddressServiceError",
    "BalanceLoadError",
    "BlockchainService",
    "BlockchainServiceError",
    "get_blockchain_service",
    "CollectionService",
    "CollectionServiceError",
    "DepositService",
    "DepositServiceError",
    "DepositCandidates",
    "TransactionService",
    "TransactionServiceError",
    "WithdrawalService",
    "WithdrawalServiceError",
]
