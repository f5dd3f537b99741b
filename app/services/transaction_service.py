"""
Сервис транзакций леджера и разделение кандидатов в депозиты
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.blockchain import Blockchain
from app.models.deposit import Deposit
from app.models.states import ReferenceType
from app.models.transaction import Transaction
from app.models.withdrawal import Withdrawal
from app.schemas.chain import ChainTransaction

logger = logging.getLogger(__name__)


class TransactionServiceError(Exception):
    """Исключение для ошибок сервиса транзакций"""

    pass


@dataclass
class DepositCandidates:
    """Результат разделения транзакций блока, адресованных платформе"""

    new: List[ChainTransaction] = field(default_factory=list)
    existing: List[ChainTransaction] = field(default_factory=list)
    existing_db_txs: List[Transaction] = field(default_factory=list)


class TransactionService:
    """Сервис для работы с транзакциями леджера"""

    def __init__(self, db: Session, blockchain: Blockchain):
        self.db = db
        self.blockchain = blockchain

    def get_transactions_by_txids(self, txids: List[str]) -> List[Transaction]:
        """
        Транзакции леджера этой сети по списку txid

        Args:
            txids: Хеши транзакций
        """
        if not txids:
            return []
        try:
            return (
                self.db.query(Transaction)
                .filter(
                    Transaction.txid.in_(txids),
                    Transaction.blockchain_key == self.blockchain.key,
                )
                .order_by(Transaction.id)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Ошибка получения транзакций леджера: {e}")
            raise TransactionServiceError(f"Не удалось получить транзакции: {e}")

    def get_transaction_by_txid(
        self, txid: str, reference_type: Optional[ReferenceType] = None
    ) -> Optional[Transaction]:
        """
        Получение транзакции леджера по txid

        Args:
            txid: Хеш транзакции
            reference_type: Ограничение по типу связанной записи
        """
        query = self.db.query(Transaction).filter(
            Transaction.txid == txid,
            Transaction.blockchain_key == self.blockchain.key,
        )
        if reference_type is not None:
            query = query.filter(Transaction.reference_type == reference_type.value)
        return query.order_by(Transaction.id).first()

    def is_deposit_collection_tx(self, txid: str) -> bool:
        """Транзакция уже учтена как плечо сбора какого-либо депозита"""
        return (
            self.get_transaction_by_txid(txid, reference_type=ReferenceType.DEPOSIT)
            is not None
        )

    def partition(self, transactions: List[ChainTransaction]) -> DepositCandidates:
        """
        Разделение транзакций на новые и уже известные леджеру

        Проверка по одному лишь членству не защищает от одновременной обработки
        одной транзакции двумя пересекающимися проходами: от дубликатов защищает
        уникальный ключ депозита и повторная проверка внутри атомарной фазы.

        Args:
            transactions: Транзакции блока, адресованные платформе
        """
        existing_db_txs = self.get_transactions_by_txids(
            [tx.hash for tx in transactions]
        )
        known_txids = {db_tx.txid for db_tx in existing_db_txs}

        candidates = DepositCandidates(existing_db_txs=existing_db_txs)
        for tx in transactions:
            if tx.hash in known_txids:
                candidates.existing.append(tx)
            else:
                candidates.new.append(tx)
        return candidates

    def reference(self, db_tx: Transaction) -> Optional[Union[Deposit, Withdrawal]]:
        """Запись, к которой относится транзакция леджера"""
        if db_tx.reference_id is None:
            return None
        if db_tx.reference_type == ReferenceType.DEPOSIT.value:
            return self.db.get(Deposit, db_tx.reference_id)
        if db_tx.reference_type == ReferenceType.WITHDRAWAL.value:
            return self.db.get(Withdrawal, db_tx.reference_id)
        return None
