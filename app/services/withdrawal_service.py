"""
Сервис сверки выводов с блокчейном
"""

import logging
from typing import Callable, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.adapters.base import AdapterCapability, BlockchainAdapter
from app.models.blockchain import Blockchain
from app.models.states import ReferenceType, WithdrawalState
from app.models.withdrawal import Withdrawal
from app.schemas.chain import Block, ChainTransaction
from app.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)


class WithdrawalServiceError(Exception):
    """Исключение для ошибок сервиса выводов"""

    pass


class WithdrawalService:
    """Обновление выводов в состоянии confirming по данным блокчейна"""

    def __init__(
        self,
        db: Session,
        blockchain: Blockchain,
        adapter: BlockchainAdapter,
        transaction_service: TransactionService,
        currencies: Iterable[str],
        latest_block_number: Callable[[], int],
    ):
        self.db = db
        self.blockchain = blockchain
        self.adapter = adapter
        self.transaction_service = transaction_service
        self.currencies = sorted(set(currencies))
        self.latest_block_number = latest_block_number

    def _confirming(self):
        return self.db.query(Withdrawal).filter(
            Withdrawal.state == WithdrawalState.CONFIRMING,
            Withdrawal.blockchain_key == self.blockchain.key,
        )

    def filter_withdrawals(self, block: Block) -> List[ChainTransaction]:
        """
        Транзакции блока, совпадающие с выводами в состоянии confirming

        Args:
            block: Блок от адаптера
        """
        # TODO: выбирать txid пачками, если выводов в confirming очень много
        rows = (
            self._confirming()
            .filter(Withdrawal.currency_id.in_(self.currencies))
            .with_entities(Withdrawal.txid)
            .all()
        )
        txids = {row.txid for row in rows if row.txid}
        return block.select(lambda tx: tx.hash in txids)

    def update(self, transaction: ChainTransaction) -> Optional[Withdrawal]:
        """
        Сверка одного вывода

        Вызывается внутри атомарной фазы обработки блока.

        Args:
            transaction: Транзакция блока с хешем вывода

        Returns:
            Вывод или None, если вывода с таким txid в confirming нет
        """
        try:
            withdrawal = (
                self._confirming()
                .filter(
                    Withdrawal.currency_id == transaction.currency_id,
                    Withdrawal.txid == transaction.hash,
                )
                .first()
            )
            if withdrawal is None:
                logger.info(f"Пропущен вывод: {transaction.hash}")
                return None

            # Высота нужна для расчета подтверждений на следующих блоках
            withdrawal.block_number = transaction.block_number

            if (
                self.adapter.supports(AdapterCapability.FETCH_TRANSACTION)
                and transaction.is_pending
            ):
                transaction = self.adapter.refetch(transaction)

            db_tx = self.transaction_service.get_transaction_by_txid(
                transaction.hash, reference_type=ReferenceType.WITHDRAWAL
            )
            if db_tx is None:
                logger.warning(
                    f"Для вывода {withdrawal.id} нет транзакции леджера {transaction.hash}"
                )
            else:
                db_tx.fee = transaction.fee
                db_tx.block_number = transaction.block_number
                db_tx.fee_currency_id = transaction.fee_currency_id

            # Подтверждения считаем вручную, высота блокчейна еще не обновлена
            confirmations = self.latest_block_number() - withdrawal.block_number
            if transaction.is_failed:
                withdrawal.fail()
                if db_tx is not None:
                    db_tx.fail()
                logger.warning(f"Вывод {withdrawal.id} ({transaction.hash}) не прошел")
            elif (
                transaction.is_success
                and confirmations >= self.blockchain.min_confirmations
            ):
                withdrawal.success()
                if db_tx is not None:
                    db_tx.confirm()
                logger.info(
                    f"Вывод {withdrawal.id} ({transaction.hash}) подтвержден, "
                    f"подтверждений: {confirmations}"
                )

            self.db.flush()
            return withdrawal

        except SQLAlchemyError as e:
            logger.error(f"Ошибка сверки вывода {transaction.hash}: {e}")
            raise WithdrawalServiceError(f"Не удалось обновить вывод: {e}")
