"""
Сервис продвижения плеч сбора депозитов

Депозит в состоянии processing: транзакций еще нет, действий нет.
Депозит в состоянии fee_collecting: ждем подтверждения tx_prebuild,
после него депозит переходит в fee_processing.
Депозит в состоянии fee_processing: транзакций еще нет, действий нет.
Депозит в состоянии collecting: ждем подтверждения всех плеч spread,
после чего депозит переходит в collected.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.adapters.base import AdapterCapability, BlockchainAdapter
from app.models.deposit import Deposit
from app.models.states import (
    COLLECTION_STATES,
    DepositEvent,
    DepositState,
    LegOutcome,
    TransactionKind,
    TransactionStatus,
)
from app.models.transaction import Transaction
from app.schemas.chain import ChainTransaction
from app.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

FEE_COLLECTION_FAILED = "Fee collection transaction failed"
COLLECTION_FAILED = "Collection transaction failed"


class CollectionServiceError(Exception):
    """Исключение для ошибок сервиса сбора депозитов"""

    pass


class CollectionService:
    """Продвижение подсостояний сбора комиссии и средств депозита"""

    def __init__(
        self,
        db: Session,
        adapter: BlockchainAdapter,
        transaction_service: TransactionService,
    ):
        self.db = db
        self.adapter = adapter
        self.transaction_service = transaction_service

    def advance(
        self, block_txs: List[ChainTransaction], db_txs: List[Transaction]
    ) -> List[Tuple[str, LegOutcome]]:
        """
        Обработка ожидающих транзакций сбора, найденных в блоке

        Каждое плечо фиксируется отдельным коммитом, поэтому повторный
        запуск на том же блоке безопасен.

        Args:
            block_txs: Транзакции блока, уже известные леджеру
            db_txs: Соответствующие транзакции леджера

        Returns:
            Список пар (txid, результат)
        """
        results = []
        for db_tx in db_txs:
            if not db_tx.is_pending:
                continue
            try:
                outcome = self._advance_leg(db_tx, block_txs)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Ошибка обработки плеча сбора {db_tx.txid}: {e}")
                raise CollectionServiceError(
                    f"Не удалось обработать транзакцию сбора {db_tx.txid}: {e}"
                )
            results.append((db_tx.txid, outcome))
        return results

    def _find_block_tx(
        self, db_tx: Transaction, block_txs: List[ChainTransaction]
    ) -> Optional[ChainTransaction]:
        return next((tx for tx in block_txs if tx.hash == db_tx.txid), None)

    def _advance_leg(
        self, db_tx: Transaction, block_txs: List[ChainTransaction]
    ) -> LegOutcome:
        block_tx = self._find_block_tx(db_tx, block_txs)
        if block_tx is None:
            return LegOutcome.SKIPPED

        deposit = self.transaction_service.reference(db_tx)
        if not isinstance(deposit, Deposit) or deposit.state not in COLLECTION_STATES:
            return LegOutcome.SKIPPED

        # Некоторые сети отдают комиссию и финальный статус только по отдельному запросу
        if self.adapter.supports(AdapterCapability.FETCH_TRANSACTION) and (
            block_tx.fee is None or block_tx.is_pending
        ):
            block_tx = self.adapter.refetch(block_tx)

        db_tx.fee = block_tx.fee
        db_tx.block_number = block_tx.block_number

        if block_tx.is_success:
            db_tx.confirm()
            self._confirm_leg(deposit, db_tx, block_tx)
            return LegOutcome.CONFIRMED

        if block_tx.is_failed:
            db_tx.fail()
            if db_tx.kind == TransactionKind.TX_PREBUILD:
                deposit.err(FEE_COLLECTION_FAILED)
            else:
                deposit.err(COLLECTION_FAILED)
            logger.warning(
                f"Транзакция сбора {db_tx.txid} завершилась ошибкой, "
                f"депозит {deposit.id} переведен в {deposit.state.value}"
            )
            return LegOutcome.FAILED

        logger.warning(
            f"Статус транзакции сбора {db_tx.txid} не определен "
            f"({block_tx.status.value}), повторим на следующем блоке"
        )
        return LegOutcome.UNRESOLVED

    def _confirm_leg(
        self, deposit: Deposit, db_tx: Transaction, block_tx: ChainTransaction
    ) -> None:
        if (
            db_tx.kind == TransactionKind.TX_PREBUILD
            and deposit.state == DepositState.FEE_COLLECTING
        ):
            deposit.fire(DepositEvent.FEE_PROCESS)
            logger.info(f"Комиссия для депозита {deposit.id} собрана")

        if db_tx.kind == TransactionKind.TX and deposit.state == DepositState.COLLECTING:
            deposit.mark_spread_leg(block_tx.hash, TransactionStatus.SUCCEED)
            if deposit.spread_completed:
                deposit.fire(DepositEvent.DISPATCH)
                logger.info(f"Депозит {deposit.id} полностью собран")
