"""
Сервис приема депозитов
"""

import logging
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.adapters.base import AdapterCapability, BlockchainAdapter
from app.models.blockchain import Blockchain, BlockchainCurrency
from app.models.deposit import Deposit
from app.models.states import DepositEvent, DepositState
from app.models.wallet import PaymentAddress
from app.schemas.chain import ChainTransaction
from app.services.address_service import AddressService
from app.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)


class DepositServiceError(Exception):
    """Исключение для ошибок сервиса депозитов"""

    pass


class DepositService:
    """Создание, корректировка и подтверждение депозитов"""

    def __init__(
        self,
        db: Session,
        blockchain: Blockchain,
        adapter: BlockchainAdapter,
        address_service: AddressService,
        transaction_service: TransactionService,
        latest_block_number: Callable[[], int],
    ):
        self.db = db
        self.blockchain = blockchain
        self.adapter = adapter
        self.address_service = address_service
        self.transaction_service = transaction_service
        self.latest_block_number = latest_block_number

    def update_or_create(self, transaction: ChainTransaction) -> Optional[Deposit]:
        """
        Прием новой транзакции-кандидата в депозит

        Вызывается внутри атомарной фазы обработки блока, коммит выполняет
        вызывающая сторона.

        Args:
            transaction: Транзакция блока, не известная леджеру

        Returns:
            Депозит, если он был подтвержден именно в этом проходе, иначе None
        """
        currency = BlockchainCurrency.find_network(
            self.db, self.blockchain.key, transaction.currency_id
        )
        if currency is None:
            logger.info(
                f"Пропущена транзакция {transaction.hash}: валюта "
                f"{transaction.currency_id} не отслеживается в {self.blockchain.key}"
            )
            return None

        if transaction.amount < currency.min_deposit_amount:
            # Мелкие депозиты просто пропускаем
            logger.info(
                f"Пропущен депозит {transaction.hash} на сумму {transaction.amount} "
                f"на адрес {transaction.to_address} в блоке {transaction.block_number}"
            )
            return None

        if (
            self.adapter.supports(AdapterCapability.FETCH_TRANSACTION)
            and transaction.is_pending
        ):
            transaction = self.adapter.refetch(transaction)
        if not transaction.is_success:
            logger.info(
                f"Депозит {transaction.hash} еще не успешен "
                f"({transaction.status.value}), отложен"
            )
            return None

        payment_address = self.address_service.find_payment_address(
            transaction.currency_id, transaction.to_address
        )
        if payment_address is None:
            logger.info(
                f"Пропущена транзакция {transaction.hash}: адрес "
                f"{transaction.to_address} не принадлежит пользователю"
            )
            return None

        # Транзакция уже учтена как плечо сбора. Проверка выполняется внутри
        # атомарной фазы и закрывает гонку с обработкой плеч сбора.
        if self.transaction_service.is_deposit_collection_tx(transaction.hash):
            logger.info(f"Пропущена транзакция сбора {transaction.hash}")
            return None

        if not transaction.from_addresses and self.adapter.supports(
            AdapterCapability.TRANSACTION_SOURCES
        ):
            transaction.from_addresses = self.adapter.transaction_sources(transaction)

        try:
            deposit = self.find_or_create(transaction, payment_address)

            if deposit.block_number != transaction.block_number:
                logger.warning(
                    f"Депозит {deposit.id} перемещен из блока {deposit.block_number} "
                    f"в блок {transaction.block_number}"
                )
                deposit.block_number = transaction.block_number

            # Подтверждения считаем вручную, высота блокчейна еще не обновлена
            confirmations = self.latest_block_number() - deposit.block_number
            if confirmations >= self.blockchain.min_confirmations and deposit.accept():
                self.db.flush()
                logger.info(
                    f"Депозит {deposit.id} ({deposit.txid}) принят, "
                    f"подтверждений: {confirmations}"
                )
                return deposit

            self.db.flush()
            return None

        except SQLAlchemyError as e:
            logger.error(f"Ошибка сохранения депозита {transaction.hash}: {e}")
            raise DepositServiceError(f"Не удалось сохранить депозит: {e}")

    def get_deposit(self, transaction: ChainTransaction) -> Optional[Deposit]:
        """Поиск депозита по естественному ключу"""
        return (
            self.db.query(Deposit)
            .filter(
                Deposit.currency_id == transaction.currency_id,
                Deposit.txid == transaction.hash,
                Deposit.txout == transaction.txout,
                Deposit.blockchain_key == self.blockchain.key,
            )
            .first()
        )

    def find_or_create(
        self, transaction: ChainTransaction, payment_address: PaymentAddress
    ) -> Deposit:
        """
        Идемпотентное создание депозита по (currency_id, txid, txout, blockchain_key)

        Args:
            transaction: Успешная транзакция блока
            payment_address: Депозитный адрес пользователя
        """
        existing = self.get_deposit(transaction)
        if existing:
            return existing

        try:
            with self.db.begin_nested():
                deposit = Deposit(
                    currency_id=transaction.currency_id,
                    blockchain_key=self.blockchain.key,
                    txid=transaction.hash,
                    txout=transaction.txout,
                    address=transaction.to_address,
                    amount=transaction.amount,
                    member_id=payment_address.member_id,
                    from_addresses=list(transaction.from_addresses),
                    block_number=transaction.block_number,
                    state=DepositState.SUBMITTED,
                    spread=[],
                )
                self.db.add(deposit)
                self.db.flush()
            logger.info(f"Создан депозит {deposit.id} для транзакции {deposit.txid}")
            return deposit

        except IntegrityError as e:
            # Депозит создан параллельным проходом
            logger.warning(f"Депозит {transaction.hash} уже существует (race condition)")
            existing = self.get_deposit(transaction)
            if existing:
                return existing
            logger.error(f"Ошибка целостности БД для депозита {transaction.hash}: {e}")
            raise DepositServiceError(f"Ошибка целостности БД: {e}")

    def accepted_deposits(self) -> List[Deposit]:
        """Принятые депозиты блокчейна, еще не переданные в обработку"""
        return (
            self.db.query(Deposit)
            .filter(
                Deposit.blockchain_key == self.blockchain.key,
                Deposit.state == DepositState.ACCEPTED,
            )
            .order_by(Deposit.id)
            .all()
        )

    def process(self, deposit: Deposit) -> bool:
        """
        Передача принятого депозита в обработку после коммита блока

        Returns:
            True если депозит переведен в processing
        """
        try:
            if not deposit.fire(DepositEvent.PROCESS):
                logger.info(
                    f"Депозит {deposit.id} в состоянии {deposit.state.value} "
                    f"не может быть передан в обработку"
                )
                return False
            self.db.commit()
            logger.info(f"Депозит {deposit.id} передан в обработку")
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Ошибка обработки депозита {deposit.id}: {e}")
            raise DepositServiceError(f"Не удалось обработать депозит: {e}")
