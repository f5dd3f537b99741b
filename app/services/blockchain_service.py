"""
Сервис сверки блокчейна: обработка блоков и продвижение высоты
"""

import logging
from typing import Any, Callable, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.adapters.base import AdapterCapability, BlockchainAdapter, BlockchainAdapterError
from app.adapters.registry import registry
from app.config import settings
from app.database import get_db
from app.models.blockchain import Blockchain
from app.models.deposit import Deposit
from app.schemas.chain import Block, ChainTransaction
from app.services.address_service import AddressService
from app.services.collection_service import CollectionService
from app.services.deposit_service import DepositService
from app.services.transaction_service import TransactionService
from app.services.withdrawal_service import WithdrawalService

logger = logging.getLogger(__name__)


class BlockchainServiceError(Exception):
    """Фатальная ошибка сервиса блокчейна (например, конфликт высоты)"""

    pass


class BalanceLoadError(Exception):
    """Ошибка получения баланса адреса через адаптер"""

    pass


class BlockchainService:
    """
    Сервис сверки депозитов и выводов одного блокчейна

    Экземпляр обрабатывает блоки строго по одному и в порядке возрастания
    высоты. Разные блокчейны обслуживаются независимыми экземплярами.
    """

    def __init__(
        self,
        db: Session,
        blockchain: Blockchain,
        adapter: Optional[BlockchainAdapter] = None,
        on_deposit_accepted: Optional[Callable[[Deposit], Any]] = None,
    ):
        self.db = db
        self.blockchain = blockchain
        self.blockchain_currencies = blockchain.deposit_enabled_currencies
        self.currencies = sorted({c.currency_id for c in self.blockchain_currencies})
        self.whitelisted_addresses = [
            c.address for c in blockchain.active_whitelisted_smart_contracts
        ]

        self.adapter = adapter or registry[blockchain.client]()
        self.adapter.configure(
            server=blockchain.server,
            currencies=[c.to_blockchain_api_settings() for c in self.blockchain_currencies],
            whitelisted_addresses=self.whitelisted_addresses,
            timeout=settings.ADAPTER_TIMEOUT,
        )

        # Последняя прочитанная высота, с ней сравнивается высота в БД
        self._height = blockchain.height
        self._latest_block_number: Optional[int] = None

        self.address_service = AddressService(
            db, blockchain, self.currencies, case_sensitive=self.case_sensitive
        )
        self.transaction_service = TransactionService(db, blockchain)
        self.collection_service = CollectionService(
            db, self.adapter, self.transaction_service
        )
        self.deposit_service = DepositService(
            db,
            blockchain,
            self.adapter,
            self.address_service,
            self.transaction_service,
            self.latest_block_number,
        )
        self.withdrawal_service = WithdrawalService(
            db,
            blockchain,
            self.adapter,
            self.transaction_service,
            self.currencies,
            self.latest_block_number,
        )
        self.on_deposit_accepted = on_deposit_accepted or self.deposit_service.process

    def latest_block_number(self) -> int:
        """Высота последнего блока в сети, кэшируется до reset()"""
        if self._latest_block_number is None:
            self._latest_block_number = self.adapter.latest_block_number()
        return self._latest_block_number

    def reset(self) -> None:
        """Сброс кэшированного состояния"""
        self._latest_block_number = None

    def load_balance(self, address: str, currency_id: str):
        """
        Баланс адреса через адаптер

        Raises:
            BalanceLoadError: адаптер не смог получить баланс
        """
        try:
            return self.adapter.load_balance_of_address(address, currency_id)
        except BlockchainAdapterError as e:
            logger.exception(f"Ошибка получения баланса {address} ({currency_id}): {e}")
            raise BalanceLoadError(f"Не удалось получить баланс {address}: {e}") from e

    @property
    def case_sensitive(self) -> bool:
        return bool(self.adapter.features.get("case_sensitive"))

    @property
    def supports_cash_addr_format(self) -> bool:
        return bool(self.adapter.features.get("cash_addr_format"))

    def fetch_transaction(self, transaction: Any) -> ChainTransaction:
        """
        Детальный запрос транзакции

        Args:
            transaction: ChainTransaction или запись с txid, currency_id и amount

        Returns:
            Ответ адаптера или исходная транзакция, если адаптер не умеет запрос
        """
        if isinstance(transaction, ChainTransaction):
            tx = transaction
        else:
            tx = ChainTransaction(
                currency_id=transaction.currency_id,
                hash=transaction.txid,
                to_address=getattr(transaction, "rid", None)
                or getattr(transaction, "to_address", None),
                amount=transaction.amount,
            )
        if self.adapter.supports(AdapterCapability.FETCH_TRANSACTION):
            return self.adapter.refetch(tx)
        return tx

    def process_block(self, block_number: int) -> Block:
        """
        Обработка одного блока

        Плечи сбора продвигаются до атомарной фазы и фиксируются сами.
        Прием депозитов и сверка выводов выполняются в одной транзакции БД.
        Принятые депозиты передаются в обработку только после коммита.

        Args:
            block_number: Высота блока

        Returns:
            Полученный от адаптера блок

        Raises:
            BlockchainServiceError: обработчик принятых депозитов завершился
                ошибкой после коммита блока
        """
        block = self.adapter.fetch_block(block_number)
        for tx in block.transactions:
            if tx.block_number is None:
                tx.block_number = block.number

        deposit_txs = self.address_service.match(block)
        candidates = self.transaction_service.partition(deposit_txs)
        withdrawal_txs = self.withdrawal_service.filter_withdrawals(block)

        self.collection_service.advance(candidates.existing, candidates.existing_db_txs)

        accepted_deposits: List[Deposit] = []
        try:
            for tx in candidates.new:
                deposit = self.deposit_service.update_or_create(tx)
                if deposit is not None:
                    accepted_deposits.append(deposit)
            for tx in withdrawal_txs:
                self.withdrawal_service.update(tx)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Ошибка обработки блока {block_number} ({self.blockchain.key}): {e}")
            raise

        self._dispatch_accepted(accepted_deposits)

        logger.info(
            f"Обработан блок {block_number} ({self.blockchain.key}): "
            f"депозитов={len(deposit_txs)}, новых={len(candidates.new)}, "
            f"принято={len(accepted_deposits)}, выводов={len(withdrawal_txs)}"
        )
        return block

    def process_accepted_deposits(self) -> int:
        """
        Повторная передача в обработку депозитов, оставшихся в accepted

        Депозит остается в accepted, если обработчик упал или процесс
        завершился между коммитом блока и вызовом обработчика. Повторная
        обработка блока такой депозит уже не вернет.

        Returns:
            Количество переданных депозитов
        """
        deposits = self.deposit_service.accepted_deposits()
        self._dispatch_accepted(deposits)
        return len(deposits)

    def _dispatch_accepted(self, deposits: List[Deposit]) -> None:
        failed = []
        for deposit in deposits:
            try:
                self.on_deposit_accepted(deposit)
            except Exception as e:
                logger.exception(f"Ошибка обработки принятого депозита {deposit.id}: {e}")
                failed.append(deposit.id)
        if failed:
            raise BlockchainServiceError(
                f"Не удалось передать в обработку депозиты {failed} ({self.blockchain.key})"
            )

    def _persisted_height(self) -> Optional[int]:
        return (
            self.db.query(Blockchain.height)
            .filter(Blockchain.id == self.blockchain.id)
            .scalar()
        )

    def update_height(self, block_number: int) -> bool:
        """
        Продвижение обработанной высоты блокчейна

        Высота только растет. Высота в БД должна совпадать с последней
        прочитанной, иначе ее изменил другой процесс. updated_at не меняется:
        по нему отличают изменения конфигурации блокчейна.

        Returns:
            True если высота обновлена

        Raises:
            BlockchainServiceError: высота изменена извне
        """
        persisted = self._persisted_height()
        if persisted != self._height:
            logger.error(
                f"Высота {self.blockchain.key} изменена извне: "
                f"ожидалась {self._height}, в БД {persisted}"
            )
            raise BlockchainServiceError(f"{self.blockchain.key} height was reset.")

        if block_number <= self._height:
            logger.debug(
                f"Высота {self.blockchain.key} уже {self._height}, блок {block_number} пропущен"
            )
            return False

        if self.latest_block_number() - block_number < self.blockchain.min_confirmations:
            return False

        result = self.db.execute(
            update(Blockchain)
            .where(
                Blockchain.id == self.blockchain.id,
                Blockchain.height == self._height,
                Blockchain.height < block_number,
            )
            .values(height=block_number, updated_at=Blockchain.updated_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            logger.error(
                f"Высота {self.blockchain.key} изменена между чтением и записью"
            )
            raise BlockchainServiceError(f"{self.blockchain.key} height was reset.")
        self.db.commit()

        self._height = block_number
        logger.debug(f"Высота {self.blockchain.key} обновлена до {block_number}")
        return True


def get_blockchain_service(blockchain_key: str, db: Session = None) -> BlockchainService:
    """Получение экземпляра сервиса для блокчейна по ключу"""
    if db is None:
        db = next(get_db())
    blockchain = db.query(Blockchain).filter(Blockchain.key == blockchain_key).first()
    if blockchain is None:
        raise BlockchainServiceError(f"Блокчейн {blockchain_key} не найден")
    return BlockchainService(db, blockchain)
