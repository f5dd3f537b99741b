"""
Базовый интерфейс адаптера блокчейна

Адаптер скрывает протокол конкретной сети. Обязательные операции
объявлены абстрактными, необязательные (детальный запрос транзакции,
определение адресов отправителей) включаются набором capabilities.
"""

import enum
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Optional

from app.schemas.chain import Block, ChainTransaction


class BlockchainAdapterError(Exception):
    """Исключение для ошибок сети или узла блокчейна"""

    pass


class AdapterCapability(str, enum.Enum):
    """Необязательные возможности адаптера"""

    FETCH_TRANSACTION = "fetch_transaction"
    TRANSACTION_SOURCES = "transaction_sources"


class BlockchainAdapter(ABC):
    """
    Адаптер к конкретному блокчейну
    """

    capabilities: FrozenSet[AdapterCapability] = frozenset()
    default_features: Dict[str, bool] = {
        "case_sensitive": True,
        "cash_addr_format": False,
    }

    def __init__(self, features: Optional[Dict[str, bool]] = None):
        self._features = {**self.default_features, **(features or {})}
        self.server: Optional[str] = None
        self.currencies: List[Dict[str, Any]] = []
        self.whitelisted_addresses: List[str] = []
        self.timeout: Optional[int] = None

    def configure(
        self,
        server: Optional[str] = None,
        currencies: Optional[List[Dict[str, Any]]] = None,
        whitelisted_addresses: Optional[List[str]] = None,
        timeout: Optional[int] = None,
    ) -> None:
        """
        Однократная настройка адаптера

        Args:
            server: Адрес узла
            currencies: Настройки отслеживаемых валют
            whitelisted_addresses: Адреса доверенных смарт-контрактов
            timeout: Таймаут запросов в секундах
        """
        self.server = server
        self.currencies = list(currencies or [])
        self.whitelisted_addresses = list(whitelisted_addresses or [])
        self.timeout = timeout

    @property
    def features(self) -> Dict[str, bool]:
        return dict(self._features)

    def supports(self, capability: AdapterCapability) -> bool:
        return capability in self.capabilities

    @abstractmethod
    def latest_block_number(self) -> int:
        """Высота последнего блока в сети"""

    @abstractmethod
    def fetch_block(self, block_number: int) -> Block:
        """
        Получение блока с транзакциями

        Raises:
            BlockchainAdapterError: узел недоступен или высота некорректна
        """

    @abstractmethod
    def load_balance_of_address(self, address: str, currency_id: str) -> Decimal:
        """
        Баланс адреса в указанной валюте

        Raises:
            BlockchainAdapterError: ошибка запроса к узлу
        """

    def fetch_transaction(self, transaction: ChainTransaction) -> ChainTransaction:
        """Детальный запрос транзакции (FETCH_TRANSACTION)"""
        raise NotImplementedError(
            f"{type(self).__name__} не поддерживает запрос транзакции"
        )

    def refetch(self, transaction: ChainTransaction) -> ChainTransaction:
        """
        Детальный запрос транзакции, уже найденной в блоке

        Узел может не вернуть высоту блока в детальном ответе, тогда
        сохраняется высота исходной транзакции.
        """
        detailed = self.fetch_transaction(transaction)
        if detailed.block_number is None and transaction.block_number is not None:
            detailed = detailed.model_copy(update={"block_number": transaction.block_number})
        return detailed

    def transaction_sources(self, transaction: ChainTransaction) -> List[str]:
        """Адреса отправителей транзакции (TRANSACTION_SOURCES)"""
        raise NotImplementedError(
            f"{type(self).__name__} не поддерживает определение отправителей"
        )
