"""
Реестр адаптеров блокчейнов по ключу клиента
"""

import logging
from typing import Dict, Type

from app.adapters.base import BlockchainAdapter

logger = logging.getLogger(__name__)


class AdapterRegistryError(Exception):
    """Исключение для неизвестного клиента блокчейна"""

    pass


class AdapterRegistry:
    """Сопоставление Blockchain.client с классом адаптера"""

    def __init__(self):
        self._adapters: Dict[str, Type[BlockchainAdapter]] = {}

    def register(self, client: str, adapter_cls: Type[BlockchainAdapter]) -> None:
        if client in self._adapters:
            logger.warning(f"Адаптер для клиента '{client}' будет переопределен")
        self._adapters[client] = adapter_cls

    def unregister(self, client: str) -> None:
        self._adapters.pop(client, None)

    def __contains__(self, client: str) -> bool:
        return client in self._adapters

    def __getitem__(self, client: str) -> Type[BlockchainAdapter]:
        try:
            return self._adapters[client]
        except KeyError:
            raise AdapterRegistryError(f"Неизвестный клиент блокчейна: {client}")


# Глобальный реестр адаптеров
registry = AdapterRegistry()
