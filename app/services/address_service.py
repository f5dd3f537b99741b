"""
Сервис сопоставления адресов блока с адресами платформы
"""

import logging
from typing import Iterable, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.blockchain import Blockchain
from app.models.wallet import PaymentAddress, Wallet, wallet_currencies
from app.schemas.chain import Block, ChainTransaction

logger = logging.getLogger(__name__)


class AddressServiceError(Exception):
    """Исключение для ошибок сервиса адресов"""

    pass


class AddressService:
    """
    Сервис адресов платформы

    Адреса сравниваются по одному правилу: если сеть нечувствительна к
    регистру, обе стороны приводятся к нижнему регистру, иначе сравниваются
    как есть.
    """

    def __init__(
        self,
        db: Session,
        blockchain: Blockchain,
        currencies: Iterable[str],
        case_sensitive: bool = True,
    ):
        self.db = db
        self.blockchain = blockchain
        self.currencies = sorted(set(currencies))
        self.case_sensitive = case_sensitive

    def normalize(self, address: Optional[str]) -> Optional[str]:
        if address is None or self.case_sensitive:
            return address
        return address.lower()

    def _address_column(self, column):
        return column if self.case_sensitive else func.lower(column)

    def _wallet_ids_query(self, currencies: Iterable[str], kind: Optional[str] = None):
        """Подзапрос ID кошельков сети, обслуживающих указанные валюты"""
        query = (
            select(Wallet.id)
            .join(wallet_currencies, wallet_currencies.c.wallet_id == Wallet.id)
            .where(
                Wallet.blockchain_key == self.blockchain.key,
                wallet_currencies.c.currency_id.in_(list(currencies)),
            )
        )
        if kind is not None:
            query = query.where(Wallet.kind == kind)
        return query

    def owned_addresses(self, candidates: Iterable[Optional[str]]) -> Set[str]:
        """
        Адреса платформы среди переданных адресов назначения

        Args:
            candidates: Адреса получателей транзакций блока

        Returns:
            Нормализованные депозитные адреса пользователей и все адреса кошельков
        """
        lookup = {self.normalize(a) for a in candidates if a}
        if not lookup or not self.currencies:
            return set()

        try:
            deposit_wallets = self._wallet_ids_query(self.currencies, Wallet.DEPOSIT)
            payment_addresses = (
                self.db.query(PaymentAddress.address)
                .filter(
                    PaymentAddress.wallet_id.in_(deposit_wallets),
                    self._address_column(PaymentAddress.address).in_(lookup),
                )
                .all()
            )
            wallet_addresses = (
                self.db.query(Wallet.address)
                .filter(Wallet.id.in_(self._wallet_ids_query(self.currencies)))
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Ошибка получения адресов платформы: {e}")
            raise AddressServiceError(f"Не удалось получить адреса платформы: {e}")

        owned = {self.normalize(row.address) for row in payment_addresses}
        owned.update(self.normalize(row.address) for row in wallet_addresses)
        return owned

    def match(self, block: Block) -> List[ChainTransaction]:
        """
        Транзакции блока, адрес получателя которых принадлежит платформе

        Args:
            block: Блок от адаптера
        """
        owned = self.owned_addresses(tx.to_address for tx in block.transactions)
        return block.select(lambda tx: self.normalize(tx.to_address) in owned)

    def find_payment_address(
        self, currency_id: str, address: Optional[str]
    ) -> Optional[PaymentAddress]:
        """
        Депозитный адрес пользователя для валюты этой сети

        Args:
            currency_id: ID валюты
            address: Адрес получателя транзакции
        """
        if not address:
            return None
        deposit_wallets = self._wallet_ids_query([currency_id], Wallet.DEPOSIT)
        return (
            self.db.query(PaymentAddress)
            .filter(
                PaymentAddress.wallet_id.in_(deposit_wallets),
                self._address_column(PaymentAddress.address) == self.normalize(address),
            )
            .first()
        )
