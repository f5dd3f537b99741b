"""
SQLAlchemy модели блокчейнов и отслеживаемых валют
"""

from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Session, relationship
from sqlalchemy.sql import func

from app.config import settings
from app.database import Base


class Blockchain(Base):
    """Модель блокчейна с курсором обработанной высоты"""

    __tablename__ = "blockchains"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    client = Column(String(64), nullable=False)  # Ключ адаптера в реестре
    server = Column(String(1024))
    height = Column(Integer, nullable=False, default=0)
    min_confirmations = Column(
        Integer, nullable=False, default=settings.DEFAULT_MIN_CONFIRMATIONS
    )
    status = Column(String(32), nullable=False, default="active")
    created_at = Column(DateTime, default=func.now())
    # Отметка изменения конфигурации, смена высоты ее не трогает
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    currencies = relationship(
        "BlockchainCurrency",
        back_populates="blockchain",
        primaryjoin="Blockchain.key == BlockchainCurrency.blockchain_key",
    )
    whitelisted_smart_contracts = relationship(
        "WhitelistedSmartContract",
        primaryjoin="Blockchain.key == WhitelistedSmartContract.blockchain_key",
        viewonly=True,
    )

    @property
    def deposit_enabled_currencies(self):
        return [c for c in self.currencies if c.deposit_enabled]

    @property
    def active_whitelisted_smart_contracts(self):
        return [c for c in self.whitelisted_smart_contracts if c.state == "active"]

    def __repr__(self):
        return f"<Blockchain(key='{self.key}', height={self.height})>"


class BlockchainCurrency(Base):
    """Валюта, отслеживаемая в конкретной сети"""

    __tablename__ = "blockchain_currencies"
    __table_args__ = (UniqueConstraint("blockchain_key", "currency_id"),)

    id = Column(Integer, primary_key=True, index=True)
    blockchain_key = Column(
        String(64), ForeignKey("blockchains.key"), nullable=False, index=True
    )
    currency_id = Column(String(32), nullable=False, index=True)
    min_deposit_amount = Column(Numeric(36, 18), nullable=False, default=0)
    deposit_enabled = Column(Boolean, nullable=False, default=True)
    options = Column(JSON, default=dict)  # Параметры сети: контракт, base_factor
    created_at = Column(DateTime, default=func.now())

    blockchain = relationship(
        "Blockchain",
        back_populates="currencies",
        primaryjoin="Blockchain.key == BlockchainCurrency.blockchain_key",
    )

    def to_blockchain_api_settings(self) -> Dict[str, Any]:
        """Настройки валюты для адаптера"""
        return {
            "id": self.currency_id,
            "min_deposit_amount": self.min_deposit_amount,
            "options": dict(self.options or {}),
        }

    @classmethod
    def find_network(
        cls, db: Session, blockchain_key: str, currency_id: str
    ) -> Optional["BlockchainCurrency"]:
        return (
            db.query(cls)
            .filter(cls.blockchain_key == blockchain_key, cls.currency_id == currency_id)
            .first()
        )

    def __repr__(self):
        return (
            f"<BlockchainCurrency(blockchain_key='{self.blockchain_key}', "
            f"currency_id='{self.currency_id}')>"
        )


class WhitelistedSmartContract(Base):
    """Смарт-контракт, транзакции через который адаптер считает своими"""

    __tablename__ = "whitelisted_smart_contracts"

    id = Column(Integer, primary_key=True, index=True)
    blockchain_key = Column(
        String(64), ForeignKey("blockchains.key"), nullable=False, index=True
    )
    address = Column(String(256), nullable=False)
    description = Column(String(255))
    state = Column(String(32), nullable=False, default="active")

    def __repr__(self):
        return f"<WhitelistedSmartContract(address='{self.address}')>"
