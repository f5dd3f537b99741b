"""
SQLAlchemy модели кошельков платформы и депозитных адресов пользователей
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base

# Валюты, которые обслуживает кошелек
wallet_currencies = Table(
    "wallet_currencies",
    Base.metadata,
    Column("wallet_id", Integer, ForeignKey("wallets.id"), primary_key=True),
    Column("currency_id", String(32), primary_key=True),
)


class Wallet(Base):
    """Модель кошелька платформы"""

    __tablename__ = "wallets"

    DEPOSIT = "deposit"
    FEE = "fee"
    HOT = "hot"
    WARM = "warm"
    COLD = "cold"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), nullable=False)
    address = Column(String(256), nullable=False)
    blockchain_key = Column(
        String(64), ForeignKey("blockchains.key"), nullable=False, index=True
    )
    kind = Column(String(32), nullable=False, default=DEPOSIT)
    created_at = Column(DateTime, default=func.now())

    payment_addresses = relationship("PaymentAddress", back_populates="wallet")

    def __repr__(self):
        return f"<Wallet(name='{self.name}', kind='{self.kind}')>"


class PaymentAddress(Base):
    """Депозитный адрес пользователя"""

    __tablename__ = "payment_addresses"

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False, index=True)
    member_id = Column(Integer, nullable=False, index=True)
    address = Column(String(256), index=True)
    created_at = Column(DateTime, default=func.now())

    wallet = relationship("Wallet", back_populates="payment_addresses")

    def __repr__(self):
        return f"<PaymentAddress(address='{self.address}', member_id={self.member_id})>"
