"""
SQLAlchemy модель депозитов
"""

from typing import List

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from app.database import Base
from app.models.states import (
    DEPOSIT_TRANSITIONS,
    DepositEvent,
    DepositState,
    StateMachineMixin,
    TransactionStatus,
)
from app.models.transaction import _enum_values


class Deposit(StateMachineMixin, Base):
    """Модель депозита"""

    __tablename__ = "deposits"
    __table_args__ = (
        UniqueConstraint("currency_id", "txid", "txout", "blockchain_key"),
    )
    __transitions__ = DEPOSIT_TRANSITIONS

    id = Column(Integer, primary_key=True, index=True)
    currency_id = Column(String(32), nullable=False, index=True)
    blockchain_key = Column(String(64), nullable=False, index=True)
    txid = Column(String(128), nullable=False, index=True)
    txout = Column(Integer, nullable=False, default=0)  # Индекс выхода
    member_id = Column(Integer, nullable=False, index=True)
    address = Column(String(256))
    amount = Column(Numeric(36, 18), nullable=False)
    from_addresses = Column(JSON, default=list)
    block_number = Column(Integer, index=True)
    state = Column(
        Enum(DepositState, values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=DepositState.SUBMITTED,
    )
    # Плечи сбора: [{"hash": ..., "status": ...}]
    spread = Column(JSON, default=list)
    error = Column(JSON)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def accept(self) -> bool:
        return self.fire(DepositEvent.ACCEPT)

    def err(self, reason: str) -> bool:
        """Перевод депозита в ошибку с сохранением причины"""
        if not self.fire(DepositEvent.ERR):
            return False
        self.error = {"message": reason}
        return True

    def mark_spread_leg(self, leg_hash: str, status: TransactionStatus) -> bool:
        """
        Отметка статуса плеча сбора по хешу

        JSON колонка пересобирается целиком, иначе SQLAlchemy не заметит изменений.

        Returns:
            True если плечо с таким хешем найдено
        """
        found = False
        updated: List[dict] = []
        for leg in self.spread or []:
            leg = dict(leg)
            if leg.get("hash") == leg_hash:
                leg["status"] = status.value
                found = True
            updated.append(leg)
        self.spread = updated
        return found

    @property
    def spread_completed(self) -> bool:
        """Все плечи сбора подтверждены"""
        return bool(self.spread) and all(
            leg.get("status") == TransactionStatus.SUCCEED.value for leg in self.spread
        )

    def __repr__(self):
        return f"<Deposit(txid='{self.txid[:12]}...', state='{self.state}')>"
