"""
SQLAlchemy модель выводов
"""

from sqlalchemy import JSON, Column, DateTime, Enum, Integer, Numeric, String
from sqlalchemy.sql import func

from app.database import Base
from app.models.states import (
    WITHDRAWAL_TRANSITIONS,
    StateMachineMixin,
    WithdrawalEvent,
    WithdrawalState,
)
from app.models.transaction import _enum_values


class Withdrawal(StateMachineMixin, Base):
    """Модель вывода"""

    __tablename__ = "withdrawals"
    __transitions__ = WITHDRAWAL_TRANSITIONS

    id = Column(Integer, primary_key=True, index=True)
    currency_id = Column(String(32), nullable=False, index=True)
    blockchain_key = Column(String(64), nullable=False, index=True)
    member_id = Column(Integer, nullable=False, index=True)
    amount = Column(Numeric(36, 18), nullable=False)
    rid = Column(String(256))  # Адрес получателя
    txid = Column(String(128), index=True)
    block_number = Column(Integer)
    state = Column(
        Enum(WithdrawalState, values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=WithdrawalState.CONFIRMING,
    )
    error = Column(JSON)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def success(self) -> bool:
        return self.fire(WithdrawalEvent.SUCCESS)

    def fail(self) -> bool:
        return self.fire(WithdrawalEvent.FAIL)

    def __repr__(self):
        return f"<Withdrawal(txid='{self.txid}', state='{self.state}')>"
