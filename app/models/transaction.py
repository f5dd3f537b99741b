"""
SQLAlchemy модель транзакций леджера (плечи сбора депозитов и выводы)
"""

from sqlalchemy import Column, DateTime, Enum, Integer, Numeric, String
from sqlalchemy.sql import func

from app.database import Base
from app.models.states import (
    TRANSACTION_TRANSITIONS,
    StateMachineMixin,
    TransactionEvent,
    TransactionKind,
    TransactionStatus,
)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Transaction(StateMachineMixin, Base):
    """Модель транзакции леджера"""

    __tablename__ = "transactions"
    __state_attribute__ = "status"
    __transitions__ = TRANSACTION_TRANSITIONS

    id = Column(Integer, primary_key=True, index=True)
    txid = Column(String(128), nullable=False, index=True)
    currency_id = Column(String(32), nullable=False, index=True)
    blockchain_key = Column(String(64), nullable=False, index=True)
    kind = Column(
        Enum(TransactionKind, values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=TransactionKind.TX,
    )
    status = Column(
        Enum(TransactionStatus, values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=TransactionStatus.PENDING,
    )
    from_address = Column(String(256))
    to_address = Column(String(256))
    amount = Column(Numeric(36, 18))
    fee = Column(Numeric(36, 18))
    fee_currency_id = Column(String(32))
    block_number = Column(Integer, index=True)
    reference_type = Column(String(32), index=True)  # Deposit или Withdrawal
    reference_id = Column(Integer, index=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING

    def confirm(self) -> bool:
        return self.fire(TransactionEvent.CONFIRM)

    def fail(self) -> bool:
        return self.fire(TransactionEvent.FAIL)

    def __repr__(self):
        return (
            f"<Transaction(txid='{self.txid[:12]}...', kind='{self.kind}', "
            f"status='{self.status}')>"
        )
