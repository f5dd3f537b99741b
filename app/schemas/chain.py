"""
Pydantic схемы данных, получаемых от адаптера блокчейна
"""

import enum
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class ChainTransactionStatus(str, enum.Enum):
    """Статус транзакции в сети"""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class ChainTransaction(BaseModel):
    """Транзакция блокчейна в том виде, в котором ее отдает адаптер"""

    currency_id: str = Field(..., description="ID валюты")
    hash: str = Field(..., description="Hash транзакции")
    to_address: Optional[str] = Field(None, description="Адрес получателя")
    from_addresses: List[str] = Field(
        default_factory=list, description="Адреса отправителей"
    )
    amount: Decimal = Field(Decimal("0"), description="Сумма")
    fee: Optional[Decimal] = Field(None, description="Комиссия")
    fee_currency_id: Optional[str] = Field(None, description="Валюта комиссии")
    block_number: Optional[int] = Field(None, description="Высота блока")
    txout: int = Field(0, description="Индекс выхода транзакции")
    status: ChainTransactionStatus = Field(
        ChainTransactionStatus.PENDING, description="Статус в сети"
    )
    kind: Optional[str] = Field(None, description="Вид транзакции (если известен)")

    @property
    def is_pending(self) -> bool:
        return self.status == ChainTransactionStatus.PENDING

    @property
    def is_success(self) -> bool:
        return self.status == ChainTransactionStatus.SUCCESS

    @property
    def is_failed(self) -> bool:
        return self.status == ChainTransactionStatus.FAILED


class Block(BaseModel):
    """Блок с транзакциями в исходном порядке"""

    number: int = Field(..., description="Высота блока")
    hash: Optional[str] = Field(None, description="Hash блока")
    transactions: List[ChainTransaction] = Field(default_factory=list)

    def select(self, predicate) -> List[ChainTransaction]:
        return [tx for tx in self.transactions if predicate(tx)]
