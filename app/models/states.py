"""
Конечные автоматы состояний депозитов, выводов и транзакций леджера

Все состояния и события заданы закрытыми перечислениями. Функция
transition() определена для любой пары (состояние, событие): для
недопустимой пары она возвращает None, и запись остается без изменений.
"""

import enum
from typing import Dict, Optional, Tuple


class DepositState(str, enum.Enum):
    """Состояния депозита"""

    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    PROCESSING = "processing"
    FEE_COLLECTING = "fee_collecting"
    FEE_PROCESSING = "fee_processing"
    COLLECTING = "collecting"
    COLLECTED = "collected"
    SKIPPED = "skipped"
    ERRORED = "errored"


class DepositEvent(str, enum.Enum):
    """События депозита"""

    ACCEPT = "accept"
    PROCESS = "process"
    SKIP = "skip"
    COLLECT_FEE = "collect_fee"
    FEE_PROCESS = "fee_process"
    COLLECT = "collect"
    DISPATCH = "dispatch"
    ERR = "err"


class WithdrawalState(str, enum.Enum):
    """Состояния вывода (создается выше по потоку сразу в confirming)"""

    CONFIRMING = "confirming"
    SUCCEED = "succeed"
    FAILED = "failed"


class WithdrawalEvent(str, enum.Enum):
    SUCCESS = "success"
    FAIL = "fail"


class TransactionStatus(str, enum.Enum):
    """Статус транзакции леджера"""

    PENDING = "pending"
    SUCCEED = "succeed"
    FAILED = "failed"


class TransactionEvent(str, enum.Enum):
    CONFIRM = "confirm"
    FAIL = "fail"


class TransactionKind(str, enum.Enum):
    """Вид транзакции леджера"""

    TX = "tx"  # сбор средств с депозитного адреса
    TX_PREBUILD = "tx_prebuild"  # предварительная отправка комиссии


class ReferenceType(str, enum.Enum):
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"


class LegOutcome(str, enum.Enum):
    """Результат обработки одного плеча сбора депозита"""

    SKIPPED = "skipped"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    # Сеть не вернула ни успеха, ни ошибки: решение откладывается до следующего блока
    UNRESOLVED = "unresolved"


# Состояния депозита, в которых ожидаются транзакции сбора
COLLECTION_STATES = frozenset({DepositState.FEE_COLLECTING, DepositState.COLLECTING})

# Терминальные состояния депозита
DEPOSIT_TERMINAL_STATES = frozenset(
    {DepositState.COLLECTED, DepositState.SKIPPED, DepositState.ERRORED}
)

TransitionTable = Dict[Tuple[enum.Enum, enum.Enum], enum.Enum]

DEPOSIT_TRANSITIONS: TransitionTable = {
    (DepositState.SUBMITTED, DepositEvent.ACCEPT): DepositState.ACCEPTED,
    (DepositState.ACCEPTED, DepositEvent.PROCESS): DepositState.PROCESSING,
    (DepositState.PROCESSING, DepositEvent.SKIP): DepositState.SKIPPED,
    (DepositState.PROCESSING, DepositEvent.COLLECT_FEE): DepositState.FEE_COLLECTING,
    (DepositState.FEE_COLLECTING, DepositEvent.FEE_PROCESS): DepositState.FEE_PROCESSING,
    (DepositState.PROCESSING, DepositEvent.COLLECT): DepositState.COLLECTING,
    (DepositState.FEE_PROCESSING, DepositEvent.COLLECT): DepositState.COLLECTING,
    (DepositState.COLLECTING, DepositEvent.DISPATCH): DepositState.COLLECTED,
    (DepositState.PROCESSING, DepositEvent.ERR): DepositState.ERRORED,
    (DepositState.FEE_COLLECTING, DepositEvent.ERR): DepositState.ERRORED,
    (DepositState.FEE_PROCESSING, DepositEvent.ERR): DepositState.ERRORED,
    (DepositState.COLLECTING, DepositEvent.ERR): DepositState.ERRORED,
}

WITHDRAWAL_TRANSITIONS: TransitionTable = {
    (WithdrawalState.CONFIRMING, WithdrawalEvent.SUCCESS): WithdrawalState.SUCCEED,
    (WithdrawalState.CONFIRMING, WithdrawalEvent.FAIL): WithdrawalState.FAILED,
}

TRANSACTION_TRANSITIONS: TransitionTable = {
    (TransactionStatus.PENDING, TransactionEvent.CONFIRM): TransactionStatus.SUCCEED,
    (TransactionStatus.PENDING, TransactionEvent.FAIL): TransactionStatus.FAILED,
    # Повторное подтверждение при повторной обработке блока
    (TransactionStatus.SUCCEED, TransactionEvent.CONFIRM): TransactionStatus.SUCCEED,
    (TransactionStatus.FAILED, TransactionEvent.FAIL): TransactionStatus.FAILED,
}


def transition(
    table: TransitionTable, state: enum.Enum, event: enum.Enum
) -> Optional[enum.Enum]:
    """
    Вычисление следующего состояния

    Args:
        table: Таблица переходов автомата
        state: Текущее состояние
        event: Событие

    Returns:
        Новое состояние или None, если переход недопустим
    """
    return table.get((state, event))


class StateMachineMixin:
    """Примесь для моделей с конечным автоматом состояний"""

    __state_attribute__ = "state"
    __transitions__ = {}

    def can_fire(self, event: enum.Enum) -> bool:
        current = getattr(self, self.__state_attribute__)
        return transition(self.__transitions__, current, event) is not None

    def fire(self, event: enum.Enum) -> bool:
        """
        Применение события к записи

        Returns:
            True если состояние изменилось или переход разрешен как повторный
        """
        current = getattr(self, self.__state_attribute__)
        target = transition(self.__transitions__, current, event)
        if target is None:
            return False
        setattr(self, self.__state_attribute__, target)
        return True
