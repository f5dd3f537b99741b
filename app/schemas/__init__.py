# Pydantic schemas package

from .chain import Block, ChainTransaction, ChainTransactionStatus

__all__ = ["Block", "ChainTransaction", "ChainTransactionStatus"]
