"""
Тесты разделения кандидатов в депозиты
"""

import unittest

from app.models.states import DepositState, ReferenceType
from app.services.transaction_service import TransactionService
from tests.base import DatabaseTestCase, chain_tx


class TestTransactionService(DatabaseTestCase):
    """Тесты TransactionService"""

    def setUp(self):
        super().setUp()
        self.service = TransactionService(self.db, self.blockchain)

    def test_partition_splits_by_ledger_membership(self):
        deposit = self.create_deposit("0xdep", state=DepositState.COLLECTING)
        self.create_ledger_tx("0xcollect", deposit)

        candidates = self.service.partition(
            [chain_tx("0xnew"), chain_tx("0xcollect"), chain_tx("0xnew2")]
        )

        self.assertEqual([tx.hash for tx in candidates.new], ["0xnew", "0xnew2"])
        self.assertEqual([tx.hash for tx in candidates.existing], ["0xcollect"])
        self.assertEqual([t.txid for t in candidates.existing_db_txs], ["0xcollect"])

    def test_partition_of_empty_list(self):
        candidates = self.service.partition([])
        self.assertEqual(candidates.new, [])
        self.assertEqual(candidates.existing, [])
        self.assertEqual(candidates.existing_db_txs, [])

    def test_reference_resolves_deposit_and_withdrawal(self):
        deposit = self.create_deposit("0xdep")
        withdrawal = self.create_withdrawal("0xwd")
        deposit_tx = self.create_ledger_tx("0xcollect", deposit)
        withdrawal_tx = self.create_ledger_tx("0xwd", withdrawal)

        self.assertEqual(self.service.reference(deposit_tx).id, deposit.id)
        self.assertEqual(self.service.reference(withdrawal_tx).id, withdrawal.id)

    def test_is_deposit_collection_tx(self):
        deposit = self.create_deposit("0xdep")
        withdrawal = self.create_withdrawal("0xwd")
        self.create_ledger_tx("0xcollect", deposit)
        self.create_ledger_tx("0xwd", withdrawal)

        self.assertTrue(self.service.is_deposit_collection_tx("0xcollect"))
        self.assertFalse(self.service.is_deposit_collection_tx("0xwd"))
        self.assertFalse(self.service.is_deposit_collection_tx("0xunknown"))
        self.assertIsNotNone(
            self.service.get_transaction_by_txid("0xwd", ReferenceType.WITHDRAWAL)
        )


if __name__ == "__main__":
    unittest.main()
