"""
Тесты продвижения плеч сбора депозитов
"""

import unittest
from decimal import Decimal

from app.models.states import (
    DepositState,
    LegOutcome,
    TransactionKind,
    TransactionStatus,
)
from app.schemas.chain import ChainTransactionStatus
from app.services.collection_service import CollectionService
from app.services.transaction_service import TransactionService
from tests.base import (
    HOT_WALLET_ADDRESS,
    DatabaseTestCase,
    FakeAdapter,
    FetchingAdapter,
    chain_tx,
)


def leg(hash, status=ChainTransactionStatus.SUCCESS, fee="0.001", block_number=9):
    return chain_tx(
        hash,
        to_address=HOT_WALLET_ADDRESS,
        status=status,
        fee=Decimal(fee) if fee is not None else None,
        block_number=block_number,
    )


class TestCollectionService(DatabaseTestCase):
    """Тесты CollectionService"""

    def _service(self, adapter=None):
        return CollectionService(
            self.db, adapter or FakeAdapter(), TransactionService(self.db, self.blockchain)
        )

    def test_fee_leg_success_moves_deposit_to_fee_processing(self):
        deposit = self.create_deposit("0xdep", state=DepositState.FEE_COLLECTING)
        db_tx = self.create_ledger_tx("0xfee", deposit, kind=TransactionKind.TX_PREBUILD)

        results = self._service().advance([leg("0xfee")], [db_tx])

        self.assertEqual(results, [("0xfee", LegOutcome.CONFIRMED)])
        self.db.refresh(db_tx)
        self.db.refresh(deposit)
        self.assertEqual(db_tx.status, TransactionStatus.SUCCEED)
        self.assertEqual(db_tx.fee, Decimal("0.001"))
        self.assertEqual(db_tx.block_number, 9)
        self.assertEqual(deposit.state, DepositState.FEE_PROCESSING)

    def test_spread_completes_after_all_legs_in_any_order(self):
        spread = [{"hash": h, "status": "pending"} for h in ("0xa", "0xb", "0xc")]
        deposit = self.create_deposit("0xdep", state=DepositState.COLLECTING, spread=spread)
        db_txs = {h: self.create_ledger_tx(h, deposit) for h in ("0xa", "0xb", "0xc")}
        service = self._service()

        for txid in ("0xc", "0xa"):
            service.advance([leg(txid)], list(db_txs.values()))
            self.db.refresh(deposit)
            self.assertEqual(deposit.state, DepositState.COLLECTING)

        service.advance([leg("0xb")], list(db_txs.values()))
        self.db.refresh(deposit)
        self.assertEqual(deposit.state, DepositState.COLLECTED)
        self.assertTrue(all(item["status"] == "succeed" for item in deposit.spread))

    def test_failed_fee_leg_errors_deposit(self):
        deposit = self.create_deposit("0xdep", state=DepositState.FEE_COLLECTING)
        db_tx = self.create_ledger_tx("0xfee", deposit, kind=TransactionKind.TX_PREBUILD)

        results = self._service().advance(
            [leg("0xfee", status=ChainTransactionStatus.FAILED)], [db_tx]
        )

        self.assertEqual(results, [("0xfee", LegOutcome.FAILED)])
        self.db.refresh(deposit)
        self.db.refresh(db_tx)
        self.assertEqual(db_tx.status, TransactionStatus.FAILED)
        self.assertEqual(deposit.state, DepositState.ERRORED)
        self.assertEqual(deposit.error, {"message": "Fee collection transaction failed"})

    def test_failed_collection_leg_errors_deposit(self):
        spread = [{"hash": "0xa", "status": "pending"}]
        deposit = self.create_deposit("0xdep", state=DepositState.COLLECTING, spread=spread)
        db_tx = self.create_ledger_tx("0xa", deposit)

        self._service().advance([leg("0xa", status=ChainTransactionStatus.FAILED)], [db_tx])

        self.db.refresh(deposit)
        self.assertEqual(deposit.state, DepositState.ERRORED)
        self.assertEqual(deposit.error, {"message": "Collection transaction failed"})

    def test_unresolved_status_leaves_state(self):
        deposit = self.create_deposit("0xdep", state=DepositState.FEE_COLLECTING)
        db_tx = self.create_ledger_tx("0xfee", deposit, kind=TransactionKind.TX_PREBUILD)

        results = self._service().advance(
            [leg("0xfee", status=ChainTransactionStatus.PENDING)], [db_tx]
        )

        self.assertEqual(results, [("0xfee", LegOutcome.UNRESOLVED)])
        self.db.refresh(deposit)
        self.db.refresh(db_tx)
        self.assertEqual(db_tx.status, TransactionStatus.PENDING)
        self.assertEqual(db_tx.block_number, 9)
        self.assertEqual(deposit.state, DepositState.FEE_COLLECTING)

    def test_skips_deposit_outside_collection(self):
        deposit = self.create_deposit("0xdep", state=DepositState.PROCESSING)
        db_tx = self.create_ledger_tx("0xfee", deposit, kind=TransactionKind.TX_PREBUILD)

        results = self._service().advance([leg("0xfee")], [db_tx])

        self.assertEqual(results, [("0xfee", LegOutcome.SKIPPED)])
        self.db.refresh(db_tx)
        self.assertEqual(db_tx.status, TransactionStatus.PENDING)
        self.assertIsNone(db_tx.fee)

    def test_skips_leg_missing_from_block(self):
        deposit = self.create_deposit("0xdep", state=DepositState.FEE_COLLECTING)
        db_tx = self.create_ledger_tx("0xfee", deposit, kind=TransactionKind.TX_PREBUILD)

        results = self._service().advance([leg("0xother")], [db_tx])

        self.assertEqual(results, [("0xfee", LegOutcome.SKIPPED)])

    def test_refetches_leg_without_fee(self):
        deposit = self.create_deposit("0xdep", state=DepositState.FEE_COLLECTING)
        db_tx = self.create_ledger_tx("0xfee", deposit, kind=TransactionKind.TX_PREBUILD)
        adapter = FetchingAdapter(details={"0xfee": leg("0xfee", fee="0.002")})

        results = self._service(adapter).advance(
            [leg("0xfee", status=ChainTransactionStatus.PENDING, fee=None)], [db_tx]
        )

        self.assertEqual(results, [("0xfee", LegOutcome.CONFIRMED)])
        self.assertEqual(adapter.fetch_transaction_calls, 1)
        self.db.refresh(db_tx)
        self.assertEqual(db_tx.fee, Decimal("0.002"))

    def test_refetch_without_block_number_keeps_block_height(self):
        deposit = self.create_deposit("0xdep", state=DepositState.FEE_COLLECTING)
        db_tx = self.create_ledger_tx("0xfee", deposit, kind=TransactionKind.TX_PREBUILD)
        adapter = FetchingAdapter(details={"0xfee": leg("0xfee", block_number=None)})

        results = self._service(adapter).advance(
            [leg("0xfee", status=ChainTransactionStatus.PENDING, fee=None)], [db_tx]
        )

        self.assertEqual(results, [("0xfee", LegOutcome.CONFIRMED)])
        self.db.refresh(db_tx)
        self.assertEqual(db_tx.block_number, 9)

    def test_replay_is_noop(self):
        deposit = self.create_deposit("0xdep", state=DepositState.FEE_COLLECTING)
        db_tx = self.create_ledger_tx("0xfee", deposit, kind=TransactionKind.TX_PREBUILD)
        service = self._service()

        service.advance([leg("0xfee")], [db_tx])
        results = service.advance([leg("0xfee")], [db_tx])

        self.assertEqual(results, [])
        self.db.refresh(deposit)
        self.assertEqual(deposit.state, DepositState.FEE_PROCESSING)


if __name__ == "__main__":
    unittest.main()
