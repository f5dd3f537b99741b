"""
Тесты приема депозитов
"""

import unittest
from decimal import Decimal

from app.models.states import DepositState, TransactionKind
from app.schemas.chain import ChainTransactionStatus
from tests.base import (
    HOT_WALLET_ADDRESS,
    DatabaseTestCase,
    FakeAdapter,
    FetchingAdapter,
    chain_tx,
)


class TestDepositService(DatabaseTestCase):
    """Тесты DepositService.update_or_create"""

    def _service(self, adapter=None, latest=20):
        adapter = adapter or FakeAdapter()
        adapter.latest = latest
        return self.make_service(adapter).deposit_service

    def test_creates_and_accepts_confirmed_deposit(self):
        deposit = self._service().update_or_create(chain_tx("0x01", block_number=9))
        self.db.commit()

        self.assertIsNotNone(deposit)
        self.assertEqual(deposit.state, DepositState.ACCEPTED)
        self.assertEqual(deposit.member_id, 42)
        self.assertEqual(deposit.amount, Decimal("1.5"))
        self.assertEqual(deposit.block_number, 9)
        self.assertEqual(len(self.deposits()), 1)

    def test_skips_amount_below_minimum(self):
        result = self._service().update_or_create(chain_tx("0x01", amount="0.25"))
        self.db.commit()

        self.assertIsNone(result)
        self.assertEqual(self.deposits(), [])

    def test_amount_equal_to_minimum_is_accepted(self):
        result = self._service().update_or_create(chain_tx("0x01", amount="0.5"))
        self.assertIsNotNone(result)

    def test_skips_untracked_currency(self):
        result = self._service().update_or_create(chain_tx("0x01", currency_id="btc"))
        self.assertIsNone(result)
        self.assertEqual(self.deposits(), [])

    def test_pending_transaction_is_deferred(self):
        pending = chain_tx("0x01", status=ChainTransactionStatus.PENDING)
        adapter = FetchingAdapter(details={"0x01": pending})

        result = self._service(adapter).update_or_create(pending)

        self.assertIsNone(result)
        self.assertEqual(adapter.fetch_transaction_calls, 1)
        self.assertEqual(self.deposits(), [])

    def test_pending_transaction_refetched_as_success(self):
        adapter = FetchingAdapter(details={"0x01": chain_tx("0x01")})

        result = self._service(adapter).update_or_create(
            chain_tx("0x01", status=ChainTransactionStatus.PENDING)
        )

        self.assertIsNotNone(result)
        self.assertEqual(result.state, DepositState.ACCEPTED)

    def test_refetch_without_block_number_keeps_block_height(self):
        adapter = FetchingAdapter(details={"0x01": chain_tx("0x01", block_number=None)})

        result = self._service(adapter).update_or_create(
            chain_tx("0x01", status=ChainTransactionStatus.PENDING, block_number=9)
        )
        self.db.commit()

        self.assertIsNotNone(result)
        self.assertEqual(result.block_number, 9)
        self.assertEqual(result.state, DepositState.ACCEPTED)

    def test_skips_address_without_owner(self):
        result = self._service().update_or_create(
            chain_tx("0x01", to_address=HOT_WALLET_ADDRESS)
        )
        self.assertIsNone(result)
        self.assertEqual(self.deposits(), [])

    def test_skips_known_collection_transaction(self):
        deposit = self.create_deposit("0xdep", state=DepositState.COLLECTING)
        self.create_ledger_tx("0xcollect", deposit, kind=TransactionKind.TX)

        result = self._service().update_or_create(chain_tx("0xcollect"))

        self.assertIsNone(result)
        self.assertEqual(len(self.deposits()), 1)

    def test_resolves_from_addresses(self):
        adapter = FetchingAdapter(sources={"0x01": ["0xsender"]})

        deposit = self._service(adapter).update_or_create(chain_tx("0x01"))

        self.assertEqual(deposit.from_addresses, ["0xsender"])

    def test_keeps_given_from_addresses(self):
        adapter = FetchingAdapter(sources={"0x01": ["0xother"]})

        deposit = self._service(adapter).update_or_create(
            chain_tx("0x01", from_addresses=["0xsender"])
        )

        self.assertEqual(deposit.from_addresses, ["0xsender"])

    def test_not_enough_confirmations(self):
        result = self._service(latest=10).update_or_create(chain_tx("0x01", block_number=9))
        self.db.commit()

        self.assertIsNone(result)
        deposits = self.deposits()
        self.assertEqual(len(deposits), 1)
        self.assertEqual(deposits[0].state, DepositState.SUBMITTED)

    def test_accepted_only_once(self):
        service = self._service()
        first = service.update_or_create(chain_tx("0x01"))
        second = service.update_or_create(chain_tx("0x01"))
        self.db.commit()

        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(len(self.deposits()), 1)

    def test_block_number_corrected_in_place(self):
        service = self._service(latest=10)
        service.update_or_create(chain_tx("0x01", block_number=9))
        self.db.commit()

        service.update_or_create(chain_tx("0x01", block_number=8))
        self.db.commit()

        deposits = self.deposits()
        self.assertEqual(len(deposits), 1)
        self.assertEqual(deposits[0].block_number, 8)
        self.assertEqual(deposits[0].state, DepositState.ACCEPTED)

    def test_separate_outputs_create_separate_deposits(self):
        service = self._service()
        service.update_or_create(chain_tx("0x01", txout=0))
        service.update_or_create(chain_tx("0x01", txout=1))
        self.db.commit()

        self.assertEqual([d.txout for d in self.deposits()], [0, 1])

    def test_process_moves_accepted_deposit_to_processing(self):
        service = self._service()
        deposit = service.update_or_create(chain_tx("0x01"))
        self.db.commit()

        self.assertTrue(service.process(deposit))
        self.assertFalse(service.process(deposit))
        self.db.refresh(deposit)
        self.assertEqual(deposit.state, DepositState.PROCESSING)


if __name__ == "__main__":
    unittest.main()
