from __future__ import annotations

import unittest
from datetime import date
from unittest.mock import patch

from ledger_support import LedgerTestCase

from payables.config import settings
from payables.errors import ConflictError
from payables.models import Payment, PurchaseOrder
from payables.services.numbering_service import (
    PURCHASE_ORDER_PREFIX,
    DailySequenceNumberGenerator,
    RandomSuffixNumberGenerator,
    allocate_number,
    get_number_generator,
)
from payables.services.purchase_order_service import delete_purchase_order


class _CountingGenerator:
    def __init__(self, value: str) -> None:
        self.value = value
        self.calls = 0

    def candidate(self, db, *, column, prefix, on_date):
        self.calls += 1
        return self.value


class NumberingServiceTests(LedgerTestCase):
    def tearDown(self) -> None:
        get_number_generator.cache_clear()
        super().tearDown()

    def test_random_suffix_format(self) -> None:
        number = RandomSuffixNumberGenerator().candidate(
            self.db,
            column=PurchaseOrder.po_number,
            prefix='PO',
            on_date=date(2024, 3, 9),
        )
        self.assertRegex(number, r'^PO-20240309-\d{3}$')

    def test_daily_sequence_counts_per_day(self) -> None:
        vendor = self.make_vendor()
        first = self.make_purchase_order(vendor)
        second = self.make_purchase_order(vendor)

        self.assertEqual(first.po_number, 'PO-20240101-001')
        self.assertEqual(second.po_number, 'PO-20240101-002')

        next_day = DailySequenceNumberGenerator().candidate(
            self.db,
            column=PurchaseOrder.po_number,
            prefix=PURCHASE_ORDER_PREFIX,
            on_date=date(2024, 1, 2),
        )
        self.assertEqual(next_day, 'PO-20240102-001')

    def test_payment_and_order_sequences_are_independent(self) -> None:
        vendor = self.make_vendor()
        purchase_order = self.make_purchase_order(vendor)
        self.make_purchase_order(vendor)

        payment = self.pay(purchase_order, '10.00')

        self.assertEqual(payment.reference_number, 'PAY-20240101-001')

    def test_deleted_rows_keep_their_numbers(self) -> None:
        vendor = self.make_vendor()
        purchase_order = self.make_purchase_order(vendor)
        delete_purchase_order(self.db, purchase_order_id=purchase_order.id, actor_id=None, clock=self.clock)

        generator = _CountingGenerator(purchase_order.po_number)
        with self.assertRaises(ConflictError):
            allocate_number(
                self.db,
                column=PurchaseOrder.po_number,
                prefix=PURCHASE_ORDER_PREFIX,
                on_date=self.today,
                generator=generator,
                max_attempts=3,
            )

    def test_exhausted_attempts_raise_conflict(self) -> None:
        vendor = self.make_vendor()
        purchase_order = self.make_purchase_order(vendor)
        payment = self.pay(purchase_order, '10.00')
        generator = _CountingGenerator(payment.reference_number)

        with self.assertRaises(ConflictError) as ctx:
            allocate_number(
                self.db,
                column=Payment.reference_number,
                prefix='PAY',
                on_date=self.today,
                generator=generator,
                max_attempts=4,
            )

        self.assertEqual(generator.calls, 4)
        self.assertEqual(ctx.exception.field, 'reference_number')

    def test_free_candidate_is_returned(self) -> None:
        generator = _CountingGenerator('PO-20240101-123')

        number = allocate_number(
            self.db,
            column=PurchaseOrder.po_number,
            prefix=PURCHASE_ORDER_PREFIX,
            on_date=self.today,
            generator=generator,
        )

        self.assertEqual(number, 'PO-20240101-123')
        self.assertEqual(generator.calls, 1)

    def test_strategy_setting_selects_generator(self) -> None:
        get_number_generator.cache_clear()
        with patch.object(settings, 'number_strategy', 'sequence'):
            self.assertIsInstance(get_number_generator(), DailySequenceNumberGenerator)

        get_number_generator.cache_clear()
        with patch.object(settings, 'number_strategy', 'random'):
            self.assertIsInstance(get_number_generator(), RandomSuffixNumberGenerator)


if __name__ == '__main__':
    unittest.main()
