from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal

from ledger_support import LedgerTestCase

from payables.errors import InvalidInputError, InvalidStateError, InvalidTransitionError, NotFoundError
from payables.models import PaymentTerms, PurchaseOrderStatus, VendorStatus
from payables.services.payment_service import delete_payment, void_payment
from payables.services.purchase_order_service import (
    LineItemInput,
    calculate_due_date,
    calculate_total_amount,
    can_transition,
    create_purchase_order,
    delete_purchase_order,
    derive_payment_status,
    get_purchase_order,
    get_purchase_order_detail,
    list_purchase_orders,
    recalculate_purchase_order_status,
    update_purchase_order_status,
)
from payables.services.vendor_service import delete_vendor


class PurchaseOrderMathTests(unittest.TestCase):
    def test_due_date_follows_payment_terms(self) -> None:
        self.assertEqual(calculate_due_date(date(2024, 1, 1), PaymentTerms.DAYS_30), date(2024, 1, 31))
        self.assertEqual(calculate_due_date(date(2024, 1, 1), PaymentTerms.DAYS_7), date(2024, 1, 8))
        self.assertEqual(calculate_due_date(date(2024, 2, 1), PaymentTerms.DAYS_60), date(2024, 4, 1))

    def test_unknown_terms_fall_back_to_thirty_days(self) -> None:
        self.assertEqual(calculate_due_date(date(2024, 1, 1), 'DAYS_90'), date(2024, 1, 31))
        self.assertEqual(calculate_due_date(date(2024, 1, 1), None), date(2024, 1, 31))

    def test_total_amount_sums_line_totals(self) -> None:
        items = [
            LineItemInput(description='Bolts', quantity=2, unit_price=Decimal('50.00')),
            LineItemInput(description='Nuts', quantity=3, unit_price=Decimal('50.00')),
        ]
        self.assertEqual(calculate_total_amount(items), Decimal('250.00'))

    def test_derive_payment_status(self) -> None:
        total = Decimal('1000.00')
        self.assertEqual(derive_payment_status(Decimal('0'), total), PurchaseOrderStatus.APPROVED)
        self.assertEqual(derive_payment_status(Decimal('0.01'), total), PurchaseOrderStatus.PARTIALLY_PAID)
        self.assertEqual(derive_payment_status(Decimal('1000.00'), total), PurchaseOrderStatus.FULLY_PAID)

    def test_manual_transition_table(self) -> None:
        self.assertTrue(can_transition(PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.APPROVED))
        self.assertTrue(can_transition(PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.PARTIALLY_PAID))
        self.assertTrue(can_transition(PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.FULLY_PAID))
        self.assertTrue(can_transition(PurchaseOrderStatus.PARTIALLY_PAID, PurchaseOrderStatus.FULLY_PAID))

        self.assertFalse(can_transition(PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.PARTIALLY_PAID))
        self.assertFalse(can_transition(PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.DRAFT))
        self.assertFalse(can_transition(PurchaseOrderStatus.PARTIALLY_PAID, PurchaseOrderStatus.APPROVED))
        for status in PurchaseOrderStatus:
            self.assertFalse(can_transition(PurchaseOrderStatus.FULLY_PAID, status))


class PurchaseOrderServiceTests(LedgerTestCase):
    def test_create_purchase_order_derives_totals_and_due_date(self) -> None:
        vendor = self.make_vendor(payment_terms=PaymentTerms.DAYS_30)

        purchase_order = create_purchase_order(
            self.db,
            vendor_id=vendor.id,
            items=[
                LineItemInput(description='Bolts', quantity=2, unit_price=Decimal('50.00')),
                LineItemInput(description='Nuts', quantity=3, unit_price=Decimal('50.00')),
            ],
            actor_id='buyer',
            clock=self.clock,
            number_generator=self.numbers,
        )

        self.assertEqual(purchase_order.status, PurchaseOrderStatus.DRAFT)
        self.assertEqual(purchase_order.po_date, date(2024, 1, 1))
        self.assertEqual(purchase_order.due_date, date(2024, 1, 31))
        self.assertEqual(purchase_order.total_amount, Decimal('250.00'))
        self.assertEqual(purchase_order.po_number, 'PO-20240101-001')
        self.assertEqual([item.description for item in purchase_order.items], ['Bolts', 'Nuts'])
        self.assertEqual(purchase_order.items[1].line_total, Decimal('150.00'))

    def test_explicit_po_date_drives_due_date(self) -> None:
        vendor = self.make_vendor(payment_terms=PaymentTerms.DAYS_15)

        purchase_order = self.make_purchase_order(vendor, po_date=date(2023, 12, 20))

        self.assertEqual(purchase_order.due_date, date(2024, 1, 4))

    def test_create_purchase_order_can_start_approved(self) -> None:
        vendor = self.make_vendor()

        purchase_order = self.make_purchase_order(vendor, status=PurchaseOrderStatus.APPROVED)

        self.assertEqual(purchase_order.status, PurchaseOrderStatus.APPROVED)

    def test_create_purchase_order_rejects_paid_initial_status(self) -> None:
        vendor = self.make_vendor()

        with self.assertRaises(InvalidTransitionError) as ctx:
            self.make_purchase_order(vendor, status=PurchaseOrderStatus.FULLY_PAID)
        self.assertEqual(ctx.exception.current, PurchaseOrderStatus.DRAFT)
        self.assertEqual(ctx.exception.requested, PurchaseOrderStatus.FULLY_PAID)

    def test_create_purchase_order_for_inactive_vendor_fails(self) -> None:
        vendor = self.make_vendor(status=VendorStatus.INACTIVE)

        with self.assertRaises(InvalidStateError):
            self.make_purchase_order(vendor)

    def test_create_purchase_order_for_missing_vendor_fails(self) -> None:
        vendor = self.make_vendor()
        delete_vendor(self.db, vendor_id=vendor.id, actor_id=None, clock=self.clock)

        with self.assertRaises(NotFoundError):
            self.make_purchase_order(vendor)

    def test_line_item_validation(self) -> None:
        vendor = self.make_vendor()
        bad_batches = [
            [],
            [LineItemInput(description='', quantity=1, unit_price=Decimal('1.00'))],
            [LineItemInput(description='Bolts', quantity=0, unit_price=Decimal('1.00'))],
            [LineItemInput(description='Bolts', quantity=1, unit_price=Decimal('0.00'))],
            [LineItemInput(description='Bolts', quantity=1, unit_price=Decimal('0.005'))],
        ]
        for items in bad_batches:
            with self.subTest(items=items):
                with self.assertRaises(InvalidInputError):
                    create_purchase_order(
                        self.db,
                        vendor_id=vendor.id,
                        items=items,
                        actor_id=None,
                        clock=self.clock,
                        number_generator=self.numbers,
                    )

    def test_minimum_unit_price_is_accepted(self) -> None:
        vendor = self.make_vendor()

        purchase_order = self.make_purchase_order(vendor, '0.01')

        self.assertEqual(purchase_order.total_amount, Decimal('0.01'))

    def test_manual_status_update_follows_table(self) -> None:
        vendor = self.make_vendor()
        purchase_order = self.make_purchase_order(vendor, status=PurchaseOrderStatus.DRAFT)

        with self.assertRaises(InvalidTransitionError) as ctx:
            update_purchase_order_status(
                self.db,
                purchase_order_id=purchase_order.id,
                new_status=PurchaseOrderStatus.FULLY_PAID,
                actor_id=None,
            )
        self.assertEqual(str(ctx.exception), 'Invalid status transition from Draft to FullyPaid')

        approved = update_purchase_order_status(
            self.db,
            purchase_order_id=purchase_order.id,
            new_status='Approved',
            actor_id='manager',
        )
        self.assertEqual(approved.status, PurchaseOrderStatus.APPROVED)
        self.assertEqual(approved.updated_by, 'manager')

    def test_fully_paid_is_terminal_for_manual_changes(self) -> None:
        vendor = self.make_vendor()
        purchase_order = self.make_purchase_order(vendor, '100.00')
        self.pay(purchase_order, '100.00')
        self.assertEqual(purchase_order.status, PurchaseOrderStatus.FULLY_PAID)

        for status in PurchaseOrderStatus:
            with self.subTest(status=status):
                with self.assertRaises(InvalidTransitionError):
                    update_purchase_order_status(
                        self.db,
                        purchase_order_id=purchase_order.id,
                        new_status=status,
                        actor_id=None,
                    )

    def test_unknown_status_value_is_invalid_input(self) -> None:
        vendor = self.make_vendor()
        purchase_order = self.make_purchase_order(vendor)

        with self.assertRaises(InvalidInputError):
            update_purchase_order_status(
                self.db,
                purchase_order_id=purchase_order.id,
                new_status='Cancelled',
                actor_id=None,
            )

    def test_recalculation_follows_valid_payments(self) -> None:
        vendor = self.make_vendor()
        purchase_order = self.make_purchase_order(vendor, '1000.00')

        first = self.pay(purchase_order, '400.00')
        self.assertEqual(purchase_order.status, PurchaseOrderStatus.PARTIALLY_PAID)

        self.pay(purchase_order, '600.00')
        self.assertEqual(purchase_order.status, PurchaseOrderStatus.FULLY_PAID)

        void_payment(self.db, payment_id=first.id, actor_id=None, clock=self.clock)
        self.assertEqual(purchase_order.status, PurchaseOrderStatus.PARTIALLY_PAID)

    def test_recalculation_leaves_draft_alone(self) -> None:
        vendor = self.make_vendor()
        purchase_order = self.make_purchase_order(vendor, status=PurchaseOrderStatus.DRAFT)

        status = recalculate_purchase_order_status(self.db, purchase_order_id=purchase_order.id)

        self.assertEqual(status, PurchaseOrderStatus.DRAFT)
        self.assertEqual(purchase_order.status, PurchaseOrderStatus.DRAFT)

    def test_recalculation_of_deleted_order_is_a_no_op(self) -> None:
        vendor = self.make_vendor()
        purchase_order = self.make_purchase_order(vendor)
        delete_purchase_order(self.db, purchase_order_id=purchase_order.id, actor_id=None, clock=self.clock)

        self.assertIsNone(recalculate_purchase_order_status(self.db, purchase_order_id=purchase_order.id))

    def test_detail_lists_voided_but_not_deleted_payments(self) -> None:
        vendor = self.make_vendor()
        purchase_order = self.make_purchase_order(vendor, '1000.00')
        older = self.pay(purchase_order, '100.00', payment_date=date(2024, 1, 2))
        voided = self.pay(purchase_order, '200.00', payment_date=date(2024, 1, 3))
        deleted = self.pay(purchase_order, '300.00', payment_date=date(2024, 1, 4))
        void_payment(self.db, payment_id=voided.id, actor_id=None, clock=self.clock)
        delete_payment(self.db, payment_id=deleted.id, actor_id=None, clock=self.clock)

        detail = get_purchase_order_detail(self.db, purchase_order_id=purchase_order.id)

        self.assertEqual([payment.id for payment in detail.payment_history], [voided.id, older.id])
        self.assertEqual(detail.total_paid, Decimal('100.00'))
        self.assertEqual(detail.outstanding_amount, Decimal('900.00'))

    def test_list_purchase_orders_filters_and_summarises(self) -> None:
        acme = self.make_vendor('Acme Supplies')
        bolt = self.make_vendor('Bolt Hardware')
        paid = self.make_purchase_order(acme, '500.00', po_date=date(2024, 1, 5))
        self.make_purchase_order(acme, '250.00', status=PurchaseOrderStatus.DRAFT, po_date=date(2024, 2, 1))
        self.make_purchase_order(bolt, '75.00', po_date=date(2024, 1, 10))
        self.pay(paid, '200.00')

        by_vendor = list_purchase_orders(self.db, vendor_id=acme.id)
        self.assertEqual(by_vendor.total, 2)

        approved = list_purchase_orders(self.db, status=[PurchaseOrderStatus.PARTIALLY_PAID])
        self.assertEqual(approved.total, 1)
        summary = approved.items[0]
        self.assertEqual(summary.purchase_order.id, paid.id)
        self.assertEqual(summary.total_paid, Decimal('200.00'))
        self.assertEqual(summary.outstanding_amount, Decimal('300.00'))

        january = list_purchase_orders(self.db, start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        self.assertEqual(january.total, 2)

        searched = list_purchase_orders(self.db, search=paid.po_number)
        self.assertEqual([row.purchase_order.id for row in searched.items], [paid.id])

    def test_purchase_order_search_treats_wildcards_literally(self) -> None:
        vendor = self.make_vendor()
        self.make_purchase_order(vendor)
        self.make_purchase_order(vendor)

        self.assertEqual(list_purchase_orders(self.db, search='%').total, 0)
        self.assertEqual(list_purchase_orders(self.db, search='_').total, 0)
        self.assertEqual(list_purchase_orders(self.db, search='po-20240101').total, 2)

    def test_deleted_purchase_order_is_hidden(self) -> None:
        vendor = self.make_vendor()
        purchase_order = self.make_purchase_order(vendor)

        delete_purchase_order(self.db, purchase_order_id=purchase_order.id, actor_id='u-1', clock=self.clock)

        with self.assertRaises(NotFoundError):
            get_purchase_order(self.db, purchase_order_id=purchase_order.id)
        self.assertEqual(list_purchase_orders(self.db).total, 0)


if __name__ == '__main__':
    unittest.main()
