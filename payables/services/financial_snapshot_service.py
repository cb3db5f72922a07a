"""Shared vendor -> purchase order -> valid payment aggregation.

Every balance shown by the vendor detail and the analytics reports comes from
here. Only live purchase orders count, and only payments that are neither
voided nor deleted count towards the paid side.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payables.models import Payment, PurchaseOrder, Vendor

ZERO = Decimal('0')
CENT = Decimal('0.01')


def to_money(value: Decimal | int | float | None) -> Decimal:
    if value is None:
        return ZERO.quantize(CENT)
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FinancialSnapshot:
    purchase_order_count: int = 0
    total_po_amount: Decimal = ZERO
    total_paid_amount: Decimal = ZERO

    @property
    def outstanding_amount(self) -> Decimal:
        return self.total_po_amount - self.total_paid_amount

    def plus(self, other: FinancialSnapshot) -> FinancialSnapshot:
        return FinancialSnapshot(
            purchase_order_count=self.purchase_order_count + other.purchase_order_count,
            total_po_amount=self.total_po_amount + other.total_po_amount,
            total_paid_amount=self.total_paid_amount + other.total_paid_amount,
        )


def paid_totals_by_purchase_order(
    db: Session,
    *,
    purchase_order_ids: Iterable[uuid.UUID] | None = None,
) -> dict[uuid.UUID, Decimal]:
    stmt = (
        select(Payment.purchase_order_id, func.sum(Payment.amount_paid))
        .where(Payment.is_valid())
        .group_by(Payment.purchase_order_id)
    )
    if purchase_order_ids is not None:
        ids = list(purchase_order_ids)
        if not ids:
            return {}
        stmt = stmt.where(Payment.purchase_order_id.in_(ids))
    return {po_id: Decimal(total or 0) for po_id, total in db.execute(stmt).all()}


def paid_total_for_purchase_order(db: Session, purchase_order_id: uuid.UUID) -> Decimal:
    return paid_totals_by_purchase_order(db, purchase_order_ids=[purchase_order_id]).get(purchase_order_id, ZERO)


def vendor_snapshots(
    db: Session,
    *,
    vendor_ids: Iterable[uuid.UUID] | None = None,
) -> dict[uuid.UUID, FinancialSnapshot]:
    """Snapshot per live vendor; vendors without purchase orders get an empty snapshot."""
    vendor_stmt = select(Vendor.id).where(Vendor.is_live())
    if vendor_ids is not None:
        vendor_stmt = vendor_stmt.where(Vendor.id.in_(list(vendor_ids)))
    snapshots = {vendor_id: FinancialSnapshot() for vendor_id in db.execute(vendor_stmt).scalars().all()}
    if not snapshots:
        return snapshots

    po_rows = db.execute(
        select(PurchaseOrder.id, PurchaseOrder.vendor_id, PurchaseOrder.total_amount).where(
            PurchaseOrder.is_live(),
            PurchaseOrder.vendor_id.in_(list(snapshots)),
        )
    ).all()
    paid_by_po = paid_totals_by_purchase_order(db, purchase_order_ids=[row.id for row in po_rows])

    for row in po_rows:
        snapshots[row.vendor_id] = snapshots[row.vendor_id].plus(
            FinancialSnapshot(
                purchase_order_count=1,
                total_po_amount=Decimal(row.total_amount),
                total_paid_amount=paid_by_po.get(row.id, ZERO),
            )
        )
    return snapshots


def vendor_snapshot(db: Session, vendor_id: uuid.UUID) -> FinancialSnapshot:
    return vendor_snapshots(db, vendor_ids=[vendor_id]).get(vendor_id, FinancialSnapshot())


def combined_snapshot(snapshots: Iterable[FinancialSnapshot]) -> FinancialSnapshot:
    total = FinancialSnapshot()
    for snapshot in snapshots:
        total = total.plus(snapshot)
    return total
