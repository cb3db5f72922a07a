from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from payables.clock import Clock, system_clock
from payables.models import Payment, PurchaseOrder, PurchaseOrderStatus, Vendor, VendorStatus
from payables.services.financial_snapshot_service import (
    ZERO,
    combined_snapshot,
    paid_totals_by_purchase_order,
    to_money,
    vendor_snapshots,
)

AGING_STATUSES = (PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.PARTIALLY_PAID)

# (key, label, upper bound in days overdue; None means open-ended)
AGING_BUCKETS: tuple[tuple[str, str, int | None], ...] = (
    ('current', '0-30 days', 30),
    ('days_31_60', '31-60 days', 60),
    ('days_61_90', '61-90 days', 90),
    ('over_90', '90+ days', None),
)

TREND_MONTHS = 6


@dataclass(frozen=True)
class VendorOutstandingRow:
    vendor_id: uuid.UUID
    vendor_name: str
    email: str
    status: VendorStatus
    total_purchase_orders: int
    total_po_amount: Decimal
    total_paid_amount: Decimal
    outstanding_amount: Decimal


@dataclass(frozen=True)
class VendorOutstandingReport:
    total_vendors: int
    total_outstanding: Decimal
    total_paid: Decimal
    vendors_with_outstanding: int
    vendors: list[VendorOutstandingRow]


@dataclass(frozen=True)
class AgingPurchaseOrderRow:
    purchase_order_id: uuid.UUID
    po_number: str
    vendor_name: str
    total_amount: Decimal
    outstanding: Decimal
    due_date: date
    days_overdue: int


@dataclass(frozen=True)
class AgingBucket:
    key: str
    label: str
    amount: Decimal
    count: int
    purchase_orders: list[AgingPurchaseOrderRow]


@dataclass(frozen=True)
class PaymentAgingReport:
    as_of: date
    total_outstanding: Decimal
    total_purchase_orders: int
    buckets: list[AgingBucket]


@dataclass(frozen=True)
class MonthlyPaymentTrend:
    month: str
    total_amount: Decimal
    payment_count: int
    average_payment: Decimal
    by_method: dict[str, Decimal]


@dataclass(frozen=True)
class PaymentTrendsReport:
    start_date: date
    end_date: date
    total_payments: Decimal
    total_transactions: int
    average_monthly: Decimal
    trends: list[MonthlyPaymentTrend]


@dataclass(frozen=True)
class DashboardSummary:
    total_vendors: int
    active_vendors: int
    total_purchase_orders: int
    purchase_orders_by_status: dict[str, int]
    total_payments: int
    total_payment_amount: Decimal
    total_po_amount: Decimal
    total_paid: Decimal
    total_outstanding: Decimal


def build_vendor_outstanding_report(db: Session) -> VendorOutstandingReport:
    vendors = db.execute(select(Vendor).where(Vendor.is_live())).scalars().all()
    snapshots = vendor_snapshots(db, vendor_ids=[vendor.id for vendor in vendors])

    rows: list[VendorOutstandingRow] = []
    for vendor in vendors:
        snapshot = snapshots[vendor.id]
        rows.append(
            VendorOutstandingRow(
                vendor_id=vendor.id,
                vendor_name=vendor.name,
                email=vendor.email,
                status=vendor.status,
                total_purchase_orders=snapshot.purchase_order_count,
                total_po_amount=to_money(snapshot.total_po_amount),
                total_paid_amount=to_money(snapshot.total_paid_amount),
                outstanding_amount=to_money(snapshot.outstanding_amount),
            )
        )
    rows.sort(key=lambda row: (-row.outstanding_amount, row.vendor_name.lower()))

    return VendorOutstandingReport(
        total_vendors=len(rows),
        total_outstanding=to_money(sum((row.outstanding_amount for row in rows), ZERO)),
        total_paid=to_money(sum((row.total_paid_amount for row in rows), ZERO)),
        vendors_with_outstanding=sum(1 for row in rows if row.outstanding_amount > 0),
        vendors=rows,
    )


def aging_bucket_key(days_overdue: int) -> str:
    for key, _label, upper_bound in AGING_BUCKETS:
        if upper_bound is None or days_overdue <= upper_bound:
            return key
    return AGING_BUCKETS[-1][0]


def build_payment_aging_report(db: Session, *, clock: Clock = system_clock) -> PaymentAgingReport:
    today = clock.today()
    purchase_orders = db.execute(
        select(PurchaseOrder)
        .where(PurchaseOrder.is_live(), PurchaseOrder.status.in_(AGING_STATUSES))
        .options(selectinload(PurchaseOrder.vendor))
        .order_by(PurchaseOrder.due_date.asc(), PurchaseOrder.po_number.asc())
    ).scalars().all()
    paid_by_po = paid_totals_by_purchase_order(db, purchase_order_ids=[po.id for po in purchase_orders])

    amounts: dict[str, Decimal] = {key: ZERO for key, _label, _bound in AGING_BUCKETS}
    rows_by_bucket: dict[str, list[AgingPurchaseOrderRow]] = {key: [] for key, _label, _bound in AGING_BUCKETS}

    for po in purchase_orders:
        outstanding = Decimal(po.total_amount) - paid_by_po.get(po.id, ZERO)
        if outstanding <= 0:
            continue
        # Bucket on the raw value; the row shows not-yet-due orders as 0 days overdue.
        days_overdue = (today - po.due_date).days
        key = aging_bucket_key(days_overdue)
        amounts[key] += outstanding
        rows_by_bucket[key].append(
            AgingPurchaseOrderRow(
                purchase_order_id=po.id,
                po_number=po.po_number,
                vendor_name=po.vendor.name,
                total_amount=to_money(po.total_amount),
                outstanding=to_money(outstanding),
                due_date=po.due_date,
                days_overdue=max(0, days_overdue),
            )
        )

    buckets = [
        AgingBucket(
            key=key,
            label=label,
            amount=to_money(amounts[key]),
            count=len(rows_by_bucket[key]),
            purchase_orders=rows_by_bucket[key],
        )
        for key, label, _bound in AGING_BUCKETS
    ]
    return PaymentAgingReport(
        as_of=today,
        total_outstanding=to_money(sum((bucket.amount for bucket in buckets), ZERO)),
        total_purchase_orders=sum(bucket.count for bucket in buckets),
        buckets=buckets,
    )


def trend_window_start(today: date, months: int = TREND_MONTHS) -> date:
    month_index = today.year * 12 + (today.month - 1) - months
    return date(month_index // 12, month_index % 12 + 1, 1)


def build_payment_trends_report(db: Session, *, clock: Clock = system_clock) -> PaymentTrendsReport:
    today = clock.today()
    start = trend_window_start(today)
    payments = db.execute(
        select(Payment.payment_date, Payment.amount_paid, Payment.payment_method)
        .where(Payment.is_valid(), Payment.payment_date >= start, Payment.payment_date <= today)
        .order_by(Payment.payment_date.asc())
    ).all()

    totals: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    methods: dict[str, dict[str, Decimal]] = {}
    for payment_date, amount_paid, payment_method in payments:
        month = f'{payment_date.year:04d}-{payment_date.month:02d}'
        amount = Decimal(amount_paid)
        totals[month] = totals.get(month, ZERO) + amount
        counts[month] = counts.get(month, 0) + 1
        by_method = methods.setdefault(month, {})
        by_method[payment_method.value] = by_method.get(payment_method.value, ZERO) + amount

    trends = [
        MonthlyPaymentTrend(
            month=month,
            total_amount=to_money(totals[month]),
            payment_count=counts[month],
            average_payment=to_money(totals[month] / counts[month]),
            by_method={method: to_money(amount) for method, amount in sorted(methods[month].items())},
        )
        for month in sorted(totals)
    ]
    grand_total = sum((trend.total_amount for trend in trends), ZERO)
    return PaymentTrendsReport(
        start_date=start,
        end_date=today,
        total_payments=to_money(grand_total),
        total_transactions=sum(trend.payment_count for trend in trends),
        average_monthly=to_money(grand_total / (len(trends) or 1)),
        trends=trends,
    )


def build_dashboard_summary(db: Session) -> DashboardSummary:
    total_vendors = db.execute(select(func.count(Vendor.id)).where(Vendor.is_live())).scalar_one()
    active_vendors = db.execute(
        select(func.count(Vendor.id)).where(Vendor.is_live(), Vendor.status == VendorStatus.ACTIVE)
    ).scalar_one()

    by_status = {status.value: 0 for status in PurchaseOrderStatus}
    for status, count in db.execute(
        select(PurchaseOrder.status, func.count(PurchaseOrder.id))
        .where(PurchaseOrder.is_live())
        .group_by(PurchaseOrder.status)
    ).all():
        by_status[status.value] = count

    total_payments = db.execute(select(func.count(Payment.id)).where(Payment.is_valid())).scalar_one()
    financial = combined_snapshot(vendor_snapshots(db).values())

    return DashboardSummary(
        total_vendors=total_vendors,
        active_vendors=active_vendors,
        total_purchase_orders=sum(by_status.values()),
        purchase_orders_by_status=by_status,
        total_payments=total_payments,
        total_payment_amount=to_money(financial.total_paid_amount),
        total_po_amount=to_money(financial.total_po_amount),
        total_paid=to_money(financial.total_paid_amount),
        total_outstanding=to_money(financial.outstanding_amount),
    )
