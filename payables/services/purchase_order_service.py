from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session, selectinload

from payables.clock import Clock, system_clock
from payables.errors import InvalidInputError, InvalidStateError, InvalidTransitionError, NotFoundError
from payables.models import (
    Payment,
    PaymentTerms,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    Vendor,
    VendorStatus,
)
from payables.services.financial_snapshot_service import (
    ZERO,
    paid_total_for_purchase_order,
    paid_totals_by_purchase_order,
)
from payables.services.numbering_service import PURCHASE_ORDER_PREFIX, NumberGenerator, allocate_number
from payables.services.query_utils import Page, get_live, live_select, paginate

PAYMENT_TERM_DAYS: dict[PaymentTerms, int] = {
    PaymentTerms.DAYS_7: 7,
    PaymentTerms.DAYS_15: 15,
    PaymentTerms.DAYS_30: 30,
    PaymentTerms.DAYS_45: 45,
    PaymentTerms.DAYS_60: 60,
}
DEFAULT_TERM_DAYS = 30

# Explicit, user-initiated changes only. Payment events go through recalculate_purchase_order_status.
ALLOWED_TRANSITIONS: dict[PurchaseOrderStatus, frozenset[PurchaseOrderStatus]] = {
    PurchaseOrderStatus.DRAFT: frozenset({PurchaseOrderStatus.APPROVED}),
    PurchaseOrderStatus.APPROVED: frozenset({PurchaseOrderStatus.PARTIALLY_PAID, PurchaseOrderStatus.FULLY_PAID}),
    PurchaseOrderStatus.PARTIALLY_PAID: frozenset({PurchaseOrderStatus.FULLY_PAID}),
    PurchaseOrderStatus.FULLY_PAID: frozenset(),
}

INITIAL_STATUSES = frozenset({PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.APPROVED})
MIN_UNIT_PRICE = Decimal('0.01')


@dataclass(frozen=True)
class LineItemInput:
    description: str
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class PurchaseOrderSummary:
    purchase_order: PurchaseOrder
    total_paid: Decimal
    outstanding_amount: Decimal


@dataclass(frozen=True)
class PurchaseOrderDetail:
    purchase_order: PurchaseOrder
    total_paid: Decimal
    outstanding_amount: Decimal
    payment_history: list[Payment]


def payment_term_days(terms: PaymentTerms | str | None) -> int:
    try:
        return PAYMENT_TERM_DAYS.get(PaymentTerms(terms), DEFAULT_TERM_DAYS)
    except ValueError:
        return DEFAULT_TERM_DAYS


def calculate_due_date(po_date: date, terms: PaymentTerms | str | None) -> date:
    return po_date + timedelta(days=payment_term_days(terms))


def calculate_total_amount(items: Iterable[LineItemInput]) -> Decimal:
    return sum((Decimal(item.quantity) * item.unit_price for item in items), ZERO)


def coerce_status(value: PurchaseOrderStatus | str) -> PurchaseOrderStatus:
    try:
        return PurchaseOrderStatus(value)
    except ValueError as exc:
        raise InvalidInputError(f'Invalid purchase order status: {value}') from exc


def _validate_items(items: Sequence[LineItemInput]) -> list[LineItemInput]:
    if not items:
        raise InvalidInputError('At least one line item is required')

    cleaned: list[LineItemInput] = []
    for index, item in enumerate(items, start=1):
        description = (item.description or '').strip()
        if not description:
            raise InvalidInputError(f'Line item {index} is missing a description')
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity < 1:
            raise InvalidInputError(f'Line item {index} quantity must be a whole number of at least 1')
        try:
            unit_price = Decimal(str(item.unit_price))
        except (InvalidOperation, ValueError) as exc:
            raise InvalidInputError(f'Line item {index} has an invalid unit price') from exc
        if not unit_price.is_finite() or unit_price < MIN_UNIT_PRICE:
            raise InvalidInputError(f'Line item {index} unit price must be at least {MIN_UNIT_PRICE}')
        if unit_price != unit_price.quantize(MIN_UNIT_PRICE):
            raise InvalidInputError(f'Line item {index} unit price cannot have more than two decimal places')
        cleaned.append(LineItemInput(description=description, quantity=item.quantity, unit_price=unit_price))
    return cleaned


def create_purchase_order(
    db: Session,
    *,
    vendor_id: uuid.UUID,
    items: Sequence[LineItemInput],
    actor_id: str | None,
    po_date: date | None = None,
    status: PurchaseOrderStatus | str | None = None,
    clock: Clock = system_clock,
    number_generator: NumberGenerator | None = None,
) -> PurchaseOrder:
    vendor = get_live(db, Vendor, vendor_id, label='Vendor')
    if vendor.status == VendorStatus.INACTIVE:
        raise InvalidStateError('Cannot create purchase order for inactive vendor')

    initial_status = coerce_status(status) if status is not None else PurchaseOrderStatus.DRAFT
    if initial_status not in INITIAL_STATUSES:
        raise InvalidTransitionError(PurchaseOrderStatus.DRAFT, initial_status)

    clean_items = _validate_items(items)
    order_date = po_date or clock.today()

    po_number = allocate_number(
        db,
        column=PurchaseOrder.po_number,
        prefix=PURCHASE_ORDER_PREFIX,
        on_date=clock.today(),
        generator=number_generator,
    )
    purchase_order = PurchaseOrder(
        po_number=po_number,
        vendor_id=vendor.id,
        po_date=order_date,
        due_date=calculate_due_date(order_date, vendor.payment_terms),
        total_amount=calculate_total_amount(clean_items),
        status=initial_status,
        created_by=actor_id,
        updated_by=actor_id,
        items=[
            PurchaseOrderItem(
                position=position,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for position, item in enumerate(clean_items)
        ],
    )
    db.add(purchase_order)
    db.flush()
    return purchase_order


def _coerce_status_filter(
    status: PurchaseOrderStatus | str | Iterable[PurchaseOrderStatus | str] | None,
) -> list[PurchaseOrderStatus]:
    if status is None:
        return []
    if isinstance(status, (str, PurchaseOrderStatus)):
        return [coerce_status(status)]
    return [coerce_status(value) for value in status]


def summarize_purchase_orders(db: Session, purchase_orders: Sequence[PurchaseOrder]) -> list[PurchaseOrderSummary]:
    paid_by_po = paid_totals_by_purchase_order(db, purchase_order_ids=[po.id for po in purchase_orders])
    summaries = []
    for po in purchase_orders:
        total_paid = paid_by_po.get(po.id, ZERO)
        summaries.append(
            PurchaseOrderSummary(
                purchase_order=po,
                total_paid=total_paid,
                outstanding_amount=Decimal(po.total_amount) - total_paid,
            )
        )
    return summaries


def list_vendor_purchase_orders(db: Session, *, vendor_id: uuid.UUID) -> list[PurchaseOrderSummary]:
    purchase_orders = db.execute(
        live_select(PurchaseOrder)
        .where(PurchaseOrder.vendor_id == vendor_id)
        .options(selectinload(PurchaseOrder.vendor), selectinload(PurchaseOrder.items))
        .order_by(PurchaseOrder.po_date.desc(), PurchaseOrder.po_number.desc())
    ).scalars().all()
    return summarize_purchase_orders(db, purchase_orders)


def list_purchase_orders(
    db: Session,
    *,
    vendor_id: uuid.UUID | None = None,
    status: PurchaseOrderStatus | str | Iterable[PurchaseOrderStatus | str] | None = None,
    search: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int | None = 1,
    limit: int | None = None,
) -> Page[PurchaseOrderSummary]:
    stmt = live_select(PurchaseOrder).options(
        selectinload(PurchaseOrder.vendor),
        selectinload(PurchaseOrder.items),
    )
    if vendor_id is not None:
        stmt = stmt.where(PurchaseOrder.vendor_id == vendor_id)
    statuses = _coerce_status_filter(status)
    if statuses:
        stmt = stmt.where(PurchaseOrder.status.in_(statuses))
    term = (search or '').strip()
    if term:
        stmt = stmt.where(PurchaseOrder.po_number.icontains(term, autoescape=True))
    if start_date is not None:
        stmt = stmt.where(PurchaseOrder.po_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(PurchaseOrder.po_date <= end_date)
    stmt = stmt.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.po_number.desc())

    result = paginate(db, stmt, page=page, limit=limit)
    return Page(
        items=summarize_purchase_orders(db, result.items),
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )


def get_purchase_order(db: Session, *, purchase_order_id: uuid.UUID, for_update: bool = False) -> PurchaseOrder:
    return get_live(db, PurchaseOrder, purchase_order_id, label='Purchase order', for_update=for_update)


def get_purchase_order_detail(db: Session, *, purchase_order_id: uuid.UUID) -> PurchaseOrderDetail:
    purchase_order = get_purchase_order(db, purchase_order_id=purchase_order_id)
    history = db.execute(
        live_select(Payment)
        .where(Payment.purchase_order_id == purchase_order.id)
        .order_by(Payment.payment_date.desc(), Payment.created_at.desc(), Payment.reference_number.desc())
    ).scalars().all()
    total_paid = sum((Decimal(p.amount_paid) for p in history if not p.is_voided), ZERO)
    return PurchaseOrderDetail(
        purchase_order=purchase_order,
        total_paid=total_paid,
        outstanding_amount=Decimal(purchase_order.total_amount) - total_paid,
        payment_history=list(history),
    )


def can_transition(current: PurchaseOrderStatus, requested: PurchaseOrderStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def update_purchase_order_status(
    db: Session,
    *,
    purchase_order_id: uuid.UUID,
    new_status: PurchaseOrderStatus | str,
    actor_id: str | None,
) -> PurchaseOrder:
    purchase_order = get_purchase_order(db, purchase_order_id=purchase_order_id)
    requested = coerce_status(new_status)
    if not can_transition(purchase_order.status, requested):
        raise InvalidTransitionError(purchase_order.status, requested)

    purchase_order.status = requested
    purchase_order.updated_by = actor_id
    db.flush()
    return purchase_order


def derive_payment_status(total_paid: Decimal, total_amount: Decimal) -> PurchaseOrderStatus:
    if total_paid >= total_amount:
        return PurchaseOrderStatus.FULLY_PAID
    if total_paid > 0:
        return PurchaseOrderStatus.PARTIALLY_PAID
    return PurchaseOrderStatus.APPROVED


def recalculate_purchase_order_status(db: Session, *, purchase_order_id: uuid.UUID) -> PurchaseOrderStatus | None:
    """Re-derive status from valid payments after a payment event.

    Ignores the manual transition table, so a void can move PartiallyPaid back
    to Approved. Draft orders are left alone; they cannot take payments.
    """
    try:
        purchase_order = get_purchase_order(db, purchase_order_id=purchase_order_id)
    except NotFoundError:
        return None

    if purchase_order.status == PurchaseOrderStatus.DRAFT:
        return purchase_order.status

    total_paid = paid_total_for_purchase_order(db, purchase_order.id)
    new_status = derive_payment_status(total_paid, Decimal(purchase_order.total_amount))
    if new_status != purchase_order.status:
        purchase_order.status = new_status
        db.flush()
    return new_status


def delete_purchase_order(
    db: Session,
    *,
    purchase_order_id: uuid.UUID,
    actor_id: str | None,
    clock: Clock = system_clock,
) -> PurchaseOrder:
    purchase_order = get_purchase_order(db, purchase_order_id=purchase_order_id)
    purchase_order.mark_deleted(clock.now())
    purchase_order.updated_by = actor_id
    db.flush()
    return purchase_order
