from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session, selectinload

from payables.clock import Clock, system_clock
from payables.config import settings
from payables.errors import InvalidAmountError, InvalidInputError, InvalidStateError
from payables.models import Payment, PaymentMethod, PurchaseOrder, PurchaseOrderStatus, VendorStatus
from payables.services.financial_snapshot_service import CENT, paid_total_for_purchase_order, to_money
from payables.services.numbering_service import PAYMENT_PREFIX, NumberGenerator, allocate_number
from payables.services.purchase_order_service import get_purchase_order, recalculate_purchase_order_status
from payables.services.query_utils import Page, get_live, live_select, paginate


@dataclass(frozen=True)
class PaymentDetail:
    payment: Payment
    purchase_order: PurchaseOrder
    valid_payments: list[Payment]


def coerce_payment_method(value: PaymentMethod | str) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError as exc:
        raise InvalidInputError(f'Invalid payment method: {value}') from exc


def _coerce_amount(value: Decimal | int | str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(f'Invalid payment amount: {value}') from exc
    if not amount.is_finite():
        raise InvalidAmountError(f'Invalid payment amount: {value}')
    if amount != amount.quantize(CENT):
        raise InvalidAmountError(f'Payment amount cannot have more than two decimal places: {value}')
    return amount


def _lock_purchase_order(db: Session, purchase_order_id: uuid.UUID) -> PurchaseOrder:
    return get_purchase_order(
        db,
        purchase_order_id=purchase_order_id,
        for_update=settings.lock_purchase_order_on_payment,
    )


def record_payment(
    db: Session,
    *,
    purchase_order_id: uuid.UUID,
    amount_paid: Decimal | int | str,
    payment_method: PaymentMethod | str,
    actor_id: str | None,
    payment_date: date | None = None,
    notes: str | None = None,
    clock: Clock = system_clock,
    number_generator: NumberGenerator | None = None,
) -> Payment:
    """Record a payment and re-derive the purchase order status in the same session.

    Nothing is committed here; the caller's single commit covers both writes.
    """
    purchase_order = _lock_purchase_order(db, purchase_order_id)
    if purchase_order.vendor.status == VendorStatus.INACTIVE:
        raise InvalidStateError('Cannot record payment for inactive vendor')
    if purchase_order.status == PurchaseOrderStatus.DRAFT:
        raise InvalidStateError('Cannot record payment for Draft purchase order. Approve the PO first.')

    method = coerce_payment_method(payment_method)
    amount = _coerce_amount(amount_paid)
    outstanding = Decimal(purchase_order.total_amount) - paid_total_for_purchase_order(db, purchase_order.id)

    if amount <= 0:
        raise InvalidAmountError('Payment amount must be positive', requested=amount, outstanding=outstanding)
    if amount > outstanding:
        raise InvalidAmountError(
            f'Payment amount ({amount}) exceeds outstanding amount ({to_money(outstanding)})',
            requested=amount,
            outstanding=outstanding,
        )

    reference_number = allocate_number(
        db,
        column=Payment.reference_number,
        prefix=PAYMENT_PREFIX,
        on_date=clock.today(),
        generator=number_generator,
    )
    payment = Payment(
        reference_number=reference_number,
        purchase_order_id=purchase_order.id,
        payment_date=payment_date or clock.today(),
        amount_paid=amount,
        payment_method=method,
        notes=(notes or '').strip() or None,
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.add(payment)
    db.flush()

    recalculate_purchase_order_status(db, purchase_order_id=purchase_order.id)
    return payment


def list_payments(
    db: Session,
    *,
    purchase_order_id: uuid.UUID | None = None,
    payment_method: PaymentMethod | str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int | None = 1,
    limit: int | None = None,
) -> Page[Payment]:
    stmt = live_select(Payment).options(
        selectinload(Payment.purchase_order).selectinload(PurchaseOrder.vendor),
    )
    if purchase_order_id is not None:
        stmt = stmt.where(Payment.purchase_order_id == purchase_order_id)
    if payment_method:
        stmt = stmt.where(Payment.payment_method == coerce_payment_method(payment_method))
    if start_date is not None:
        stmt = stmt.where(Payment.payment_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Payment.payment_date <= end_date)
    stmt = stmt.order_by(Payment.payment_date.desc(), Payment.created_at.desc(), Payment.reference_number.desc())
    return paginate(db, stmt, page=page, limit=limit)


def get_payment(db: Session, *, payment_id: uuid.UUID) -> Payment:
    return get_live(db, Payment, payment_id, label='Payment')


def get_payment_detail(db: Session, *, payment_id: uuid.UUID) -> PaymentDetail:
    payment = get_payment(db, payment_id=payment_id)
    siblings = db.execute(
        live_select(Payment)
        .where(Payment.purchase_order_id == payment.purchase_order_id, Payment.is_voided.is_(False))
        .order_by(Payment.payment_date.asc(), Payment.created_at.asc(), Payment.reference_number.asc())
    ).scalars().all()
    return PaymentDetail(
        payment=payment,
        purchase_order=payment.purchase_order,
        valid_payments=list(siblings),
    )


def _lock_purchase_order_if_live(db: Session, purchase_order_id: uuid.UUID) -> None:
    if not settings.lock_purchase_order_on_payment:
        return
    db.execute(
        live_select(PurchaseOrder).where(PurchaseOrder.id == purchase_order_id).with_for_update()
    ).scalar_one_or_none()


def void_payment(
    db: Session,
    *,
    payment_id: uuid.UUID,
    actor_id: str | None,
    clock: Clock = system_clock,
) -> Payment:
    payment = get_payment(db, payment_id=payment_id)
    if payment.is_voided:
        raise InvalidStateError('Payment is already voided')
    _lock_purchase_order_if_live(db, payment.purchase_order_id)

    payment.is_voided = True
    payment.voided_at = clock.now()
    payment.updated_by = actor_id
    db.flush()

    recalculate_purchase_order_status(db, purchase_order_id=payment.purchase_order_id)
    return payment


def delete_payment(
    db: Session,
    *,
    payment_id: uuid.UUID,
    actor_id: str | None,
    clock: Clock = system_clock,
) -> Payment:
    payment = get_payment(db, payment_id=payment_id)
    _lock_purchase_order_if_live(db, payment.purchase_order_id)

    payment.mark_deleted(clock.now())
    payment.updated_by = actor_id
    db.flush()

    recalculate_purchase_order_status(db, purchase_order_id=payment.purchase_order_id)
    return payment