from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from payables.clock import Clock
from payables.db import get_db
from payables.dependencies import get_actor_id, get_clock
from payables.models import Payment, PaymentMethod
from payables.schemas import PageOut, PaymentCreate, PaymentDetailOut, PaymentListRow, PaymentOut
from payables.services.payment_service import (
    delete_payment,
    get_payment_detail,
    list_payments,
    record_payment,
    void_payment,
)

router = APIRouter(prefix='/api/payments', tags=['payments'])


def _list_row(payment: Payment) -> PaymentListRow:
    return PaymentListRow(
        **PaymentOut.model_validate(payment).model_dump(),
        po_number=payment.purchase_order.po_number,
        vendor_name=payment.purchase_order.vendor.name,
    )


@router.post('', response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def record_payment_endpoint(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    actor_id: str | None = Depends(get_actor_id),
    clock: Clock = Depends(get_clock),
):
    payment = record_payment(
        db,
        purchase_order_id=payload.purchase_order_id,
        amount_paid=payload.amount_paid,
        payment_method=payload.payment_method,
        payment_date=payload.payment_date,
        notes=payload.notes,
        actor_id=actor_id,
        clock=clock,
    )
    # One commit covers the payment row and the recalculated purchase order status.
    db.commit()
    return PaymentOut.model_validate(payment)


@router.get('', response_model=PageOut[PaymentListRow])
def list_payments_endpoint(
    purchase_order_id: uuid.UUID | None = None,
    payment_method: PaymentMethod | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    result = list_payments(
        db,
        purchase_order_id=purchase_order_id,
        payment_method=payment_method,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return PageOut[PaymentListRow](
        items=[_list_row(payment) for payment in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )


@router.get('/{payment_id}', response_model=PaymentDetailOut)
def get_payment_endpoint(payment_id: uuid.UUID, db: Session = Depends(get_db)):
    return PaymentDetailOut.model_validate(get_payment_detail(db, payment_id=payment_id))


@router.post('/{payment_id}/void', response_model=PaymentOut)
def void_payment_endpoint(
    payment_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor_id: str | None = Depends(get_actor_id),
    clock: Clock = Depends(get_clock),
):
    payment = void_payment(db, payment_id=payment_id, actor_id=actor_id, clock=clock)
    db.commit()
    return PaymentOut.model_validate(payment)


@router.delete('/{payment_id}')
def delete_payment_endpoint(
    payment_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor_id: str | None = Depends(get_actor_id),
    clock: Clock = Depends(get_clock),
):
    delete_payment(db, payment_id=payment_id, actor_id=actor_id, clock=clock)
    db.commit()
    return {'message': 'Payment deleted successfully'}
