from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from payables.clock import Clock
from payables.db import get_db
from payables.dependencies import get_actor_id, get_clock
from payables.models import PurchaseOrderStatus
from payables.schemas import (
    PageOut,
    PurchaseOrderCreate,
    PurchaseOrderDetailOut,
    PurchaseOrderOut,
    PurchaseOrderStatusUpdate,
    PurchaseOrderSummaryOut,
)
from payables.services.purchase_order_service import (
    LineItemInput,
    create_purchase_order,
    delete_purchase_order,
    get_purchase_order_detail,
    list_purchase_orders,
    update_purchase_order_status,
)

router = APIRouter(prefix='/api/purchase-orders', tags=['purchase-orders'])


@router.post('', response_model=PurchaseOrderOut, status_code=status.HTTP_201_CREATED)
def create_purchase_order_endpoint(
    payload: PurchaseOrderCreate,
    db: Session = Depends(get_db),
    actor_id: str | None = Depends(get_actor_id),
    clock: Clock = Depends(get_clock),
):
    purchase_order = create_purchase_order(
        db,
        vendor_id=payload.vendor_id,
        items=[
            LineItemInput(description=item.description, quantity=item.quantity, unit_price=item.unit_price)
            for item in payload.items
        ],
        actor_id=actor_id,
        po_date=payload.po_date,
        status=payload.status,
        clock=clock,
    )
    db.commit()
    return PurchaseOrderOut.model_validate(purchase_order)


@router.get('', response_model=PageOut[PurchaseOrderSummaryOut])
def list_purchase_orders_endpoint(
    vendor_id: uuid.UUID | None = None,
    status_filter: list[PurchaseOrderStatus] | None = Query(default=None, alias='status'),
    search: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    result = list_purchase_orders(
        db,
        vendor_id=vendor_id,
        status=status_filter or None,
        search=search,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return PageOut[PurchaseOrderSummaryOut](
        items=[PurchaseOrderSummaryOut.model_validate(row) for row in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )


@router.get('/{purchase_order_id}', response_model=PurchaseOrderDetailOut)
def get_purchase_order_endpoint(purchase_order_id: uuid.UUID, db: Session = Depends(get_db)):
    return PurchaseOrderDetailOut.model_validate(get_purchase_order_detail(db, purchase_order_id=purchase_order_id))


@router.patch('/{purchase_order_id}/status', response_model=PurchaseOrderOut)
def update_purchase_order_status_endpoint(
    purchase_order_id: uuid.UUID,
    payload: PurchaseOrderStatusUpdate,
    db: Session = Depends(get_db),
    actor_id: str | None = Depends(get_actor_id),
):
    purchase_order = update_purchase_order_status(
        db,
        purchase_order_id=purchase_order_id,
        new_status=payload.status,
        actor_id=actor_id,
    )
    db.commit()
    return PurchaseOrderOut.model_validate(purchase_order)


@router.delete('/{purchase_order_id}')
def delete_purchase_order_endpoint(
    purchase_order_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor_id: str | None = Depends(get_actor_id),
    clock: Clock = Depends(get_clock),
):
    delete_purchase_order(db, purchase_order_id=purchase_order_id, actor_id=actor_id, clock=clock)
    db.commit()
    return {'message': 'Purchase order deleted successfully'}
