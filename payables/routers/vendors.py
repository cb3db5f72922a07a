from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from payables.clock import Clock
from payables.db import get_db
from payables.dependencies import get_actor_id, get_clock
from payables.models import VendorStatus
from payables.schemas import PageOut, VendorCreate, VendorDetailOut, VendorOut, VendorUpdate
from payables.services.vendor_service import (
    create_vendor,
    delete_vendor,
    get_vendor_detail,
    list_vendors,
    update_vendor,
)

router = APIRouter(prefix='/api/vendors', tags=['vendors'])


@router.post('', response_model=VendorOut, status_code=status.HTTP_201_CREATED)
def create_vendor_endpoint(
    payload: VendorCreate,
    db: Session = Depends(get_db),
    actor_id: str | None = Depends(get_actor_id),
):
    vendor = create_vendor(db, actor_id=actor_id, **payload.model_dump())
    db.commit()
    return VendorOut.model_validate(vendor)


@router.get('', response_model=PageOut[VendorOut])
def list_vendors_endpoint(
    status_filter: VendorStatus | None = Query(default=None, alias='status'),
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    result = list_vendors(db, status=status_filter, search=search, page=page, limit=limit)
    return PageOut[VendorOut](
        items=[VendorOut.model_validate(vendor) for vendor in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )


@router.get('/{vendor_id}', response_model=VendorDetailOut)
def get_vendor_endpoint(vendor_id: uuid.UUID, db: Session = Depends(get_db)):
    return VendorDetailOut.model_validate(get_vendor_detail(db, vendor_id=vendor_id))


@router.put('/{vendor_id}', response_model=VendorOut)
def update_vendor_endpoint(
    vendor_id: uuid.UUID,
    payload: VendorUpdate,
    db: Session = Depends(get_db),
    actor_id: str | None = Depends(get_actor_id),
):
    vendor = update_vendor(
        db,
        vendor_id=vendor_id,
        changes=payload.model_dump(exclude_unset=True),
        actor_id=actor_id,
    )
    db.commit()
    return VendorOut.model_validate(vendor)


@router.delete('/{vendor_id}')
def delete_vendor_endpoint(
    vendor_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor_id: str | None = Depends(get_actor_id),
    clock: Clock = Depends(get_clock),
):
    delete_vendor(db, vendor_id=vendor_id, actor_id=actor_id, clock=clock)
    db.commit()
    return {'message': 'Vendor deleted successfully'}
