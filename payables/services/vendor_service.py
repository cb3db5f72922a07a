from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import or_
from sqlalchemy.orm import Session

from payables.clock import Clock, system_clock
from payables.errors import ConflictError, InvalidInputError
from payables.models import PaymentTerms, Vendor, VendorStatus
from payables.services.financial_snapshot_service import vendor_snapshot
from payables.services.purchase_order_service import PurchaseOrderSummary, list_vendor_purchase_orders
from payables.services.query_utils import Page, get_live, live_select, paginate

_UPDATABLE_FIELDS = ('name', 'contact_person', 'email', 'phone', 'payment_terms', 'status')


@dataclass(frozen=True)
class VendorPaymentSummary:
    total_purchase_orders: int
    total_po_amount: Decimal
    total_paid_amount: Decimal
    outstanding_amount: Decimal


@dataclass(frozen=True)
class VendorDetail:
    vendor: Vendor
    payment_summary: VendorPaymentSummary
    purchase_orders: list[PurchaseOrderSummary]


def _clean_required(value: str | None, *, field: str) -> str:
    cleaned = (value or '').strip()
    if not cleaned:
        raise InvalidInputError(f'Vendor {field} is required')
    return cleaned


def _clean_optional(value: str | None) -> str | None:
    cleaned = (value or '').strip()
    return cleaned or None


def _coerce_terms(value: PaymentTerms | str | None) -> PaymentTerms:
    if value is None:
        return PaymentTerms.DAYS_30
    try:
        return PaymentTerms(value)
    except ValueError as exc:
        raise InvalidInputError(f'Invalid payment terms: {value}') from exc


def _coerce_status(value: VendorStatus | str | None) -> VendorStatus:
    if value is None:
        return VendorStatus.ACTIVE
    try:
        return VendorStatus(value)
    except ValueError as exc:
        raise InvalidInputError(f'Invalid vendor status: {value}') from exc


def _ensure_unique(
    db: Session,
    *,
    name: str | None,
    email: str | None,
    exclude_id: uuid.UUID | None = None,
) -> None:
    clauses = []
    if email:
        clauses.append(Vendor.email == email)
    if name:
        clauses.append(Vendor.name == name)
    if not clauses:
        return

    stmt = live_select(Vendor).where(or_(*clauses))
    if exclude_id is not None:
        stmt = stmt.where(Vendor.id != exclude_id)
    existing = db.execute(stmt.limit(1)).scalars().first()
    if existing is None:
        return
    if email and existing.email == email:
        raise ConflictError('Vendor with this email already exists', field='email')
    raise ConflictError('Vendor with this name already exists', field='name')


def create_vendor(
    db: Session,
    *,
    name: str,
    email: str,
    actor_id: str | None,
    contact_person: str | None = None,
    phone: str | None = None,
    payment_terms: PaymentTerms | str | None = None,
    status: VendorStatus | str | None = None,
) -> Vendor:
    clean_name = _clean_required(name, field='name')
    clean_email = _clean_required(email, field='email')
    _ensure_unique(db, name=clean_name, email=clean_email)

    vendor = Vendor(
        name=clean_name,
        email=clean_email,
        contact_person=_clean_optional(contact_person),
        phone=_clean_optional(phone),
        payment_terms=_coerce_terms(payment_terms),
        status=_coerce_status(status),
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.add(vendor)
    db.flush()
    return vendor


def list_vendors(
    db: Session,
    *,
    status: VendorStatus | str | None = None,
    search: str | None = None,
    page: int | None = 1,
    limit: int | None = None,
) -> Page[Vendor]:
    stmt = live_select(Vendor)
    if status:
        stmt = stmt.where(Vendor.status == _coerce_status(status))
    term = (search or '').strip()
    if term:
        stmt = stmt.where(
            or_(
                Vendor.name.icontains(term, autoescape=True),
                Vendor.email.icontains(term, autoescape=True),
                Vendor.contact_person.icontains(term, autoescape=True),
            )
        )
    stmt = stmt.order_by(Vendor.created_at.desc(), Vendor.name.asc())
    return paginate(db, stmt, page=page, limit=limit)


def get_vendor(db: Session, *, vendor_id: uuid.UUID) -> Vendor:
    return get_live(db, Vendor, vendor_id, label='Vendor')


def get_vendor_detail(db: Session, *, vendor_id: uuid.UUID) -> VendorDetail:
    vendor = get_vendor(db, vendor_id=vendor_id)
    snapshot = vendor_snapshot(db, vendor.id)
    return VendorDetail(
        vendor=vendor,
        payment_summary=VendorPaymentSummary(
            total_purchase_orders=snapshot.purchase_order_count,
            total_po_amount=snapshot.total_po_amount,
            total_paid_amount=snapshot.total_paid_amount,
            outstanding_amount=snapshot.outstanding_amount,
        ),
        purchase_orders=list_vendor_purchase_orders(db, vendor_id=vendor.id),
    )


def update_vendor(
    db: Session,
    *,
    vendor_id: uuid.UUID,
    changes: Mapping[str, object],
    actor_id: str | None,
) -> Vendor:
    vendor = get_vendor(db, vendor_id=vendor_id)

    unknown = set(changes) - set(_UPDATABLE_FIELDS)
    if unknown:
        raise InvalidInputError(f'Unknown vendor fields: {", ".join(sorted(unknown))}')

    values: dict[str, object] = {}
    if 'name' in changes:
        values['name'] = _clean_required(changes['name'], field='name')
    if 'email' in changes:
        values['email'] = _clean_required(changes['email'], field='email')
    if 'contact_person' in changes:
        values['contact_person'] = _clean_optional(changes['contact_person'])
    if 'phone' in changes:
        values['phone'] = _clean_optional(changes['phone'])
    if changes.get('payment_terms') is not None:
        # Existing purchase orders keep the due date derived when they were created.
        values['payment_terms'] = _coerce_terms(changes['payment_terms'])
    if changes.get('status') is not None:
        values['status'] = _coerce_status(changes['status'])

    _ensure_unique(db, name=values.get('name'), email=values.get('email'), exclude_id=vendor.id)

    for field, value in values.items():
        setattr(vendor, field, value)
    vendor.updated_by = actor_id
    db.flush()
    return vendor


def delete_vendor(
    db: Session,
    *,
    vendor_id: uuid.UUID,
    actor_id: str | None,
    clock: Clock = system_clock,
) -> Vendor:
    vendor = get_vendor(db, vendor_id=vendor_id)
    vendor.mark_deleted(clock.now())
    vendor.updated_by = actor_id
    db.flush()
    return vendor
