from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from payables.models import PaymentMethod, PaymentTerms, PurchaseOrderStatus, VendorStatus

T = TypeVar('T')

EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PageOut(BaseModel, Generic[T]):
    items: list[T]
    page: int
    limit: int
    total: int
    total_pages: int


class VendorCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    contact_person: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    payment_terms: PaymentTerms = PaymentTerms.DAYS_30
    status: VendorStatus = VendorStatus.ACTIVE


class VendorUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=255)
    email: str | None = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    contact_person: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    payment_terms: PaymentTerms | None = None
    status: VendorStatus | None = None


class VendorOut(ORMModel):
    id: uuid.UUID
    name: str
    contact_person: str | None
    email: str
    phone: str | None
    payment_terms: PaymentTerms
    status: VendorStatus
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class VendorPaymentSummaryOut(ORMModel):
    total_purchase_orders: int
    total_po_amount: Decimal
    total_paid_amount: Decimal
    outstanding_amount: Decimal


class VendorRef(ORMModel):
    id: uuid.UUID
    name: str
    email: str
    status: VendorStatus


class LineItemIn(BaseModel):
    description: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=Decimal('0.01'), decimal_places=2)


class LineItemOut(ORMModel):
    id: uuid.UUID
    description: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class PurchaseOrderCreate(BaseModel):
    vendor_id: uuid.UUID
    items: list[LineItemIn] = Field(min_length=1)
    po_date: date | None = None
    status: PurchaseOrderStatus | None = None


class PurchaseOrderStatusUpdate(BaseModel):
    status: PurchaseOrderStatus


class PurchaseOrderOut(ORMModel):
    id: uuid.UUID
    po_number: str
    vendor_id: uuid.UUID
    vendor: VendorRef
    po_date: date
    due_date: date
    total_amount: Decimal
    status: PurchaseOrderStatus
    items: list[LineItemOut]
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PurchaseOrderSummaryOut(ORMModel):
    purchase_order: PurchaseOrderOut
    total_paid: Decimal
    outstanding_amount: Decimal


class VendorDetailOut(ORMModel):
    vendor: VendorOut
    payment_summary: VendorPaymentSummaryOut
    purchase_orders: list[PurchaseOrderSummaryOut]


class PaymentCreate(BaseModel):
    purchase_order_id: uuid.UUID
    amount_paid: Decimal = Field(decimal_places=2)
    payment_method: PaymentMethod
    payment_date: date | None = None
    notes: str | None = Field(default=None, max_length=1000)


class PaymentOut(ORMModel):
    id: uuid.UUID
    reference_number: str
    purchase_order_id: uuid.UUID
    payment_date: date
    amount_paid: Decimal
    payment_method: PaymentMethod
    notes: str | None
    is_voided: bool
    voided_at: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None


class PurchaseOrderDetailOut(ORMModel):
    purchase_order: PurchaseOrderOut
    total_paid: Decimal
    outstanding_amount: Decimal
    payment_history: list[PaymentOut]


class PaymentListRow(PaymentOut):
    po_number: str
    vendor_name: str


class PaymentDetailOut(ORMModel):
    payment: PaymentOut
    purchase_order: PurchaseOrderOut
    valid_payments: list[PaymentOut]
