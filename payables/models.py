from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class RecordLifecycle(str, Enum):
    LIVE = 'LIVE'
    DELETED = 'DELETED'


class VendorStatus(str, Enum):
    ACTIVE = 'Active'
    INACTIVE = 'Inactive'


class PaymentTerms(str, Enum):
    DAYS_7 = 'DAYS_7'
    DAYS_15 = 'DAYS_15'
    DAYS_30 = 'DAYS_30'
    DAYS_45 = 'DAYS_45'
    DAYS_60 = 'DAYS_60'


class PurchaseOrderStatus(str, Enum):
    DRAFT = 'Draft'
    APPROVED = 'Approved'
    PARTIALLY_PAID = 'PartiallyPaid'
    FULLY_PAID = 'FullyPaid'


class PaymentMethod(str, Enum):
    CASH = 'Cash'
    CHEQUE = 'Cheque'
    NEFT = 'NEFT'
    RTGS = 'RTGS'
    UPI = 'UPI'


class SoftDeleteMixin:
    """Rows are never removed; deletion flips ``lifecycle`` and every read filters on it."""

    lifecycle: Mapped[RecordLifecycle] = mapped_column(
        SQLEnum(RecordLifecycle, name='record_lifecycle'),
        nullable=False,
        default=RecordLifecycle.LIVE,
        server_default='LIVE',
        index=True,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    @classmethod
    def is_live(cls):
        return cls.lifecycle == RecordLifecycle.LIVE

    def mark_deleted(self, when: datetime) -> None:
        self.lifecycle = RecordLifecycle.DELETED
        self.deleted_at = when


class AuditMixin:
    created_by: Mapped[str | None] = mapped_column(String(64))
    updated_by: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class Vendor(SoftDeleteMixin, AuditMixin, Base):
    __tablename__ = 'vendors'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    contact_person: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(20))
    payment_terms: Mapped[PaymentTerms] = mapped_column(
        SQLEnum(PaymentTerms, name='payment_terms'),
        nullable=False,
        default=PaymentTerms.DAYS_30,
        server_default='DAYS_30',
    )
    status: Mapped[VendorStatus] = mapped_column(
        SQLEnum(VendorStatus, name='vendor_status'),
        nullable=False,
        default=VendorStatus.ACTIVE,
        server_default='ACTIVE',
    )

    purchase_orders: Mapped[list[PurchaseOrder]] = relationship(back_populates='vendor')


class PurchaseOrder(SoftDeleteMixin, AuditMixin, Base):
    __tablename__ = 'purchase_orders'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    po_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    vendor_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('vendors.id'), nullable=False, index=True)
    po_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[PurchaseOrderStatus] = mapped_column(
        SQLEnum(PurchaseOrderStatus, name='purchase_order_status'),
        nullable=False,
        default=PurchaseOrderStatus.DRAFT,
        server_default='DRAFT',
        index=True,
    )

    vendor: Mapped[Vendor] = relationship(back_populates='purchase_orders')
    items: Mapped[list[PurchaseOrderItem]] = relationship(
        back_populates='purchase_order',
        cascade='all, delete-orphan',
        order_by='PurchaseOrderItem.position',
    )
    payments: Mapped[list[Payment]] = relationship(back_populates='purchase_order')


class PurchaseOrderItem(Base):
    __tablename__ = 'purchase_order_items'
    __table_args__ = (
        CheckConstraint('quantity >= 1', name='purchase_order_items_quantity_positive'),
        CheckConstraint('unit_price >= 0.01', name='purchase_order_items_unit_price_min'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    purchase_order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('purchase_orders.id', ondelete='CASCADE'), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    purchase_order: Mapped[PurchaseOrder] = relationship(back_populates='items')

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(self.unit_price)


class Payment(SoftDeleteMixin, AuditMixin, Base):
    __tablename__ = 'payments'
    __table_args__ = (
        CheckConstraint('amount_paid > 0', name='payments_amount_paid_positive'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reference_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    purchase_order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('purchase_orders.id'), nullable=False, index=True
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, name='payment_method'), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text)
    # Voiding is independent of lifecycle: a voided payment stays visible as reversed.
    is_voided: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    purchase_order: Mapped[PurchaseOrder] = relationship(back_populates='payments')

    @classmethod
    def is_valid(cls):
        return (cls.lifecycle == RecordLifecycle.LIVE) & (cls.is_voided.is_(False))
