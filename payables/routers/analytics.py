from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from payables.clock import Clock
from payables.db import get_db
from payables.dependencies import get_clock
from payables.services.analytics_service import (
    DashboardSummary,
    PaymentAgingReport,
    PaymentTrendsReport,
    VendorOutstandingReport,
    build_dashboard_summary,
    build_payment_aging_report,
    build_payment_trends_report,
    build_vendor_outstanding_report,
)

router = APIRouter(prefix='/api/analytics', tags=['analytics'])


@router.get('/dashboard', response_model=DashboardSummary)
def dashboard(db: Session = Depends(get_db)):
    return build_dashboard_summary(db)


@router.get('/vendor-outstanding', response_model=VendorOutstandingReport)
def vendor_outstanding(db: Session = Depends(get_db)):
    return build_vendor_outstanding_report(db)


@router.get('/payment-aging', response_model=PaymentAgingReport)
def payment_aging(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return build_payment_aging_report(db, clock=clock)


@router.get('/payment-trends', response_model=PaymentTrendsReport)
def payment_trends(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    return build_payment_trends_report(db, clock=clock)
