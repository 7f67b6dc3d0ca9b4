from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import get_db, staff_only
from travel_app.schemas.common import envelope
from travel_app.schemas.filters import (
    BookingReportFilters,
    PaymentReportFilters,
    TopToursFilters,
    booking_report_filters,
    payment_report_filters,
    top_tours_filters,
)
from travel_app.services import reporting_service
from travel_app.services.paystack import PAYMENT_CURRENCY

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/bookings/monthly-summary")
def booking_monthly_summary(
    filters: BookingReportFilters = Depends(booking_report_filters),
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    summary = reporting_service.booking_summary(db, filters)
    return envelope("Booking summary generated successfully", summary)


@router.get("/payments/summary")
def payment_summary(
    filters: PaymentReportFilters = Depends(payment_report_filters),
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    summary = reporting_service.payment_summary(db, filters, default_currency=PAYMENT_CURRENCY)
    return envelope("Payment summary generated successfully", summary)


@router.get("/tours/top-by-bookings")
def top_tours_by_bookings(
    filters: TopToursFilters = Depends(top_tours_filters),
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    report = reporting_service.top_tours(db, filters)
    return envelope("Top tours report generated successfully", report)
