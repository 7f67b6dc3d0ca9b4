from datetime import datetime
from typing import Dict, List

from travel_app.schemas.common import CamelModel


class ReportPeriod(CamelModel):
    start_date: datetime
    end_date: datetime


class MonthlyBookings(CamelModel):
    month: str
    count: int
    revenue: float
    average_value: float


class BookingSummary(CamelModel):
    period: ReportPeriod
    total_bookings: int
    total_value: float
    average_value: float
    by_status: Dict[str, int]
    monthly: List[MonthlyBookings]


class AmountBreakdown(CamelModel):
    count: int
    amount: float


class MonthlyPayments(CamelModel):
    month: str
    count: int
    revenue: float


class PaymentSummary(CamelModel):
    period: ReportPeriod
    currency: str
    total_payments: int
    total_revenue: float
    pending_amount: float
    failed_amount: float
    refunded_amount: float
    by_status: Dict[str, AmountBreakdown]
    by_method: Dict[str, AmountBreakdown]
    monthly: List[MonthlyPayments]


class TopTour(CamelModel):
    rank: int
    tour_id: int
    name: str
    type: str
    status: str
    price: float
    booking_count: int
    guests: int
    revenue: float


class TopToursSummary(CamelModel):
    tours_analyzed: int
    total_bookings: int
    total_revenue: float


class TopToursReport(CamelModel):
    period: ReportPeriod
    tours: List[TopTour]
    summary: TopToursSummary
