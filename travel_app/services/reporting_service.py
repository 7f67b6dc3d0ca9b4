"""
Read-side aggregation for the reports and the dashboard.

Reports are computed with SQL aggregates at query time and never cached.
Dashboard counters are cached per role for a minute; any booking or payment
write drops those keys.
"""

from sqlalchemy import and_, case, desc, extract, func
from sqlalchemy.orm import Session

from travel_app.core.context import SessionContext
from travel_app.core.errors import ValidationError
from travel_app.core.logging_config import admin_logger
from travel_app.core.redis import delete_cache, get_cache, set_cache
from travel_app.models.booking import Booking
from travel_app.models.destination import Destination
from travel_app.models.enums import BookingStatus, BookingType, PaymentMethod, PaymentStatus, TourStatus, UserRole
from travel_app.models.flight import Flight
from travel_app.models.hotel import Hotel, Room
from travel_app.models.payment import Payment
from travel_app.models.tour import Tour
from travel_app.models.user import User
from travel_app.schemas.filters import (
    BookingReportFilters,
    PaymentReportFilters,
    ReportPeriodFilters,
    TopToursFilters,
)
from travel_app.schemas.report import (
    AmountBreakdown,
    BookingSummary,
    MonthlyBookings,
    MonthlyPayments,
    PaymentSummary,
    ReportPeriod,
    TopTour,
    TopToursReport,
    TopToursSummary,
)
from travel_app.utils.dates import end_of_day, month_bounds, start_of_day, utcnow, year_bounds

DASHBOARD_CACHE_TTL = 60
DASHBOARD_CACHE_KEYS = [f"dashboard:stats:{role.value}" for role in UserRole]


def invalidate_dashboard_cache():
    delete_cache(*DASHBOARD_CACHE_KEYS)


def _money(value) -> float:
    return round(float(value or 0), 2)


def _average(total, count) -> float:
    return round(total / count, 2) if count else 0.0


def _month_key(year, month) -> str:
    return f"{int(year):04d}-{int(month):02d}"


# =====================================================================
#                           PERIOD RESOLUTION
# =====================================================================
def resolve_period(filters: ReportPeriodFilters) -> ReportPeriod:
    """startDate+endDate, else year+month, else year (default: current year)."""
    if filters.start_date or filters.end_date:
        if not (filters.start_date and filters.end_date):
            missing = "endDate" if filters.start_date else "startDate"
            raise ValidationError({missing: "startDate and endDate must be provided together"})
        if filters.start_date > filters.end_date:
            raise ValidationError({"endDate": "End date must be on or after start date"})
        return ReportPeriod(start_date=start_of_day(filters.start_date), end_date=end_of_day(filters.end_date))

    year = filters.year or utcnow().year
    if filters.month:
        start, end = month_bounds(year, filters.month)
    else:
        start, end = year_bounds(year)
    return ReportPeriod(start_date=start, end_date=end)


# =====================================================================
#                            BOOKING SUMMARY
# =====================================================================
def booking_summary(db: Session, filters: BookingReportFilters) -> BookingSummary:
    period = resolve_period(filters)

    conditions = [Booking.booking_date.between(period.start_date, period.end_date)]
    if filters.tour_id:
        conditions.append(Booking.tour_id == filters.tour_id)
    if filters.user_id:
        conditions.append(Booking.user_id == filters.user_id)
    if filters.status:
        conditions.append(Booking.status == filters.status)

    total_count, total_value = (
        db.query(func.count(Booking.id), func.sum(Booking.total_price)).filter(*conditions).one()
    )
    total_value = _money(total_value)

    by_status = {status.value: 0 for status in BookingStatus}
    for status, count in (
        db.query(Booking.status, func.count(Booking.id)).filter(*conditions).group_by(Booking.status).all()
    ):
        by_status[status.value] = count

    year_col = extract("year", Booking.booking_date)
    month_col = extract("month", Booking.booking_date)
    monthly_rows = (
        db.query(
            year_col.label("year"),
            month_col.label("month"),
            func.count(Booking.id).label("count"),
            func.sum(Booking.total_price).label("revenue"),
        )
        .filter(*conditions)
        .group_by(year_col, month_col)
        .order_by(year_col, month_col)
        .all()
    )
    monthly = [
        MonthlyBookings(
            month=_month_key(r.year, r.month),
            count=r.count,
            revenue=_money(r.revenue),
            average_value=_average(_money(r.revenue), r.count),
        )
        for r in monthly_rows
    ]

    admin_logger.info(f"Booking summary | {period.start_date:%Y-%m-%d}..{period.end_date:%Y-%m-%d} | Count={total_count}")

    return BookingSummary(
        period=period,
        total_bookings=total_count,
        total_value=total_value,
        average_value=_average(total_value, total_count),
        by_status=by_status,
        monthly=monthly,
    )


# =====================================================================
#                            PAYMENT SUMMARY
# =====================================================================
def payment_summary(db: Session, filters: PaymentReportFilters, default_currency: str) -> PaymentSummary:
    period = resolve_period(filters)
    currency = filters.currency or default_currency

    conditions = [
        Payment.created_at.between(period.start_date, period.end_date),
        Payment.currency == currency,
    ]
    if filters.payment_method:
        conditions.append(Payment.payment_method == filters.payment_method)
    if filters.status:
        conditions.append(Payment.status == filters.status)
    if filters.user_id:
        conditions.append(Payment.user_id == filters.user_id)

    by_status = {status.value: AmountBreakdown(count=0, amount=0) for status in PaymentStatus}
    for status, count, amount in (
        db.query(Payment.status, func.count(Payment.id), func.sum(Payment.amount))
        .filter(*conditions)
        .group_by(Payment.status)
        .all()
    ):
        by_status[status.value] = AmountBreakdown(count=count, amount=_money(amount))

    by_method = {method.value: AmountBreakdown(count=0, amount=0) for method in PaymentMethod}
    for method, count, amount in (
        db.query(Payment.payment_method, func.count(Payment.id), func.sum(Payment.amount))
        .filter(*conditions)
        .group_by(Payment.payment_method)
        .all()
    ):
        by_method[method.value] = AmountBreakdown(count=count, amount=_money(amount))

    year_col = extract("year", Payment.created_at)
    month_col = extract("month", Payment.created_at)
    completed_amount = func.sum(case((Payment.status == PaymentStatus.COMPLETED, Payment.amount), else_=0))
    monthly_rows = (
        db.query(
            year_col.label("year"),
            month_col.label("month"),
            func.count(Payment.id).label("count"),
            completed_amount.label("revenue"),
        )
        .filter(*conditions)
        .group_by(year_col, month_col)
        .order_by(year_col, month_col)
        .all()
    )
    monthly = [
        MonthlyPayments(month=_month_key(r.year, r.month), count=r.count, revenue=_money(r.revenue))
        for r in monthly_rows
    ]

    return PaymentSummary(
        period=period,
        currency=currency,
        total_payments=sum(b.count for b in by_status.values()),
        total_revenue=by_status[PaymentStatus.COMPLETED.value].amount,
        pending_amount=by_status[PaymentStatus.PENDING.value].amount,
        failed_amount=by_status[PaymentStatus.FAILED.value].amount,
        refunded_amount=by_status[PaymentStatus.REFUNDED.value].amount,
        by_status=by_status,
        by_method=by_method,
        monthly=monthly,
    )


# =====================================================================
#                               TOP TOURS
# =====================================================================
def top_tours(db: Session, filters: TopToursFilters) -> TopToursReport:
    period = resolve_period(filters)

    booking_count = func.count(Booking.id)
    revenue = func.coalesce(func.sum(Booking.total_price), 0)
    guests = func.coalesce(func.sum(Booking.quantity), 0)

    query = (
        db.query(Tour, booking_count.label("booking_count"), revenue.label("revenue"), guests.label("guests"))
        .outerjoin(
            Booking,
            and_(
                Booking.tour_id == Tour.id,
                Booking.type == BookingType.TOUR,
                Booking.booking_date.between(period.start_date, period.end_date),
            ),
        )
        .group_by(Tour.id)
        .having(booking_count >= filters.min_bookings)
    )
    if filters.tour_type:
        query = query.filter(Tour.type == filters.tour_type)
    if filters.tour_status:
        query = query.filter(Tour.status == filters.tour_status)

    rows = query.order_by(desc(booking_count), desc(revenue), Tour.id).limit(filters.limit).all()

    tours = [
        TopTour(
            rank=i,
            tour_id=tour.id,
            name=tour.name,
            type=tour.type.value,
            status=tour.status.value,
            price=tour.price,
            booking_count=count,
            guests=int(guest_total),
            revenue=_money(total),
        )
        for i, (tour, count, total, guest_total) in enumerate(rows, start=1)
    ]

    return TopToursReport(
        period=period,
        tours=tours,
        summary=TopToursSummary(
            tours_analyzed=len(tours),
            total_bookings=sum(t.booking_count for t in tours),
            total_revenue=_money(sum(t.revenue for t in tours)),
        ),
    )


# =====================================================================
#                            DASHBOARD STATS
# =====================================================================
def _count(db: Session, model, *conditions) -> int:
    return db.query(func.count(model.id)).filter(*conditions).scalar() or 0


def dashboard_stats(db: Session, ctx: SessionContext) -> dict:
    cache_key = f"dashboard:stats:{ctx.role.value}"
    cached = get_cache(cache_key)
    if cached:
        return cached

    stats = {
        "tours": {
            "total": _count(db, Tour),
            "upcoming": _count(db, Tour, Tour.status == TourStatus.UPCOMING),
            "ongoing": _count(db, Tour, Tour.status == TourStatus.ONGOING),
        },
        "hotels": {
            "total": _count(db, Hotel),
            "availableRooms": _count(db, Room, Room.available.is_(True)),
        },
        "flights": {
            "total": _count(db, Flight),
            "seatsAvailable": int(db.query(func.coalesce(func.sum(Flight.seats_available), 0)).scalar()),
        },
        "destinations": {"total": _count(db, Destination)},
    }

    if ctx.is_staff:
        bookings = {"total": _count(db, Booking)}
        for status in BookingStatus:
            bookings[status.value.lower()] = _count(db, Booking, Booking.status == status)
        stats["bookings"] = bookings

        users = {"total": _count(db, User)}
        for role in UserRole:
            users[role.value.lower()] = _count(db, User, User.role == role)
        stats["users"] = users

    set_cache(cache_key, stats, ttl=DASHBOARD_CACHE_TTL)
    return stats
