"""
Typed filters for every list, bulk-delete and report endpoint.

Each endpoint gets its own model with a fixed set of optional fields; the
``*_filters`` functions below are the FastAPI dependencies that read them from
the query string (camelCase names, bounds and sort whitelists enforced there).
"""

from datetime import date
from typing import Literal

from fastapi import Query

from travel_app.models.enums import (
    BookingStatus,
    BookingType,
    FlightClass,
    PaymentMethod,
    PaymentStatus,
    TourStatus,
    TourType,
    UserRole,
)
from travel_app.schemas.common import CamelModel

SortOrder = Literal["asc", "desc"]


class PageFilters(CamelModel):
    page: int = 1
    limit: int = 10
    sort_by: str = "createdAt"
    sort_order: SortOrder = "desc"


class DestinationFilters(PageFilters):
    search: str | None = None
    country: str | None = None
    city: str | None = None


class HotelFilters(PageFilters):
    search: str | None = None
    destination_id: int | None = None
    city: str | None = None
    country: str | None = None
    star_rating: int | None = None
    min_star_rating: int | None = None
    max_star_rating: int | None = None
    amenities: list[str] = []


class RoomFilters(PageFilters):
    hotel_id: int | None = None
    room_type: str | None = None
    available: bool | None = None
    min_price: float | None = None
    max_price: float | None = None
    min_capacity: int | None = None
    max_capacity: int | None = None


class FlightFilters(PageFilters):
    search: str | None = None
    airline: str | None = None
    origin_id: int | None = None
    destination_id: int | None = None
    flight_class: FlightClass | None = None
    departure_from: date | None = None
    departure_to: date | None = None
    min_price: float | None = None
    max_price: float | None = None
    max_duration: int | None = None
    max_stops: int | None = None
    min_seats: int | None = None


class TourFilters(PageFilters):
    search: str | None = None
    type: TourType | None = None
    status: TourStatus | None = None
    location: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    start_from: date | None = None
    start_to: date | None = None


class UserFilters(PageFilters):
    search: str | None = None
    role: UserRole | None = None


class BookingFilters(PageFilters):
    status: BookingStatus | None = None
    type: BookingType | None = None
    user_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None


class PaymentFilters(PageFilters):
    status: PaymentStatus | None = None
    payment_method: PaymentMethod | None = None
    user_id: int | None = None
    search: str | None = None


class BookingDeleteFilters(CamelModel):
    status: BookingStatus | None = None
    type: BookingType | None = None
    user_id: int | None = None
    before_date: date | None = None


class PaymentDeleteFilters(CamelModel):
    status: PaymentStatus | None = None
    payment_method: PaymentMethod | None = None
    user_id: int | None = None
    before_date: date | None = None


class ReportPeriodFilters(CamelModel):
    start_date: date | None = None
    end_date: date | None = None
    year: int | None = None
    month: int | None = None


class BookingReportFilters(ReportPeriodFilters):
    tour_id: int | None = None
    user_id: int | None = None
    status: BookingStatus | None = None


class PaymentReportFilters(ReportPeriodFilters):
    payment_method: PaymentMethod | None = None
    status: PaymentStatus | None = None
    user_id: int | None = None
    currency: str | None = None


class TopToursFilters(ReportPeriodFilters):
    min_bookings: int = 1
    limit: int = 5
    tour_type: TourType | None = None
    tour_status: TourStatus | None = None


# ---------- QUERY DEPENDENCIES ----------
def _page(page, limit, sort_by, sort_order):
    return {"page": page, "limit": limit, "sort_by": sort_by, "sort_order": sort_order}


def destination_filters(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = Query(None, min_length=1, max_length=100),
    country: str | None = Query(None, max_length=100),
    city: str | None = Query(None, max_length=100),
    sort_by: Literal["name", "country", "city", "createdAt", "updatedAt"] = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> DestinationFilters:
    return DestinationFilters(search=search, country=country, city=city, **_page(page, limit, sort_by, sort_order))


def hotel_filters(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = Query(None, min_length=1, max_length=100),
    destination_id: int | None = Query(None, alias="destinationId", ge=1),
    city: str | None = Query(None),
    country: str | None = Query(None),
    star_rating: int | None = Query(None, alias="starRating", ge=1, le=5),
    min_star_rating: int | None = Query(None, alias="minStarRating", ge=1, le=5),
    max_star_rating: int | None = Query(None, alias="maxStarRating", ge=1, le=5),
    amenities: list[str] = Query([]),
    sort_by: Literal["name", "starRating", "city", "country", "createdAt"] = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> HotelFilters:
    return HotelFilters(
        search=search,
        destination_id=destination_id,
        city=city,
        country=country,
        star_rating=star_rating,
        min_star_rating=min_star_rating,
        max_star_rating=max_star_rating,
        amenities=amenities,
        **_page(page, limit, sort_by, sort_order),
    )


def room_filters(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    hotel_id: int | None = Query(None, alias="hotelId", ge=1),
    room_type: str | None = Query(None, alias="roomType"),
    available: bool | None = Query(None),
    min_price: float | None = Query(None, alias="minPrice", ge=0),
    max_price: float | None = Query(None, alias="maxPrice", ge=0),
    min_capacity: int | None = Query(None, alias="minCapacity", ge=1),
    max_capacity: int | None = Query(None, alias="maxCapacity", ge=1),
    sort_by: Literal["price", "capacity", "createdAt"] = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> RoomFilters:
    return RoomFilters(
        hotel_id=hotel_id,
        room_type=room_type,
        available=available,
        min_price=min_price,
        max_price=max_price,
        min_capacity=min_capacity,
        max_capacity=max_capacity,
        **_page(page, limit, sort_by, sort_order),
    )


def flight_filters(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = Query(None, min_length=1, max_length=100),
    airline: str | None = Query(None, min_length=2, max_length=100),
    origin_id: int | None = Query(None, alias="originId", ge=1),
    destination_id: int | None = Query(None, alias="destinationId", ge=1),
    flight_class: FlightClass | None = Query(None, alias="flightClass"),
    departure_from: date | None = Query(None, alias="departureFrom"),
    departure_to: date | None = Query(None, alias="departureTo"),
    min_price: float | None = Query(None, alias="minPrice", ge=0),
    max_price: float | None = Query(None, alias="maxPrice", ge=0),
    max_duration: int | None = Query(None, alias="maxDuration", ge=30, le=1440),
    max_stops: int | None = Query(None, alias="maxStops", ge=0, le=5),
    min_seats: int | None = Query(None, alias="minSeats", ge=1, le=850),
    sort_by: Literal["departure", "arrival", "price", "duration", "airline", "flightNumber", "createdAt"] = Query(
        "departure", alias="sortBy"
    ),
    sort_order: SortOrder = Query("asc", alias="sortOrder"),
) -> FlightFilters:
    return FlightFilters(
        search=search,
        airline=airline,
        origin_id=origin_id,
        destination_id=destination_id,
        flight_class=flight_class,
        departure_from=departure_from,
        departure_to=departure_to,
        min_price=min_price,
        max_price=max_price,
        max_duration=max_duration,
        max_stops=max_stops,
        min_seats=min_seats,
        **_page(page, limit, sort_by, sort_order),
    )


def tour_filters(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = Query(None, min_length=1, max_length=100),
    type: TourType | None = Query(None),
    status: TourStatus | None = Query(None),
    location: str | None = Query(None),
    min_price: float | None = Query(None, alias="minPrice", ge=0),
    max_price: float | None = Query(None, alias="maxPrice", ge=0),
    start_from: date | None = Query(None, alias="startFrom"),
    start_to: date | None = Query(None, alias="startTo"),
    sort_by: Literal["name", "price", "startDate", "duration", "createdAt"] = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> TourFilters:
    return TourFilters(
        search=search,
        type=type,
        status=status,
        location=location,
        min_price=min_price,
        max_price=max_price,
        start_from=start_from,
        start_to=start_to,
        **_page(page, limit, sort_by, sort_order),
    )


def user_filters(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = Query(None, min_length=1, max_length=100),
    role: UserRole | None = Query(None),
    sort_by: Literal["name", "email", "role", "createdAt"] = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> UserFilters:
    return UserFilters(search=search, role=role, **_page(page, limit, sort_by, sort_order))


def booking_filters(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: BookingStatus | None = Query(None),
    type: BookingType | None = Query(None),
    filter_user_id: int | None = Query(None, alias="userId", ge=1),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    sort_by: Literal["createdAt", "bookingDate", "totalPrice", "status"] = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> BookingFilters:
    return BookingFilters(
        status=status,
        type=type,
        user_id=filter_user_id,
        start_date=start_date,
        end_date=end_date,
        **_page(page, limit, sort_by, sort_order),
    )


def payment_filters(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: PaymentStatus | None = Query(None),
    payment_method: PaymentMethod | None = Query(None, alias="paymentMethod"),
    filter_user_id: int | None = Query(None, alias="userId", ge=1),
    search: str | None = Query(None, min_length=1, max_length=100),
    sort_by: Literal["createdAt", "amount", "status", "paymentDate"] = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> PaymentFilters:
    return PaymentFilters(
        status=status,
        payment_method=payment_method,
        user_id=filter_user_id,
        search=search,
        **_page(page, limit, sort_by, sort_order),
    )


def booking_delete_filters(
    status: BookingStatus | None = Query(None),
    type: BookingType | None = Query(None),
    filter_user_id: int | None = Query(None, alias="userId", ge=1),
    before_date: date | None = Query(None, alias="beforeDate"),
) -> BookingDeleteFilters:
    return BookingDeleteFilters(status=status, type=type, user_id=filter_user_id, before_date=before_date)


def payment_delete_filters(
    status: PaymentStatus | None = Query(None),
    payment_method: PaymentMethod | None = Query(None, alias="paymentMethod"),
    filter_user_id: int | None = Query(None, alias="userId", ge=1),
    before_date: date | None = Query(None, alias="beforeDate"),
) -> PaymentDeleteFilters:
    return PaymentDeleteFilters(status=status, payment_method=payment_method, user_id=filter_user_id, before_date=before_date)


def booking_report_filters(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    year: int | None = Query(None, ge=2000, le=2100),
    month: int | None = Query(None, ge=1, le=12),
    tour_id: int | None = Query(None, alias="tourId", ge=1),
    filter_user_id: int | None = Query(None, alias="userId", ge=1),
    status: BookingStatus | None = Query(None),
) -> BookingReportFilters:
    return BookingReportFilters(
        start_date=start_date,
        end_date=end_date,
        year=year,
        month=month,
        tour_id=tour_id,
        user_id=filter_user_id,
        status=status,
    )


def payment_report_filters(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    year: int | None = Query(None, ge=2000, le=2100),
    month: int | None = Query(None, ge=1, le=12),
    payment_method: PaymentMethod | None = Query(None, alias="paymentMethod"),
    status: PaymentStatus | None = Query(None),
    filter_user_id: int | None = Query(None, alias="userId", ge=1),
    currency: str | None = Query(None, min_length=3, max_length=3),
) -> PaymentReportFilters:
    return PaymentReportFilters(
        start_date=start_date,
        end_date=end_date,
        year=year,
        month=month,
        payment_method=payment_method,
        status=status,
        user_id=filter_user_id,
        currency=currency.upper() if currency else None,
    )


def top_tours_filters(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    year: int | None = Query(None, ge=2000, le=2100),
    month: int | None = Query(None, ge=1, le=12),
    min_bookings: int = Query(1, alias="minBookings", ge=0),
    limit: int = Query(5, ge=1, le=50),
    tour_type: TourType | None = Query(None, alias="tourType"),
    tour_status: TourStatus | None = Query(None, alias="tourStatus"),
) -> TopToursFilters:
    return TopToursFilters(
        start_date=start_date,
        end_date=end_date,
        year=year,
        month=month,
        min_bookings=min_bookings,
        limit=limit,
        tour_type=tour_type,
        tour_status=tour_status,
    )
