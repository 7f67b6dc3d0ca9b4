from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session, joinedload

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import admin_only, get_db, staff_only
from travel_app.core.errors import NotFoundError
from travel_app.core.logging_config import admin_logger, get_logger
from travel_app.models.booking import Booking
from travel_app.models.enums import FlightClass
from travel_app.models.flight import Flight
from travel_app.schemas.common import envelope, paginate
from travel_app.schemas.filters import FlightFilters, flight_filters
from travel_app.schemas.flight import FlightOut
from travel_app.services.inventory import (
    apply_changes,
    ensure_unbooked,
    get_or_404,
    merged,
    ordered,
    provided,
    require_changes,
    search_filter,
)
from travel_app.services.reporting_service import invalidate_dashboard_cache
from travel_app.utils.dates import end_of_day, start_of_day, to_naive_utc
from travel_app.utils.images import discard_photo, store_photo
from travel_app.utils.pricing import minutes_between
from travel_app.validation.entities import flight_rules
from travel_app.validation.rules import run_validation

router = APIRouter(prefix="/flights", tags=["Flights"])
logger = get_logger()

SORT_COLUMNS = {
    "departure": Flight.departure,
    "arrival": Flight.arrival,
    "price": Flight.price,
    "duration": Flight.duration,
    "airline": Flight.airline,
    "flightNumber": Flight.flight_number,
    "createdAt": Flight.created_at,
}
FIELDS = (
    "flight_number",
    "airline",
    "departure",
    "arrival",
    "origin_id",
    "destination_id",
    "price",
    "flight_class",
    "stops",
    "seats_available",
)


def _with_places(query):
    return query.options(joinedload(Flight.origin), joinedload(Flight.destination))


def _normalize(value: datetime | None):
    return to_naive_utc(value) if value else None


# =====================================================================
# LIST / GET
# =====================================================================
@router.get("/")
def list_flights(filters: FlightFilters = Depends(flight_filters), db: Session = Depends(get_db)):
    query = _with_places(db.query(Flight))

    if filters.search:
        query = query.filter(search_filter(filters.search, Flight.flight_number, Flight.airline))
    if filters.airline:
        query = query.filter(Flight.airline.ilike(f"%{filters.airline}%"))
    if filters.origin_id:
        query = query.filter(Flight.origin_id == filters.origin_id)
    if filters.destination_id:
        query = query.filter(Flight.destination_id == filters.destination_id)
    if filters.flight_class:
        query = query.filter(Flight.flight_class == filters.flight_class)
    if filters.departure_from:
        query = query.filter(Flight.departure >= start_of_day(filters.departure_from))
    if filters.departure_to:
        query = query.filter(Flight.departure <= end_of_day(filters.departure_to))
    if filters.min_price is not None:
        query = query.filter(Flight.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.filter(Flight.price <= filters.max_price)
    if filters.max_duration:
        query = query.filter(Flight.duration <= filters.max_duration)
    if filters.max_stops is not None:
        query = query.filter(Flight.stops <= filters.max_stops)
    if filters.min_seats:
        query = query.filter(Flight.seats_available >= filters.min_seats)

    items, meta = paginate(ordered(query, SORT_COLUMNS, filters, Flight.id), filters.page, filters.limit)
    return envelope("Flights retrieved successfully", [FlightOut.model_validate(f) for f in items], meta)


@router.get("/{flight_id}")
def get_flight(flight_id: int, db: Session = Depends(get_db)):
    flight = _with_places(db.query(Flight)).filter(Flight.id == flight_id).first()
    if not flight:
        raise NotFoundError("Flight not found")
    return envelope("Flight retrieved successfully", FlightOut.model_validate(flight))


# =====================================================================
# CREATE (Admin / Agent)
# =====================================================================
@router.post("/", status_code=201)
def create_flight(
    flight_number: str | None = Form(None, alias="flightNumber"),
    airline: str | None = Form(None),
    departure: datetime | None = Form(None),
    arrival: datetime | None = Form(None),
    origin_id: int | None = Form(None, alias="originId"),
    destination_id: int | None = Form(None, alias="destinationId"),
    price: float | None = Form(None),
    flight_class: FlightClass | None = Form(None, alias="flightClass"),
    stops: int | None = Form(None),
    seats_available: int | None = Form(None, alias="seatsAvailable"),
    photo: UploadFile | None = File(None),
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    data = {
        "flight_number": flight_number.strip().upper() if flight_number else None,
        "airline": airline,
        "departure": _normalize(departure),
        "arrival": _normalize(arrival),
        "origin_id": origin_id,
        "destination_id": destination_id,
        "price": price,
        "flight_class": flight_class,
        "stops": stops,
        "seats_available": seats_available,
    }
    run_validation(data, flight_rules(db))

    flight = Flight(**provided(**data))
    flight.duration = minutes_between(flight.departure, flight.arrival)
    flight.photo = store_photo(photo, "flights")

    db.add(flight)
    db.commit()
    invalidate_dashboard_cache()

    flight = _with_places(db.query(Flight)).filter(Flight.id == flight.id).first()
    logger.info(f"Flight Created | ID={flight.id} | {flight.flight_number} | By={ctx.email}")
    return envelope("Flight created successfully", FlightOut.model_validate(flight))


# =====================================================================
# UPDATE (Admin / Agent)
# =====================================================================
@router.put("/{flight_id}")
def update_flight(
    flight_id: int,
    flight_number: str | None = Form(None, alias="flightNumber"),
    airline: str | None = Form(None),
    departure: datetime | None = Form(None),
    arrival: datetime | None = Form(None),
    origin_id: int | None = Form(None, alias="originId"),
    destination_id: int | None = Form(None, alias="destinationId"),
    price: float | None = Form(None),
    flight_class: FlightClass | None = Form(None, alias="flightClass"),
    stops: int | None = Form(None),
    seats_available: int | None = Form(None, alias="seatsAvailable"),
    photo: UploadFile | None = File(None),
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    flight = get_or_404(db, Flight, flight_id, "Flight")

    changes = provided(
        flight_number=flight_number.strip().upper() if flight_number else None,
        airline=airline,
        departure=_normalize(departure),
        arrival=_normalize(arrival),
        origin_id=origin_id,
        destination_id=destination_id,
        price=price,
        flight_class=flight_class,
        stops=stops,
        seats_available=seats_available,
    )
    has_photo = bool(photo and photo.filename)
    require_changes(changes, has_photo)

    # Schedule and route are checked as a whole whenever one side changes
    if "departure" in changes:
        changes.setdefault("arrival", flight.arrival)
    if "origin_id" in changes:
        changes.setdefault("destination_id", flight.destination_id)

    run_validation(
        changes,
        flight_rules(db, current_id=flight.id),
        partial=True,
        context=merged(flight, changes, FIELDS),
    )

    old_photo = flight.photo
    if has_photo:
        flight.photo = store_photo(photo, "flights")
    apply_changes(flight, changes)
    flight.duration = minutes_between(flight.departure, flight.arrival)

    db.commit()
    invalidate_dashboard_cache()

    flight = _with_places(db.query(Flight)).filter(Flight.id == flight_id).first()
    if has_photo:
        discard_photo(old_photo)

    logger.info(f"Flight Updated | ID={flight.id} | By={ctx.email}")
    return envelope("Flight updated successfully", FlightOut.model_validate(flight))


# =====================================================================
# DELETE
# =====================================================================
@router.delete("/{flight_id}")
def delete_flight(flight_id: int, ctx: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    flight = get_or_404(db, Flight, flight_id, "Flight")
    ensure_unbooked(db, Booking.flight_id, [flight.id], "Flights")

    photo = flight.photo
    db.delete(flight)
    db.commit()
    invalidate_dashboard_cache()
    discard_photo(photo)

    admin_logger.info(f"Flight Deleted | ID={flight_id} | By={ctx.email}")
    return envelope("Flight deleted successfully")


@router.delete("/")
def delete_all_flights(ctx: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    flights = db.query(Flight).all()
    ensure_unbooked(db, Booking.flight_id, [f.id for f in flights], "Flights")

    photos = [f.photo for f in flights]
    for flight in flights:
        db.delete(flight)
    db.commit()
    invalidate_dashboard_cache()

    for photo in photos:
        discard_photo(photo)

    admin_logger.warning(f"Bulk Flight Delete | Count={len(flights)} | By={ctx.email}")
    return envelope("All flights deleted successfully", {"count": len(flights)})
