"""
Booking lifecycle.

A booking targets exactly one tour, room or flight. Capacity is reserved when
the booking is written (PENDING) and released when it is cancelled or deleted
while still active. A room is also handed back once the stay is COMPLETED.
Both the reservation and every status change are conditional UPDATEs
(check-and-set) executed in the same transaction as the booking write, so
concurrent requests cannot oversell a tour or flight, or apply the same
transition twice.
"""

from dataclasses import dataclass
from typing import Callable

from sqlalchemy import asc, desc
from sqlalchemy.orm import Session, joinedload

from travel_app.core.context import SessionContext
from travel_app.core.errors import (
    CapacityExceededError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
)
from travel_app.core.logging_config import admin_logger, booking_logger
from travel_app.models.booking import Booking
from travel_app.models.enums import (
    ACTIVE_BOOKING_STATUSES,
    BOOKING_TRANSITIONS,
    BookingStatus,
    BookingType,
    PaymentStatus,
    TourStatus,
)
from travel_app.models.flight import Flight
from travel_app.models.hotel import Room
from travel_app.models.payment import Payment
from travel_app.models.tour import Tour
from travel_app.schemas.booking import BookingCreate, BookingTarget
from travel_app.schemas.common import paginate
from travel_app.schemas.filters import BookingDeleteFilters, BookingFilters
from travel_app.services.reporting_service import invalidate_dashboard_cache
from travel_app.utils.dates import end_of_day, start_of_day, utcnow
from travel_app.utils.pricing import calculate_total_price
from travel_app.validation.entities import booking_rules, booking_status_rules
from travel_app.validation.rules import run_validation

SORT_COLUMNS = {
    "createdAt": Booking.created_at,
    "bookingDate": Booking.booking_date,
    "totalPrice": Booking.total_price,
    "status": Booking.status,
}


# =====================================================================
#                        CAPACITY PER BOOKABLE KIND
# =====================================================================
def _reserve_tour(db: Session, tour: Tour, quantity: int):
    if tour.status in (TourStatus.COMPLETED, TourStatus.CANCELLED):
        raise ConflictError(f"Tour is {tour.status.value.lower()} and cannot be booked")

    updated = (
        db.query(Tour)
        .filter(Tour.id == tour.id, Tour.guests_booked + quantity <= Tour.max_guests)
        .update({Tour.guests_booked: Tour.guests_booked + quantity}, synchronize_session=False)
    )
    if not updated:
        raise CapacityExceededError(f"Only {tour.available_slots} guest slot(s) left on this tour")


def _release_tour(db: Session, tour_id: int, quantity: int):
    db.query(Tour).filter(Tour.id == tour_id, Tour.guests_booked >= quantity).update(
        {Tour.guests_booked: Tour.guests_booked - quantity}, synchronize_session=False
    )


def _reserve_room(db: Session, room: Room, quantity: int):
    updated = (
        db.query(Room)
        .filter(Room.id == room.id, Room.available.is_(True))
        .update({Room.available: False}, synchronize_session=False)
    )
    if not updated:
        raise CapacityExceededError("Room is not available")


def _release_room(db: Session, room_id: int, quantity: int):
    db.query(Room).filter(Room.id == room_id).update({Room.available: True}, synchronize_session=False)


def _reserve_flight(db: Session, flight: Flight, quantity: int):
    if flight.departure <= utcnow():
        raise ConflictError("Flight has already departed")

    updated = (
        db.query(Flight)
        .filter(Flight.id == flight.id, Flight.seats_available >= quantity)
        .update({Flight.seats_available: Flight.seats_available - quantity}, synchronize_session=False)
    )
    if not updated:
        raise CapacityExceededError(f"Only {flight.seats_available} seat(s) left on this flight")


def _release_flight(db: Session, flight_id: int, quantity: int):
    db.query(Flight).filter(Flight.id == flight_id).update(
        {Flight.seats_available: Flight.seats_available + quantity}, synchronize_session=False
    )


@dataclass(frozen=True)
class BookableKind:
    model: type
    label: str
    field: str
    reserve: Callable
    release: Callable
    # Rooms are held for the stay only; tours and flights keep consumed capacity
    release_on_completion: bool = False


BOOKABLES = {
    BookingType.TOUR: BookableKind(Tour, "Tour", "tour_id", _reserve_tour, _release_tour),
    BookingType.ROOM: BookableKind(Room, "Room", "room_id", _reserve_room, _release_room, release_on_completion=True),
    BookingType.FLIGHT: BookableKind(Flight, "Flight", "flight_id", _reserve_flight, _release_flight),
}


def _bookable(kind: BookingType) -> BookableKind:
    try:
        return BOOKABLES[kind]
    except KeyError:
        raise InvalidInputError(f"Unsupported booking type: {kind}")


def release_capacity(db: Session, booking: Booking):
    """Give back whatever an active booking was holding. Caller commits."""
    if booking.status not in ACTIVE_BOOKING_STATUSES:
        return
    _bookable(booking.type).release(db, booking.target_id, booking.quantity)


# =====================================================================
#                               CREATE
# =====================================================================
def create_booking(db: Session, ctx: SessionContext, data: BookingCreate) -> Booking:
    target: BookingTarget = data.target()
    quantity = data.quantity if data.quantity is not None else 1

    user_id = data.user_id or ctx.user_id
    if user_id != ctx.user_id and not ctx.is_staff:
        raise ForbiddenError("You can only create bookings for yourself")

    run_validation({"user_id": user_id, "quantity": quantity}, booking_rules(db))

    kind = _bookable(target.kind)
    entity = db.get(kind.model, target.entity_id)
    if not entity:
        raise NotFoundError(f"{kind.label} not found")

    try:
        kind.reserve(db, entity, quantity)

        booking = Booking(
            user_id=user_id,
            type=target.kind,
            quantity=quantity,
            status=BookingStatus.PENDING,
            total_price=calculate_total_price(entity.price, quantity),
            booking_date=utcnow(),
            **{kind.field: target.entity_id},
        )
        db.add(booking)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    invalidate_dashboard_cache()

    booking_logger.info(
        f"Booking Created | ID={booking.id} | User={user_id} | {target.kind.value}={target.entity_id} "
        f"| Qty={quantity} | Total={booking.total_price}"
    )
    return booking


# =====================================================================
#                           STATUS TRANSITIONS
# =====================================================================
def has_completed_payment(db: Session, booking_id: int) -> bool:
    return (
        db.query(Payment.id)
        .filter(Payment.booking_id == booking_id, Payment.status == PaymentStatus.COMPLETED)
        .first()
        is not None
    )


def apply_transition(db: Session, booking: Booking, new_status: BookingStatus) -> bool:
    """
    Move a booking to ``new_status`` if its stored status still matches what we
    loaded. Returns False when another request changed it first; nothing is
    applied in that case. Caller commits.
    """
    current = booking.status
    if new_status not in BOOKING_TRANSITIONS[current]:
        raise InvalidStateTransitionError(
            f"Cannot change booking status from {current.value} to {new_status.value}"
        )

    if new_status == BookingStatus.COMPLETED and not has_completed_payment(db, booking.id):
        raise ConflictError("A booking can only be completed once it has a completed payment")

    updated = (
        db.query(Booking)
        .filter(Booking.id == booking.id, Booking.status == current)
        .update({Booking.status: new_status}, synchronize_session=False)
    )
    if not updated:
        return False

    kind = _bookable(booking.type)
    if new_status == BookingStatus.CANCELLED or (new_status == BookingStatus.COMPLETED and kind.release_on_completion):
        kind.release(db, booking.target_id, booking.quantity)

    return True


def update_booking_status(db: Session, ctx: SessionContext, booking_id: int, new_status) -> Booking:
    run_validation({"status": new_status}, booking_status_rules())
    new_status = BookingStatus(new_status)

    booking = db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")

    previous = booking.status
    try:
        if not apply_transition(db, booking, new_status):
            raise InvalidStateTransitionError("Booking status was changed by another request, reload and retry")
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    invalidate_dashboard_cache()

    booking_logger.info(
        f"Booking Status Changed | ID={booking.id} | {previous.value} -> {new_status.value} | By={ctx.email}"
    )
    return booking


# =====================================================================
#                               READ
# =====================================================================
def get_booking(db: Session, ctx: SessionContext, booking_id: int) -> Booking:
    booking = (
        db.query(Booking)
        .options(joinedload(Booking.user))
        .filter(Booking.id == booking_id)
        .first()
    )
    if not booking:
        raise NotFoundError("Booking not found")
    if not ctx.can_access(booking.user_id):
        raise ForbiddenError("You can only view your own bookings")
    return booking


def _filtered(db: Session, ctx: SessionContext, filters):
    query = db.query(Booking)

    user_id = filters.user_id if ctx.is_staff else ctx.user_id
    if user_id:
        query = query.filter(Booking.user_id == user_id)
    if filters.status:
        query = query.filter(Booking.status == filters.status)
    if filters.type:
        query = query.filter(Booking.type == filters.type)
    return query


def list_bookings(db: Session, ctx: SessionContext, filters: BookingFilters):
    query = _filtered(db, ctx, filters).options(joinedload(Booking.user))

    if filters.start_date:
        query = query.filter(Booking.booking_date >= start_of_day(filters.start_date))
    if filters.end_date:
        query = query.filter(Booking.booking_date <= end_of_day(filters.end_date))

    order = asc if filters.sort_order == "asc" else desc
    query = query.order_by(order(SORT_COLUMNS[filters.sort_by]), order(Booking.id))

    return paginate(query, filters.page, filters.limit)


# =====================================================================
#                               DELETE
# =====================================================================
def _ensure_deletable(db: Session, booking: Booking):
    if has_completed_payment(db, booking.id):
        raise ConflictError(f"Booking {booking.id} has a completed payment; refund it before deleting")


def delete_booking(db: Session, ctx: SessionContext, booking_id: int):
    booking = db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")

    _ensure_deletable(db, booking)

    try:
        release_capacity(db, booking)
        db.delete(booking)
        db.commit()
    except Exception:
        db.rollback()
        raise

    invalidate_dashboard_cache()
    admin_logger.info(f"Booking Deleted | ID={booking_id} | By={ctx.email}")


def delete_all_bookings(db: Session, ctx: SessionContext, filters: BookingDeleteFilters) -> int:
    query = _filtered(db, ctx, filters)
    if filters.before_date:
        query = query.filter(Booking.booking_date < start_of_day(filters.before_date))

    bookings = query.all()
    blocked = [b.id for b in bookings if has_completed_payment(db, b.id)]
    if blocked:
        raise ConflictError(
            "Some bookings have completed payments; refund them before deleting",
            {"bookingIds": ", ".join(str(i) for i in blocked)},
        )

    try:
        for booking in bookings:
            release_capacity(db, booking)
            db.delete(booking)
        db.commit()
    except Exception:
        db.rollback()
        raise

    invalidate_dashboard_cache()
    admin_logger.warning(f"Bulk Booking Delete | Count={len(bookings)} | By={ctx.email}")
    return len(bookings)
