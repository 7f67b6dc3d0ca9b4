from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import admin_only, get_current_session, get_db, staff_only
from travel_app.schemas.booking import BookingCreate, BookingOut, BookingStatusUpdate
from travel_app.schemas.common import envelope
from travel_app.schemas.filters import BookingDeleteFilters, BookingFilters, booking_delete_filters, booking_filters
from travel_app.services import booking_service

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", status_code=201)
def create_booking(
    body: BookingCreate,
    ctx: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    booking = booking_service.create_booking(db, ctx, body)
    return envelope("Booking created successfully", BookingOut.model_validate(booking))


@router.get("/")
def list_bookings(
    filters: BookingFilters = Depends(booking_filters),
    ctx: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    items, meta = booking_service.list_bookings(db, ctx, filters)
    return envelope("Bookings retrieved successfully", [BookingOut.model_validate(b) for b in items], meta)


@router.get("/{booking_id}")
def get_booking(
    booking_id: int,
    ctx: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    booking = booking_service.get_booking(db, ctx, booking_id)
    return envelope("Booking retrieved successfully", BookingOut.model_validate(booking))


@router.put("/{booking_id}")
def update_booking_status(
    booking_id: int,
    body: BookingStatusUpdate,
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    booking = booking_service.update_booking_status(db, ctx, booking_id, body.status)
    return envelope("Booking status updated successfully", BookingOut.model_validate(booking))


@router.delete("/{booking_id}")
def delete_booking(
    booking_id: int,
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    booking_service.delete_booking(db, ctx, booking_id)
    return envelope("Booking deleted successfully")


@router.delete("/")
def delete_all_bookings(
    filters: BookingDeleteFilters = Depends(booking_delete_filters),
    ctx: SessionContext = Depends(admin_only),
    db: Session = Depends(get_db),
):
    count = booking_service.delete_all_bookings(db, ctx, filters)
    return envelope("Bookings deleted successfully", {"count": count})
