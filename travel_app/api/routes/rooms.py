from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import admin_only, get_db, staff_only
from travel_app.core.errors import ConflictError
from travel_app.core.logging_config import admin_logger, get_logger
from travel_app.models.booking import Booking
from travel_app.models.hotel import Room
from travel_app.schemas.common import envelope, paginate
from travel_app.schemas.filters import RoomFilters, room_filters
from travel_app.schemas.hotel import RoomOut
from travel_app.services.inventory import (
    apply_changes,
    ensure_unbooked,
    get_or_404,
    has_active_bookings,
    merged,
    ordered,
    parse_amenities,
    provided,
    require_changes,
)
from travel_app.services.reporting_service import invalidate_dashboard_cache
from travel_app.utils.images import discard_photo, store_photo
from travel_app.validation.entities import room_rules
from travel_app.validation.rules import run_validation

router = APIRouter(prefix="/rooms", tags=["Rooms"])
logger = get_logger()

SORT_COLUMNS = {"price": Room.price, "capacity": Room.capacity, "createdAt": Room.created_at}
FIELDS = ("hotel_id", "room_type", "description", "price", "capacity", "amenities")


@router.get("/")
def list_rooms(filters: RoomFilters = Depends(room_filters), db: Session = Depends(get_db)):
    query = db.query(Room)

    if filters.hotel_id:
        query = query.filter(Room.hotel_id == filters.hotel_id)
    if filters.room_type:
        query = query.filter(Room.room_type.ilike(f"%{filters.room_type}%"))
    if filters.available is not None:
        query = query.filter(Room.available.is_(filters.available))
    if filters.min_price is not None:
        query = query.filter(Room.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.filter(Room.price <= filters.max_price)
    if filters.min_capacity:
        query = query.filter(Room.capacity >= filters.min_capacity)
    if filters.max_capacity:
        query = query.filter(Room.capacity <= filters.max_capacity)

    items, meta = paginate(ordered(query, SORT_COLUMNS, filters, Room.id), filters.page, filters.limit)
    return envelope("Rooms retrieved successfully", [RoomOut.model_validate(r) for r in items], meta)


@router.get("/{room_id}")
def get_room(room_id: int, db: Session = Depends(get_db)):
    room = get_or_404(db, Room, room_id, "Room")
    return envelope("Room retrieved successfully", RoomOut.model_validate(room))


@router.post("/", status_code=201)
def create_room(
    hotel_id: int | None = Form(None, alias="hotelId"),
    room_type: str | None = Form(None, alias="roomType"),
    description: str | None = Form(None),
    price: float | None = Form(None),
    capacity: int | None = Form(None),
    amenities: List[str] | None = Form(None),
    available: bool | None = Form(None),
    photo: UploadFile | None = File(None),
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    data = {
        "hotel_id": hotel_id,
        "room_type": room_type,
        "description": description,
        "price": price,
        "capacity": capacity,
        "amenities": parse_amenities(amenities),
    }
    run_validation(data, room_rules(db))

    room = Room(**provided(available=available, **data))
    room.photo = store_photo(photo, "rooms")

    db.add(room)
    db.commit()
    invalidate_dashboard_cache()
    db.refresh(room)

    logger.info(f"Room Created | ID={room.id} | Hotel={room.hotel_id} | By={ctx.email}")
    return envelope("Room created successfully", RoomOut.model_validate(room))


@router.put("/{room_id}")
def update_room(
    room_id: int,
    hotel_id: int | None = Form(None, alias="hotelId"),
    room_type: str | None = Form(None, alias="roomType"),
    description: str | None = Form(None),
    price: float | None = Form(None),
    capacity: int | None = Form(None),
    amenities: List[str] | None = Form(None),
    available: bool | None = Form(None),
    photo: UploadFile | None = File(None),
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    room = get_or_404(db, Room, room_id, "Room")

    changes = provided(
        hotel_id=hotel_id,
        room_type=room_type,
        description=description,
        price=price,
        capacity=capacity,
        amenities=parse_amenities(amenities),
    )
    has_photo = bool(photo and photo.filename)
    require_changes(changes if available is None else {**changes, "available": available}, has_photo)

    run_validation(changes, room_rules(db), partial=True, context=merged(room, changes, FIELDS))

    # Availability of a booked room is owned by its bookings
    if available is not None and available != room.available:
        if has_active_bookings(db, Booking.room_id, room.id):
            raise ConflictError("Room has active bookings; its availability follows those bookings")
        changes["available"] = available
    if "hotel_id" in changes and changes["hotel_id"] != room.hotel_id and has_active_bookings(db, Booking.room_id, room.id):
        raise ConflictError("Room with active bookings cannot be moved to another hotel")

    old_photo = room.photo
    if has_photo:
        room.photo = store_photo(photo, "rooms")
    apply_changes(room, changes)

    db.commit()
    invalidate_dashboard_cache()
    db.refresh(room)

    if has_photo:
        discard_photo(old_photo)

    logger.info(f"Room Updated | ID={room.id} | By={ctx.email}")
    return envelope("Room updated successfully", RoomOut.model_validate(room))


@router.delete("/{room_id}")
def delete_room(room_id: int, ctx: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    room = get_or_404(db, Room, room_id, "Room")
    ensure_unbooked(db, Booking.room_id, [room.id], "Rooms")

    photo = room.photo
    db.delete(room)
    db.commit()
    invalidate_dashboard_cache()
    discard_photo(photo)

    admin_logger.info(f"Room Deleted | ID={room_id} | By={ctx.email}")
    return envelope("Room deleted successfully")


@router.delete("/")
def delete_all_rooms(ctx: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    rooms = db.query(Room).all()
    ensure_unbooked(db, Booking.room_id, [r.id for r in rooms], "Rooms")

    photos = [r.photo for r in rooms]
    for room in rooms:
        db.delete(room)
    db.commit()
    invalidate_dashboard_cache()

    for photo in photos:
        discard_photo(photo)

    admin_logger.warning(f"Bulk Room Delete | Count={len(rooms)} | By={ctx.email}")
    return envelope("All rooms deleted successfully", {"count": len(rooms)})
