from typing import List

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy import String, cast
from sqlalchemy.orm import Session, selectinload

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import admin_only, get_db, staff_only
from travel_app.core.errors import NotFoundError
from travel_app.core.logging_config import admin_logger, get_logger
from travel_app.models.booking import Booking
from travel_app.models.hotel import Hotel, Room
from travel_app.schemas.common import envelope, paginate
from travel_app.schemas.filters import HotelFilters, hotel_filters
from travel_app.schemas.hotel import HotelAvailabilityOut, HotelDetailOut, HotelOut, RoomOut
from travel_app.services.inventory import (
    apply_changes,
    ensure_unbooked,
    get_or_404,
    merged,
    ordered,
    parse_amenities,
    provided,
    require_changes,
    search_filter,
)
from travel_app.services.reporting_service import invalidate_dashboard_cache
from travel_app.utils.images import discard_photo, store_photo
from travel_app.validation.entities import hotel_rules
from travel_app.validation.rules import run_validation

router = APIRouter(prefix="/hotels", tags=["Hotels"])
logger = get_logger()

SORT_COLUMNS = {
    "name": Hotel.name,
    "starRating": Hotel.star_rating,
    "city": Hotel.city,
    "country": Hotel.country,
    "createdAt": Hotel.created_at,
}
FIELDS = (
    "destination_id",
    "name",
    "description",
    "address",
    "city",
    "country",
    "phone",
    "star_rating",
    "amenities",
)


def has_amenity(column, amenity: str):
    # JSON list stored as text on every backend we run on
    return cast(column, String).ilike(f'%"{amenity.strip()}"%')


# =====================================================================
# LIST / GET
# =====================================================================
@router.get("/")
def list_hotels(filters: HotelFilters = Depends(hotel_filters), db: Session = Depends(get_db)):
    query = db.query(Hotel)

    if filters.search:
        query = query.filter(
            search_filter(filters.search, Hotel.name, Hotel.description, Hotel.address, Hotel.city, Hotel.country)
        )
    if filters.destination_id:
        query = query.filter(Hotel.destination_id == filters.destination_id)
    if filters.city:
        query = query.filter(Hotel.city.ilike(f"%{filters.city}%"))
    if filters.country:
        query = query.filter(Hotel.country.ilike(f"%{filters.country}%"))
    if filters.star_rating:
        query = query.filter(Hotel.star_rating == filters.star_rating)
    if filters.min_star_rating:
        query = query.filter(Hotel.star_rating >= filters.min_star_rating)
    if filters.max_star_rating:
        query = query.filter(Hotel.star_rating <= filters.max_star_rating)
    for amenity in filters.amenities:
        query = query.filter(has_amenity(Hotel.amenities, amenity))

    items, meta = paginate(ordered(query, SORT_COLUMNS, filters, Hotel.id), filters.page, filters.limit)
    return envelope("Hotels retrieved successfully", [HotelOut.model_validate(h) for h in items], meta)


@router.get("/{hotel_id}")
def get_hotel(hotel_id: int, db: Session = Depends(get_db)):
    hotel = (
        db.query(Hotel)
        .options(selectinload(Hotel.rooms))
        .filter(Hotel.id == hotel_id)
        .first()
    )
    if not hotel:
        raise NotFoundError("Hotel not found")
    return envelope("Hotel retrieved successfully", HotelDetailOut.model_validate(hotel))


@router.get("/{hotel_id}/availability")
def hotel_availability(
    hotel_id: int,
    guests: int | None = Query(None, ge=1, le=20),
    db: Session = Depends(get_db),
):
    hotel = get_or_404(db, Hotel, hotel_id, "Hotel")

    query = db.query(Room).filter(Room.hotel_id == hotel.id, Room.available.is_(True))
    if guests:
        query = query.filter(Room.capacity >= guests)
    rooms = query.order_by(Room.price, Room.id).all()

    data = HotelAvailabilityOut(
        hotel_id=hotel.id,
        hotel_name=hotel.name,
        guests=guests,
        available_rooms=[RoomOut.model_validate(r) for r in rooms],
    )
    return envelope("Hotel availability retrieved successfully", data)


# =====================================================================
# CREATE (Admin / Agent)
# =====================================================================
@router.post("/", status_code=201)
def create_hotel(
    destination_id: int | None = Form(None, alias="destinationId"),
    name: str | None = Form(None),
    description: str | None = Form(None),
    address: str | None = Form(None),
    city: str | None = Form(None),
    country: str | None = Form(None),
    phone: str | None = Form(None),
    star_rating: int | None = Form(None, alias="starRating"),
    amenities: List[str] | None = Form(None),
    photo: UploadFile | None = File(None),
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    data = {
        "destination_id": destination_id,
        "name": name,
        "description": description,
        "address": address,
        "city": city,
        "country": country,
        "phone": phone,
        "star_rating": star_rating,
        "amenities": parse_amenities(amenities),
    }
    run_validation(data, hotel_rules(db))

    hotel = Hotel(**provided(**data))
    hotel.photo = store_photo(photo, "hotels")

    db.add(hotel)
    db.commit()
    invalidate_dashboard_cache()
    db.refresh(hotel)

    logger.info(f"Hotel Created | ID={hotel.id} | {hotel.name} | By={ctx.email}")
    return envelope("Hotel created successfully", HotelOut.model_validate(hotel))


# =====================================================================
# UPDATE (Admin / Agent)
# =====================================================================
@router.put("/{hotel_id}")
def update_hotel(
    hotel_id: int,
    destination_id: int | None = Form(None, alias="destinationId"),
    name: str | None = Form(None),
    description: str | None = Form(None),
    address: str | None = Form(None),
    city: str | None = Form(None),
    country: str | None = Form(None),
    phone: str | None = Form(None),
    star_rating: int | None = Form(None, alias="starRating"),
    amenities: List[str] | None = Form(None),
    photo: UploadFile | None = File(None),
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    hotel = get_or_404(db, Hotel, hotel_id, "Hotel")

    changes = provided(
        destination_id=destination_id,
        name=name,
        description=description,
        address=address,
        city=city,
        country=country,
        phone=phone,
        star_rating=star_rating,
        amenities=parse_amenities(amenities),
    )
    has_photo = bool(photo and photo.filename)
    require_changes(changes, has_photo)

    if "destination_id" in changes:
        changes.setdefault("name", hotel.name)

    run_validation(changes, hotel_rules(db, current_id=hotel.id), partial=True, context=merged(hotel, changes, FIELDS))

    old_photo = hotel.photo
    if has_photo:
        hotel.photo = store_photo(photo, "hotels")
    apply_changes(hotel, changes)

    db.commit()
    invalidate_dashboard_cache()
    db.refresh(hotel)

    if has_photo:
        discard_photo(old_photo)

    logger.info(f"Hotel Updated | ID={hotel.id} | By={ctx.email}")
    return envelope("Hotel updated successfully", HotelOut.model_validate(hotel))


# =====================================================================
# DELETE
# =====================================================================
def _delete_hotels(db: Session, hotels: list[Hotel]) -> int:
    room_ids = [r.id for h in hotels for r in h.rooms]
    ensure_unbooked(db, Booking.room_id, room_ids, "Hotel rooms")

    photos = [h.photo for h in hotels] + [r.photo for h in hotels for r in h.rooms]
    for hotel in hotels:
        db.delete(hotel)
    db.commit()
    invalidate_dashboard_cache()

    for photo in photos:
        discard_photo(photo)
    return len(hotels)


@router.delete("/{hotel_id}")
def delete_hotel(hotel_id: int, ctx: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    hotel = get_or_404(db, Hotel, hotel_id, "Hotel")
    _delete_hotels(db, [hotel])

    admin_logger.info(f"Hotel Deleted | ID={hotel_id} | By={ctx.email}")
    return envelope("Hotel deleted successfully")


@router.delete("/")
def delete_all_hotels(ctx: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    count = _delete_hotels(db, db.query(Hotel).all())

    admin_logger.warning(f"Bulk Hotel Delete | Count={count} | By={ctx.email}")
    return envelope("All hotels deleted successfully", {"count": count})
