from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy import or_
from sqlalchemy.orm import Session

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import admin_only, get_db, staff_only
from travel_app.core.errors import ConflictError
from travel_app.core.logging_config import admin_logger, get_logger
from travel_app.models.destination import Destination
from travel_app.models.flight import Flight
from travel_app.models.hotel import Hotel
from travel_app.schemas.common import envelope, paginate
from travel_app.schemas.destination import DestinationOut
from travel_app.schemas.filters import DestinationFilters, destination_filters
from travel_app.services.inventory import (
    apply_changes,
    get_or_404,
    merged,
    ordered,
    provided,
    require_changes,
    search_filter,
)
from travel_app.services.reporting_service import invalidate_dashboard_cache
from travel_app.utils.images import discard_photo, store_photo
from travel_app.validation.entities import destination_rules
from travel_app.validation.rules import run_validation

router = APIRouter(prefix="/destinations", tags=["Destinations"])
logger = get_logger()

SORT_COLUMNS = {
    "name": Destination.name,
    "country": Destination.country,
    "city": Destination.city,
    "createdAt": Destination.created_at,
    "updatedAt": Destination.updated_at,
}
FIELDS = ("name", "description", "country", "city")


def dependents_of(db: Session, ids: list[int]) -> dict[int, str]:
    """Destination id -> what still points at it (hotels / flights)."""
    blocked = {}
    for (dest_id,) in db.query(Hotel.destination_id).filter(Hotel.destination_id.in_(ids)).distinct():
        blocked[dest_id] = "hotels"
    flights = db.query(Flight.origin_id, Flight.destination_id).filter(
        or_(Flight.origin_id.in_(ids), Flight.destination_id.in_(ids))
    )
    for origin_id, destination_id in flights:
        for dest_id in (origin_id, destination_id):
            if dest_id in ids:
                blocked[dest_id] = "hotels and flights" if blocked.get(dest_id) == "hotels" else "flights"
    return blocked


# =====================================================================
# LIST / GET
# =====================================================================
@router.get("/")
def list_destinations(filters: DestinationFilters = Depends(destination_filters), db: Session = Depends(get_db)):
    query = db.query(Destination)

    if filters.search:
        query = query.filter(
            search_filter(filters.search, Destination.name, Destination.description, Destination.country, Destination.city)
        )
    if filters.country:
        query = query.filter(Destination.country.ilike(f"%{filters.country}%"))
    if filters.city:
        query = query.filter(Destination.city.ilike(f"%{filters.city}%"))

    items, meta = paginate(ordered(query, SORT_COLUMNS, filters, Destination.id), filters.page, filters.limit)
    return envelope(
        "Destinations retrieved successfully",
        [DestinationOut.model_validate(d) for d in items],
        meta,
    )


@router.get("/{destination_id}")
def get_destination(destination_id: int, db: Session = Depends(get_db)):
    destination = get_or_404(db, Destination, destination_id, "Destination")
    return envelope("Destination retrieved successfully", DestinationOut.model_validate(destination))


# =====================================================================
# CREATE (Admin / Agent)
# =====================================================================
@router.post("/", status_code=201)
def create_destination(
    name: str | None = Form(None),
    description: str | None = Form(None),
    country: str | None = Form(None),
    city: str | None = Form(None),
    photo: UploadFile | None = File(None),
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    data = {"name": name, "description": description, "country": country, "city": city}
    run_validation(data, destination_rules(db))

    destination = Destination(**provided(**data))
    destination.photo = store_photo(photo, "destinations")

    db.add(destination)
    db.commit()
    invalidate_dashboard_cache()
    db.refresh(destination)

    logger.info(f"Destination Created | ID={destination.id} | {destination.name} | By={ctx.email}")
    return envelope("Destination created successfully", DestinationOut.model_validate(destination))


# =====================================================================
# UPDATE (Admin / Agent)
# =====================================================================
@router.put("/{destination_id}")
def update_destination(
    destination_id: int,
    name: str | None = Form(None),
    description: str | None = Form(None),
    country: str | None = Form(None),
    city: str | None = Form(None),
    photo: UploadFile | None = File(None),
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    destination = get_or_404(db, Destination, destination_id, "Destination")

    changes = provided(name=name, description=description, country=country, city=city)
    has_photo = bool(photo and photo.filename)
    require_changes(changes, has_photo)

    # Moving a destination re-checks its name against the new place
    if {"country", "city"} & changes.keys():
        changes.setdefault("name", destination.name)

    run_validation(
        changes,
        destination_rules(db, current_id=destination.id),
        partial=True,
        context=merged(destination, changes, FIELDS),
    )

    old_photo = destination.photo
    if has_photo:
        destination.photo = store_photo(photo, "destinations")
    apply_changes(destination, changes)

    db.commit()
    invalidate_dashboard_cache()
    db.refresh(destination)

    if has_photo:
        discard_photo(old_photo)

    logger.info(f"Destination Updated | ID={destination.id} | By={ctx.email}")
    return envelope("Destination updated successfully", DestinationOut.model_validate(destination))


# =====================================================================
# DELETE
# =====================================================================
@router.delete("/{destination_id}")
def delete_destination(
    destination_id: int,
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    destination = get_or_404(db, Destination, destination_id, "Destination")

    blocked = dependents_of(db, [destination.id])
    if blocked:
        raise ConflictError(f"Destination still has dependent {blocked[destination.id]}; delete them first")

    photo = destination.photo
    db.delete(destination)
    db.commit()
    invalidate_dashboard_cache()
    discard_photo(photo)

    admin_logger.info(f"Destination Deleted | ID={destination_id} | By={ctx.email}")
    return envelope("Destination deleted successfully")


@router.delete("/")
def delete_all_destinations(ctx: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    destinations = db.query(Destination).all()
    ids = [d.id for d in destinations]

    blocked = dependents_of(db, ids)
    if blocked:
        names = {d.id: d.name for d in destinations}
        raise ConflictError(
            "Some destinations still have dependent hotels or flights; nothing was deleted",
            {names[i]: f"Has dependent {what}" for i, what in sorted(blocked.items())},
        )

    photos = [d.photo for d in destinations]
    for destination in destinations:
        db.delete(destination)
    db.commit()
    invalidate_dashboard_cache()

    for photo in photos:
        discard_photo(photo)

    admin_logger.warning(f"Bulk Destination Delete | Count={len(ids)} | By={ctx.email}")
    return envelope("All destinations deleted successfully", {"count": len(ids)})
