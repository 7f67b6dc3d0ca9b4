from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, selectinload

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import admin_only, get_db, staff_only
from travel_app.core.errors import ConflictError, NotFoundError
from travel_app.core.logging_config import admin_logger, get_logger
from travel_app.models.booking import Booking
from travel_app.models.enums import TourStatus
from travel_app.models.tour import Tour
from travel_app.schemas.common import envelope, paginate
from travel_app.schemas.filters import TourFilters, tour_filters
from travel_app.schemas.tour import TourCreate, TourDetailOut, TourOut, TourUpdate
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
from travel_app.utils.pricing import days_between
from travel_app.validation.entities import tour_rules
from travel_app.validation.rules import run_validation

router = APIRouter(prefix="/tours", tags=["Tours"])
logger = get_logger()

SORT_COLUMNS = {
    "name": Tour.name,
    "price": Tour.price,
    "startDate": Tour.start_date,
    "duration": Tour.duration,
    "createdAt": Tour.created_at,
}
FIELDS = (
    "name",
    "description",
    "type",
    "status",
    "price",
    "max_guests",
    "guests_booked",
    "start_date",
    "end_date",
    "location",
)
LOCKED_STATUSES = (TourStatus.ONGOING, TourStatus.COMPLETED)


def _tour_data(body: TourCreate) -> dict:
    data = body.model_dump()
    for key in ("start_date", "end_date"):
        if data[key] is not None:
            data[key] = to_naive_utc(data[key])
    return data


# =====================================================================
# LIST / GET
# =====================================================================
@router.get("/")
def list_tours(filters: TourFilters = Depends(tour_filters), db: Session = Depends(get_db)):
    query = db.query(Tour)

    if filters.search:
        query = query.filter(search_filter(filters.search, Tour.name, Tour.description, Tour.location))
    if filters.type:
        query = query.filter(Tour.type == filters.type)
    if filters.status:
        query = query.filter(Tour.status == filters.status)
    if filters.location:
        query = query.filter(Tour.location.ilike(f"%{filters.location}%"))
    if filters.min_price is not None:
        query = query.filter(Tour.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.filter(Tour.price <= filters.max_price)
    if filters.start_from:
        query = query.filter(Tour.start_date >= start_of_day(filters.start_from))
    if filters.start_to:
        query = query.filter(Tour.start_date <= end_of_day(filters.start_to))

    items, meta = paginate(ordered(query, SORT_COLUMNS, filters, Tour.id), filters.page, filters.limit)
    return envelope("Tours retrieved successfully", [TourOut.model_validate(t) for t in items], meta)


@router.get("/{tour_id}")
def get_tour(tour_id: int, db: Session = Depends(get_db)):
    tour = (
        db.query(Tour)
        .options(
            selectinload(Tour.itineraries),
            selectinload(Tour.inclusions),
            selectinload(Tour.exclusions),
        )
        .filter(Tour.id == tour_id)
        .first()
    )
    if not tour:
        raise NotFoundError("Tour not found")
    return envelope("Tour retrieved successfully", TourDetailOut.model_validate(tour))


# =====================================================================
# CREATE / UPDATE (Admin / Agent)
# =====================================================================
@router.post("/", status_code=201)
def create_tour(body: TourCreate, ctx: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    data = _tour_data(body)
    run_validation(data, tour_rules(db))

    tour = Tour(**provided(**data))
    tour.duration = days_between(tour.start_date, tour.end_date)
    tour.guests_booked = 0

    db.add(tour)
    db.commit()
    invalidate_dashboard_cache()
    db.refresh(tour)

    logger.info(f"Tour Created | ID={tour.id} | {tour.name} | By={ctx.email}")
    return envelope("Tour created successfully", TourOut.model_validate(tour))


@router.put("/{tour_id}")
def update_tour(
    tour_id: int,
    body: TourUpdate,
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    tour = get_or_404(db, Tour, tour_id, "Tour")

    changes = provided(**_tour_data(body))
    require_changes(changes)

    if "start_date" in changes:
        changes.setdefault("end_date", tour.end_date)

    run_validation(changes, tour_rules(db), partial=True, context=merged(tour, changes, FIELDS))

    apply_changes(tour, changes)
    tour.duration = days_between(tour.start_date, tour.end_date)

    db.commit()
    invalidate_dashboard_cache()
    db.refresh(tour)

    logger.info(f"Tour Updated | ID={tour.id} | By={ctx.email}")
    return envelope("Tour updated successfully", TourOut.model_validate(tour))


# =====================================================================
# DELETE
# =====================================================================
def _ensure_deletable(db: Session, tours: list[Tour]):
    locked = [t for t in tours if t.status in LOCKED_STATUSES]
    if locked:
        raise ConflictError(
            "Ongoing or completed tours cannot be deleted",
            {t.name: f"Tour is {t.status.value.lower()}" for t in locked},
        )
    ensure_unbooked(db, Booking.tour_id, [t.id for t in tours], "Tours")


@router.delete("/{tour_id}")
def delete_tour(tour_id: int, ctx: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    tour = get_or_404(db, Tour, tour_id, "Tour")
    _ensure_deletable(db, [tour])

    db.delete(tour)
    db.commit()
    invalidate_dashboard_cache()

    admin_logger.info(f"Tour Deleted | ID={tour_id} | By={ctx.email}")
    return envelope("Tour deleted successfully")


@router.delete("/")
def delete_all_tours(ctx: SessionContext = Depends(admin_only), db: Session = Depends(get_db)):
    tours = db.query(Tour).all()
    _ensure_deletable(db, tours)

    for tour in tours:
        db.delete(tour)
    db.commit()
    invalidate_dashboard_cache()

    admin_logger.warning(f"Bulk Tour Delete | Count={len(tours)} | By={ctx.email}")
    return envelope("All tours deleted successfully", {"count": len(tours)})
