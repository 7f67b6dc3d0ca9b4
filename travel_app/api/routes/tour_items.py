"""Itineraries, inclusions and exclusions hang off a tour; each is managed on its own."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import get_db, staff_only
from travel_app.core.logging_config import get_logger
from travel_app.models.tour import Tour, TourExclusion, TourInclusion, TourItinerary
from travel_app.schemas.common import envelope
from travel_app.schemas.tour import ItineraryCreate, ItineraryOut, ItineraryUpdate, TourItemCreate, TourItemOut
from travel_app.services.inventory import apply_changes, get_or_404, merged, provided, require_changes
from travel_app.validation.entities import itinerary_rules, tour_item_rules
from travel_app.validation.rules import run_validation

router = APIRouter(tags=["Tour Details"])
logger = get_logger()

ITEM_KINDS = {
    "inclusions": (TourInclusion, "Inclusion"),
    "exclusions": (TourExclusion, "Exclusion"),
}


# =====================================================================
# ITINERARIES
# =====================================================================
@router.get("/tours/{tour_id}/itineraries")
def list_itineraries(tour_id: int, db: Session = Depends(get_db)):
    get_or_404(db, Tour, tour_id, "Tour")
    items = (
        db.query(TourItinerary)
        .filter(TourItinerary.tour_id == tour_id)
        .order_by(TourItinerary.day)
        .all()
    )
    return envelope("Itineraries retrieved successfully", [ItineraryOut.model_validate(i) for i in items])


@router.post("/tours/{tour_id}/itineraries", status_code=201)
def create_itinerary(
    tour_id: int,
    body: ItineraryCreate,
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    get_or_404(db, Tour, tour_id, "Tour")

    data = body.model_dump()
    run_validation(data, itinerary_rules(db, tour_id))

    itinerary = TourItinerary(tour_id=tour_id, **provided(**data))
    db.add(itinerary)
    db.commit()
    db.refresh(itinerary)

    logger.info(f"Itinerary Created | Tour={tour_id} | Day={itinerary.day} | By={ctx.email}")
    return envelope("Itinerary created successfully", ItineraryOut.model_validate(itinerary))


@router.put("/itineraries/{itinerary_id}")
def update_itinerary(
    itinerary_id: int,
    body: ItineraryUpdate,
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    itinerary = get_or_404(db, TourItinerary, itinerary_id, "Itinerary")

    changes = provided(**body.model_dump())
    require_changes(changes)
    run_validation(
        changes,
        itinerary_rules(db, itinerary.tour_id, current_id=itinerary.id),
        partial=True,
        context=merged(itinerary, changes, ("day", "title", "activities", "description")),
    )

    apply_changes(itinerary, changes)
    db.commit()
    db.refresh(itinerary)

    logger.info(f"Itinerary Updated | ID={itinerary.id} | By={ctx.email}")
    return envelope("Itinerary updated successfully", ItineraryOut.model_validate(itinerary))


@router.delete("/itineraries/{itinerary_id}")
def delete_itinerary(itinerary_id: int, ctx: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    itinerary = get_or_404(db, TourItinerary, itinerary_id, "Itinerary")
    db.delete(itinerary)
    db.commit()

    logger.info(f"Itinerary Deleted | ID={itinerary_id} | By={ctx.email}")
    return envelope("Itinerary deleted successfully")


# =====================================================================
# INCLUSIONS / EXCLUSIONS
# =====================================================================
def _list_items(kind: str, tour_id: int, db: Session):
    model, label = ITEM_KINDS[kind]
    get_or_404(db, Tour, tour_id, "Tour")
    items = db.query(model).filter(model.tour_id == tour_id).order_by(model.id).all()
    return envelope(f"{label}s retrieved successfully", [TourItemOut.model_validate(i) for i in items])


def _create_item(kind: str, tour_id: int, body: TourItemCreate, ctx: SessionContext, db: Session):
    model, label = ITEM_KINDS[kind]
    get_or_404(db, Tour, tour_id, "Tour")

    data = body.model_dump()
    run_validation(data, tour_item_rules())

    item = model(tour_id=tour_id, description=data["description"].strip())
    db.add(item)
    db.commit()
    db.refresh(item)

    logger.info(f"{label} Created | Tour={tour_id} | ID={item.id} | By={ctx.email}")
    return envelope(f"{label} created successfully", TourItemOut.model_validate(item))


def _update_item(kind: str, item_id: int, body: TourItemCreate, ctx: SessionContext, db: Session):
    model, label = ITEM_KINDS[kind]
    item = get_or_404(db, model, item_id, label)

    changes = provided(**body.model_dump())
    require_changes(changes)
    run_validation(changes, tour_item_rules(), partial=True)

    item.description = changes["description"].strip()
    db.commit()
    db.refresh(item)

    logger.info(f"{label} Updated | ID={item.id} | By={ctx.email}")
    return envelope(f"{label} updated successfully", TourItemOut.model_validate(item))


def _delete_item(kind: str, item_id: int, ctx: SessionContext, db: Session):
    model, label = ITEM_KINDS[kind]
    item = get_or_404(db, model, item_id, label)
    db.delete(item)
    db.commit()

    logger.info(f"{label} Deleted | ID={item_id} | By={ctx.email}")
    return envelope(f"{label} deleted successfully")


@router.get("/tours/{tour_id}/inclusions")
def list_inclusions(tour_id: int, db: Session = Depends(get_db)):
    return _list_items("inclusions", tour_id, db)


@router.post("/tours/{tour_id}/inclusions", status_code=201)
def create_inclusion(
    tour_id: int,
    body: TourItemCreate,
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return _create_item("inclusions", tour_id, body, ctx, db)


@router.put("/inclusions/{item_id}")
def update_inclusion(
    item_id: int,
    body: TourItemCreate,
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return _update_item("inclusions", item_id, body, ctx, db)


@router.delete("/inclusions/{item_id}")
def delete_inclusion(item_id: int, ctx: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    return _delete_item("inclusions", item_id, ctx, db)


@router.get("/tours/{tour_id}/exclusions")
def list_exclusions(tour_id: int, db: Session = Depends(get_db)):
    return _list_items("exclusions", tour_id, db)


@router.post("/tours/{tour_id}/exclusions", status_code=201)
def create_exclusion(
    tour_id: int,
    body: TourItemCreate,
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return _create_item("exclusions", tour_id, body, ctx, db)


@router.put("/exclusions/{item_id}")
def update_exclusion(
    item_id: int,
    body: TourItemCreate,
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return _update_item("exclusions", item_id, body, ctx, db)


@router.delete("/exclusions/{item_id}")
def delete_exclusion(item_id: int, ctx: SessionContext = Depends(staff_only), db: Session = Depends(get_db)):
    return _delete_item("exclusions", item_id, ctx, db)
