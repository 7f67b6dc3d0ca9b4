"""Helpers shared by the catalogue routes (destinations, hotels, rooms, flights, tours)."""

import json

from sqlalchemy import asc, desc, or_
from sqlalchemy.orm import Session

from travel_app.core.errors import ConflictError, InvalidInputError, NotFoundError
from travel_app.models.booking import Booking
from travel_app.models.enums import ACTIVE_BOOKING_STATUSES


def get_or_404(db: Session, model, entity_id: int, label: str):
    entity = db.get(model, entity_id)
    if not entity:
        raise NotFoundError(f"{label} not found")
    return entity


def provided(**fields) -> dict:
    """Drop fields the client did not send (None)."""
    return {k: v for k, v in fields.items() if v is not None}


def require_changes(changes: dict, has_photo: bool = False):
    if not changes and not has_photo:
        raise InvalidInputError("At least one field must be provided for update")


def merged(entity, changes: dict, fields) -> dict:
    """Stored values overlaid with the requested changes, for cross-field rules."""
    current = {f: getattr(entity, f) for f in fields}
    current.update(changes)
    return current


def apply_changes(entity, changes: dict):
    for key, value in changes.items():
        setattr(entity, key, value)


def search_filter(term: str, *columns):
    pattern = f"%{term.strip()}%"
    return or_(*[column.ilike(pattern) for column in columns])


def ordered(query, columns: dict, filters, id_column):
    order = asc if filters.sort_order == "asc" else desc
    return query.order_by(order(columns[filters.sort_by]), order(id_column))


def parse_amenities(values) -> list[str] | None:
    """Multipart forms send amenities as repeated fields, a JSON array or a comma list."""
    if values is None:
        return None
    if isinstance(values, str):
        values = [values]
    if len(values) == 1 and values[0].strip().startswith("["):
        try:
            parsed = json.loads(values[0])
        except ValueError:
            return values
        return parsed if isinstance(parsed, list) else values
    if len(values) == 1 and "," in values[0]:
        return [v.strip() for v in values[0].split(",") if v.strip()]
    return [v.strip() for v in values]


# ---------- DELETE GUARDS ----------
def ensure_unbooked(db: Session, column, ids: list[int], label: str):
    """Anything referenced by a booking (any status) stays, bookings keep their history."""
    if not ids:
        return
    booked = sorted({row[0] for row in db.query(column).filter(column.in_(ids)).all()})
    if booked:
        raise ConflictError(
            f"{label} referenced by bookings cannot be deleted",
            {"ids": ", ".join(str(i) for i in booked)},
        )


def has_active_bookings(db: Session, column, entity_id: int) -> bool:
    return (
        db.query(Booking.id)
        .filter(column == entity_id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .first()
        is not None
    )
