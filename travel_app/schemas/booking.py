from dataclasses import dataclass
from datetime import datetime

from travel_app.core.errors import InvalidInputError
from travel_app.models.enums import BookingStatus, BookingType
from travel_app.schemas.common import CamelModel


@dataclass(frozen=True)
class BookingTarget:
    """The single thing a booking is for: a tour, a room or a flight."""

    kind: BookingType
    entity_id: int


class BookingCreate(CamelModel):
    tour_id: int | None = None
    room_id: int | None = None
    flight_id: int | None = None
    # Staff may book on behalf of a customer
    user_id: int | None = None
    quantity: int | None = 1

    def target(self) -> BookingTarget:
        given = [
            BookingTarget(kind, entity_id)
            for kind, entity_id in (
                (BookingType.TOUR, self.tour_id),
                (BookingType.ROOM, self.room_id),
                (BookingType.FLIGHT, self.flight_id),
            )
            if entity_id is not None
        ]
        if len(given) != 1:
            raise InvalidInputError(
                "Exactly one of tourId, roomId or flightId must be provided",
                {"target": f"Received {len(given)} bookable references"},
            )
        return given[0]


class BookingStatusUpdate(CamelModel):
    status: BookingStatus | None = None


class BookedItem(CamelModel):
    id: int
    name: str
    description: str | None = None
    type: BookingType


class BookingUser(CamelModel):
    id: int
    name: str
    email: str


class BookingOut(CamelModel):
    id: int
    user_id: int
    type: BookingType
    tour_id: int | None = None
    room_id: int | None = None
    flight_id: int | None = None
    quantity: int
    status: BookingStatus
    total_price: float
    booking_date: datetime
    item: BookedItem | None = None
    user: BookingUser | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
