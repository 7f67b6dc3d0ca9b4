from datetime import datetime
from typing import List

from travel_app.models.enums import TourStatus, TourType
from travel_app.schemas.common import CamelModel


class TourCreate(CamelModel):
    name: str | None = None
    description: str | None = None
    type: TourType | None = None
    status: TourStatus | None = None
    price: float | None = None
    max_guests: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    location: str | None = None


class TourUpdate(TourCreate):
    pass


class ItineraryCreate(CamelModel):
    day: int | None = None
    title: str | None = None
    activities: str | None = None
    description: str | None = None


class ItineraryUpdate(ItineraryCreate):
    pass


class ItineraryOut(CamelModel):
    id: int
    tour_id: int
    day: int
    title: str
    activities: str | None = None
    description: str | None = None


class TourItemCreate(CamelModel):
    description: str | None = None


class TourItemOut(CamelModel):
    id: int
    tour_id: int
    description: str


class TourOut(CamelModel):
    id: int
    name: str
    description: str | None = None
    type: TourType
    status: TourStatus
    price: float
    max_guests: int
    guests_booked: int
    available_slots: int
    start_date: datetime
    end_date: datetime
    duration: int
    location: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TourDetailOut(TourOut):
    itineraries: List[ItineraryOut] = []
    inclusions: List[TourItemOut] = []
    exclusions: List[TourItemOut] = []
