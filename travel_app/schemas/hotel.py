from datetime import datetime
from typing import List

from travel_app.schemas.common import CamelModel


class RoomOut(CamelModel):
    id: int
    hotel_id: int
    room_type: str
    description: str | None = None
    price: float
    capacity: int
    amenities: List[str] = []
    photo: str | None = None
    available: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class HotelOut(CamelModel):
    id: int
    destination_id: int
    name: str
    description: str | None = None
    address: str
    city: str
    country: str
    phone: str | None = None
    star_rating: int
    amenities: List[str] = []
    photo: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class HotelDetailOut(HotelOut):
    rooms: List[RoomOut] = []


class HotelAvailabilityOut(CamelModel):
    hotel_id: int
    hotel_name: str
    guests: int | None = None
    available_rooms: List[RoomOut] = []
