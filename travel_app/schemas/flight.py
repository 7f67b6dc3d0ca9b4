from datetime import datetime

from travel_app.models.enums import FlightClass
from travel_app.schemas.common import CamelModel


class FlightPlace(CamelModel):
    id: int
    name: str
    country: str
    city: str | None = None


class FlightOut(CamelModel):
    id: int
    flight_number: str
    airline: str
    departure: datetime
    arrival: datetime
    duration: int
    stops: int
    origin_id: int
    destination_id: int
    origin: FlightPlace | None = None
    destination: FlightPlace | None = None
    price: float
    flight_class: FlightClass
    seats_available: int
    photo: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
