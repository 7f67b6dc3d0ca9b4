from datetime import datetime

from travel_app.schemas.common import CamelModel


class DestinationOut(CamelModel):
    id: int
    name: str
    description: str | None = None
    country: str
    city: str | None = None
    photo: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
