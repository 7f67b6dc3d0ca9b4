# Import every model so relationship() string targets resolve and
# Base.metadata is complete for create_all / alembic autogenerate.
from travel_app.models.user import User  # noqa: F401
from travel_app.models.destination import Destination  # noqa: F401
from travel_app.models.hotel import Hotel, Room  # noqa: F401
from travel_app.models.flight import Flight  # noqa: F401
from travel_app.models.tour import Tour, TourItinerary, TourInclusion, TourExclusion  # noqa: F401
from travel_app.models.booking import Booking  # noqa: F401
from travel_app.models.payment import Payment  # noqa: F401
