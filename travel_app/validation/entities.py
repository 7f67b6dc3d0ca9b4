"""
Rulesets for each writable entity.

Builders take the open session (and the id of the record being updated, if
any) because several rules are bounded store reads: uniqueness checks and
foreign-key existence.
"""

from sqlalchemy import func
from sqlalchemy.orm import Session

from travel_app.models.destination import Destination
from travel_app.models.enums import (
    BookingStatus,
    FlightClass,
    PaymentMethod,
    PaymentStatus,
    TourStatus,
    TourType,
    UserRole,
)
from travel_app.models.flight import Flight
from travel_app.models.hotel import Hotel
from travel_app.models.tour import Tour, TourItinerary
from travel_app.models.user import User
from travel_app.utils.dates import utcnow
from travel_app.validation.rules import custom, length, number, one_of, pattern, required

PLACE_PATTERN = r"^[a-zA-Z\s\-']+$"
PLACE_MESSAGE = "{} must contain only letters, spaces, hyphens, and apostrophes"
PHONE_PATTERN = r"^\+?[0-9\s\-()]+$"
USER_PHONE_PATTERN = r"^\+?[0-9]{10,15}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
FLIGHT_NUMBER_PATTERN = r"^[A-Z0-9]{2,3}[0-9]{1,4}$"
AIRLINE_PATTERN = r"^[a-zA-Z\s\-&.()]+$"

MAX_AMENITIES = 20
MIN_FLIGHT_MINUTES = 30


def _exists(db: Session, model):
    def check(value, _):
        return db.get(model, value) is not None

    return check


def _amenities_ok(value, _):
    if not isinstance(value, list):
        return False
    cleaned = [a.strip().lower() for a in value if isinstance(a, str)]
    if len(cleaned) != len(value) or any(not a or len(a) > 50 for a in cleaned):
        return False
    return len(set(cleaned)) == len(cleaned)


def _amenity_rules():
    return [
        length(max=MAX_AMENITIES, message=f"At most {MAX_AMENITIES} amenities are allowed"),
        custom(_amenities_ok, "Each amenity must be a unique, non-empty string of at most 50 characters"),
    ]


def _ci_equal(column, value):
    return func.lower(func.coalesce(column, "")) == (value or "").strip().lower()


# ---------- DESTINATION ----------
def destination_rules(db: Session, current_id: int | None = None):
    def unique_place(value, ctx):
        query = db.query(Destination.id).filter(
            _ci_equal(Destination.name, value),
            _ci_equal(Destination.country, ctx.get("country")),
            _ci_equal(Destination.city, ctx.get("city")),
        )
        if current_id is not None:
            query = query.filter(Destination.id != current_id)
        return query.first() is None

    return {
        "name": [
            required("Destination name is required"),
            length(2, 100, "Destination name must be between 2 and 100 characters"),
            custom(unique_place, "A destination with this name already exists in the specified country/city"),
        ],
        "description": [length(max=1000, message="Description must not exceed 1000 characters")],
        "country": [
            required("Country is required"),
            length(2, 100, "Country must be between 2 and 100 characters"),
            pattern(PLACE_PATTERN, PLACE_MESSAGE.format("Country")),
        ],
        "city": [
            length(max=100, message="City must not exceed 100 characters"),
            pattern(PLACE_PATTERN, PLACE_MESSAGE.format("City")),
        ],
    }


# ---------- HOTEL ----------
def hotel_rules(db: Session, current_id: int | None = None):
    def unique_in_destination(value, ctx):
        query = db.query(Hotel.id).filter(
            _ci_equal(Hotel.name, value),
            Hotel.destination_id == ctx.get("destination_id"),
        )
        if current_id is not None:
            query = query.filter(Hotel.id != current_id)
        return query.first() is None

    return {
        "destination_id": [
            required("Destination is required"),
            number(min=1, integer=True, message="Destination id must be a positive integer"),
            custom(_exists(db, Destination), "Destination does not exist"),
        ],
        "name": [
            required("Hotel name is required"),
            length(2, 100, "Hotel name must be between 2 and 100 characters"),
            custom(unique_in_destination, "A hotel with this name already exists in the selected destination"),
        ],
        "description": [length(max=2000, message="Description must not exceed 2000 characters")],
        "address": [
            required("Address is required"),
            length(5, 255, "Address must be between 5 and 255 characters"),
        ],
        "city": [
            required("City is required"),
            length(2, 100, "City must be between 2 and 100 characters"),
            pattern(PLACE_PATTERN, PLACE_MESSAGE.format("City")),
        ],
        "country": [
            required("Country is required"),
            length(2, 100, "Country must be between 2 and 100 characters"),
            pattern(PLACE_PATTERN, PLACE_MESSAGE.format("Country")),
        ],
        "phone": [pattern(PHONE_PATTERN, "Phone must be a valid phone number")],
        "star_rating": [number(1, 5, integer=True, message="Star rating must be between 1 and 5")],
        "amenities": _amenity_rules(),
    }


# ---------- ROOM ----------
def room_rules(db: Session):
    return {
        "hotel_id": [
            required("Hotel is required"),
            number(min=1, integer=True, message="Hotel id must be a positive integer"),
            custom(_exists(db, Hotel), "Hotel does not exist"),
        ],
        "room_type": [
            required("Room type is required"),
            length(2, 50, "Room type must be between 2 and 50 characters"),
        ],
        "description": [length(max=1000, message="Description must not exceed 1000 characters")],
        "price": [required("Price is required"), number(min=0, message="Price must be a positive number")],
        "capacity": [
            required("Capacity is required"),
            number(1, 20, integer=True, message="Capacity must be between 1 and 20 guests"),
        ],
        "amenities": _amenity_rules(),
    }


# ---------- FLIGHT ----------
def flight_rules(db: Session, current_id: int | None = None):
    def unique_number(value, _):
        query = db.query(Flight.id).filter(Flight.flight_number == value)
        if current_id is not None:
            query = query.filter(Flight.id != current_id)
        return query.first() is None

    def long_enough(value, ctx):
        departure = ctx.get("departure")
        if departure is None:
            return True
        return (value - departure).total_seconds() >= MIN_FLIGHT_MINUTES * 60

    return {
        "flight_number": [
            required("Flight number is required"),
            pattern(FLIGHT_NUMBER_PATTERN, "Flight number must be in format like AA123, BA1234, etc."),
            custom(unique_number, "Flight number already exists"),
        ],
        "airline": [
            required("Airline is required"),
            length(2, 100, "Airline must be between 2 and 100 characters"),
            pattern(AIRLINE_PATTERN, "Airline may contain only letters, spaces and & . ( ) -"),
        ],
        "departure": [
            required("Departure time is required"),
            custom(lambda value, _: value > utcnow(), "Departure cannot be in the past"),
        ],
        "arrival": [
            required("Arrival time is required"),
            custom(long_enough, f"Arrival time must be at least {MIN_FLIGHT_MINUTES} minutes after departure"),
        ],
        "origin_id": [
            required("Origin is required"),
            custom(_exists(db, Destination), "Origin destination does not exist"),
        ],
        "destination_id": [
            required("Destination is required"),
            custom(_exists(db, Destination), "Destination does not exist"),
            custom(lambda value, ctx: value != ctx.get("origin_id"), "Origin and destination must be different"),
        ],
        "price": [required("Price is required"), number(min=0, message="Price must be a positive number")],
        "flight_class": [one_of(FlightClass)],
        "stops": [number(0, 5, integer=True, message="Stops must be between 0 and 5")],
        "seats_available": [
            required("Seats available is required"),
            number(0, 850, integer=True, message="Seats available must be between 0 and 850"),
        ],
    }


# ---------- TOUR ----------
def tour_rules(db: Session):
    def ends_after_start(value, ctx):
        start = ctx.get("start_date")
        return start is None or value > start

    def covers_booked_guests(value, ctx):
        return value >= (ctx.get("guests_booked") or 0)

    return {
        "name": [required("Tour name is required"), length(2, 100, "Tour name must be between 2 and 100 characters")],
        "description": [length(max=2000, message="Description must not exceed 2000 characters")],
        "type": [required("Tour type is required"), one_of(TourType)],
        "status": [one_of(TourStatus)],
        "price": [required("Price is required"), number(min=0, message="Price must be a positive number")],
        "max_guests": [
            required("Max guests is required"),
            number(1, 1000, integer=True, message="Max guests must be between 1 and 1000"),
            custom(covers_booked_guests, "Max guests cannot be lower than the number of guests already booked"),
        ],
        "start_date": [required("Start date is required")],
        "end_date": [required("End date is required"), custom(ends_after_start, "End date must be after start date")],
        "location": [required("Location is required"), length(2, 255, "Location must be between 2 and 255 characters")],
    }


def itinerary_rules(db: Session, tour_id: int, current_id: int | None = None):
    def free_day(value, _):
        query = db.query(TourItinerary.id).filter(TourItinerary.tour_id == tour_id, TourItinerary.day == value)
        if current_id is not None:
            query = query.filter(TourItinerary.id != current_id)
        return query.first() is None

    def within_tour(value, _):
        tour = db.get(Tour, tour_id)
        return tour is None or value <= tour.duration

    return {
        "day": [
            required("Day is required"),
            number(min=1, integer=True, message="Day must be a positive integer"),
            custom(within_tour, "Day is beyond the tour's duration"),
            custom(free_day, "An itinerary already exists for this day"),
        ],
        "title": [required("Title is required"), length(2, 100, "Title must be between 2 and 100 characters")],
        "activities": [length(max=1000, message="Activities must not exceed 1000 characters")],
        "description": [length(max=2000, message="Description must not exceed 2000 characters")],
    }


def tour_item_rules():
    """Inclusions and exclusions are a single description line."""
    return {
        "description": [
            required("Description is required"),
            length(2, 255, "Description must be between 2 and 255 characters"),
        ],
    }


# ---------- USER ----------
def user_rules(db: Session, current_id: int | None = None):
    def unique_email(value, _):
        query = db.query(User.id).filter(func.lower(User.email) == value.strip().lower())
        if current_id is not None:
            query = query.filter(User.id != current_id)
        return query.first() is None

    return {
        "name": [required("Name is required"), length(2, 100, "Name must be between 2 and 100 characters")],
        "email": [
            required("Email is required"),
            length(max=255, message="Email must not exceed 255 characters"),
            pattern(EMAIL_PATTERN, "Email must be a valid email address"),
            custom(unique_email, "Email is already registered"),
        ],
        "password": [
            required("Password is required"),
            length(8, 255, "Password must be between 8 and 255 characters"),
        ],
        "phone": [pattern(USER_PHONE_PATTERN, "Phone must be a valid phone number (10-15 digits)")],
        "address": [length(max=100, message="Address must not exceed 100 characters")],
        "role": [one_of(UserRole)],
    }


# ---------- BOOKING / PAYMENT ----------
def booking_rules(db: Session):
    return {
        "user_id": [custom(_exists(db, User), "User does not exist")],
        "quantity": [
            required("Quantity is required"),
            number(1, 100, integer=True, message="Quantity must be between 1 and 100"),
        ],
    }


def booking_status_rules():
    return {"status": [required("Status is required"), one_of(BookingStatus)]}


def payment_rules():
    return {
        "booking_id": [required("Booking is required"), number(min=1, integer=True)],
        "payment_method": [required("Payment method is required"), one_of(PaymentMethod)],
    }


def payment_status_rules():
    return {"status": [required("Status is required"), one_of(PaymentStatus)]}


def refund_rules():
    return {"reason": [length(max=255, message="Reason must not exceed 255 characters")]}
