import hashlib
import hmac
import os
import tempfile
from datetime import timedelta

# Configure the app for tests before anything from travel_app is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="travel-logs-")
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_secret"
os.environ["PAYMENT_CURRENCY"] = "GHS"
os.environ.pop("REDIS_URL", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import travel_app.models  # noqa: E402,F401
from travel_app.core.dependencies import get_db  # noqa: E402
from travel_app.core.errors import ExternalServiceError  # noqa: E402
from travel_app.core.jwt import create_access_token  # noqa: E402
from travel_app.core.security import hash_password  # noqa: E402
from travel_app.db.session import Base  # noqa: E402
from travel_app.main import app  # noqa: E402
from travel_app.models.destination import Destination  # noqa: E402
from travel_app.models.enums import FlightClass, TourStatus, TourType, UserRole  # noqa: E402
from travel_app.models.flight import Flight  # noqa: E402
from travel_app.models.hotel import Hotel, Room  # noqa: E402
from travel_app.models.tour import Tour  # noqa: E402
from travel_app.models.user import User  # noqa: E402
from travel_app.services.paystack import (  # noqa: E402
    SUCCESS,
    GatewayInit,
    GatewayVerification,
    get_payment_gateway,
)
from travel_app.utils.dates import utcnow  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


# ---------- FAKE PAYSTACK ----------
class FakeGateway:
    """In-memory stand-in for PaystackGateway; outcomes are set per reference."""

    secret_key = "sk_test_secret"

    def __init__(self):
        self.initialized = {}
        self.outcomes = {}
        self.verify_calls = []
        self.refunds = []
        self.fail_initialize = False
        self.fail_refund = False
        # Runs once inside the next initialize call, before it returns
        self.on_initialize = None

    def initialize(self, email, amount, reference, currency="GHS", channels=None, callback_url=None, metadata=None):
        if self.fail_initialize:
            raise ExternalServiceError("Payment gateway timed out, please retry")
        if self.on_initialize:
            hook, self.on_initialize = self.on_initialize, None
            hook()
        self.initialized[reference] = {
            "email": email,
            "amount": amount,
            "currency": currency,
            "channels": channels,
            "metadata": metadata,
        }
        return GatewayInit(
            authorization_url=f"https://checkout.paystack.test/{reference}",
            reference=reference,
            access_code="access-code",
        )

    def set_outcome(self, reference, status=SUCCESS, amount=None):
        self.outcomes[reference] = (status, amount)

    def verify(self, reference):
        self.verify_calls.append(reference)
        status, amount = self.outcomes.get(reference, (SUCCESS, None))
        if amount is None:
            amount = self.initialized.get(reference, {}).get("amount", 0)
        return GatewayVerification(status=status, amount=amount, reference=reference, raw_status=status)

    def refund(self, reference, amount=None, reason=None):
        if self.fail_refund:
            raise ExternalServiceError("Payment gateway request failed")
        self.refunds.append((reference, amount, reason))
        return {"status": "pending"}

    def verify_signature(self, body, signature):
        if not signature:
            return False
        return hmac.compare_digest(sign(body), signature)


def sign(body: bytes) -> str:
    return hmac.new(FakeGateway.secret_key.encode(), body, hashlib.sha512).hexdigest()


# ---------- DATABASE / CLIENT ----------
@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def client(db, gateway):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ---------- USERS / TOKENS ----------
def make_user(db, email, role=UserRole.CUSTOMER, name="Test User", password="password123"):
    user = User(name=name, email=email, password_hash=hash_password(password), role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_header(user):
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin(db):
    return make_user(db, "admin@example.com", UserRole.ADMIN, name="Ama Admin")


@pytest.fixture()
def agent(db):
    return make_user(db, "agent@example.com", UserRole.AGENT, name="Kofi Agent")


@pytest.fixture()
def customer(db):
    return make_user(db, "customer@example.com", UserRole.CUSTOMER, name="Esi Customer")


@pytest.fixture()
def other_customer(db):
    return make_user(db, "other@example.com", UserRole.CUSTOMER, name="Yaw Other")


@pytest.fixture()
def admin_headers(admin):
    return auth_header(admin)


@pytest.fixture()
def agent_headers(agent):
    return auth_header(agent)


@pytest.fixture()
def customer_headers(customer):
    return auth_header(customer)


@pytest.fixture()
def other_headers(other_customer):
    return auth_header(other_customer)


# ---------- CATALOGUE ----------
@pytest.fixture()
def make_destination(db):
    def _make(name="Accra", country="Ghana", city="Accra"):
        destination = Destination(name=name, country=country, city=city)
        db.add(destination)
        db.commit()
        db.refresh(destination)
        return destination

    return _make


@pytest.fixture()
def make_tour(db):
    def _make(max_guests=10, price=100.0, status=TourStatus.UPCOMING, name="Cape Coast Castle Tour"):
        start = utcnow() + timedelta(days=30)
        tour = Tour(
            name=name,
            type=TourType.CULTURAL,
            status=status,
            price=price,
            max_guests=max_guests,
            guests_booked=0,
            start_date=start,
            end_date=start + timedelta(days=3),
            duration=3,
            location="Cape Coast",
        )
        db.add(tour)
        db.commit()
        db.refresh(tour)
        return tour

    return _make


@pytest.fixture()
def make_room(db, make_destination):
    def _make(price=80.0, capacity=2, destination=None):
        destination = destination or make_destination()
        hotel = Hotel(
            destination_id=destination.id,
            name=f"Labadi Beach Hotel {destination.id}",
            address="1 La Road, Accra",
            city="Accra",
            country="Ghana",
            star_rating=4,
            amenities=["wifi", "pool"],
        )
        db.add(hotel)
        db.flush()
        room = Room(hotel_id=hotel.id, room_type="Deluxe", price=price, capacity=capacity, amenities=[], available=True)
        db.add(room)
        db.commit()
        db.refresh(room)
        return room

    return _make


@pytest.fixture()
def make_flight(db, make_destination):
    def _make(seats=5, price=250.0, departure=None, origin=None, destination=None, number="KQ101"):
        origin = origin or make_destination("Kotoka", "Ghana", "Accra")
        destination = destination or make_destination("Jomo Kenyatta", "Kenya", "Nairobi")
        departure = departure or utcnow() + timedelta(days=10)
        flight = Flight(
            flight_number=number,
            airline="Kenya Airways",
            departure=departure,
            arrival=departure + timedelta(hours=6),
            duration=360,
            stops=0,
            origin_id=origin.id,
            destination_id=destination.id,
            price=price,
            flight_class=FlightClass.ECONOMY,
            seats_available=seats,
        )
        db.add(flight)
        db.commit()
        db.refresh(flight)
        return flight

    return _make


