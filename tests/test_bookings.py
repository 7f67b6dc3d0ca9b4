from datetime import timedelta

import pytest

from conftest import TestingSessionLocal
from travel_app.core.errors import InvalidStateTransitionError
from travel_app.models.booking import Booking
from travel_app.models.enums import BookingStatus, BookingType, PaymentMethod, PaymentStatus, TourStatus
from travel_app.models.payment import Payment
from travel_app.services.booking_service import apply_transition
from travel_app.utils.dates import utcnow


def book(client, headers, **body):
    return client.post("/bookings/", json=body, headers=headers)


def set_status(client, headers, booking_id, status):
    return client.put(f"/bookings/{booking_id}", json={"status": status}, headers=headers)


# ---------- EXACTLY ONE TARGET ----------
@pytest.mark.parametrize(
    "body",
    [
        {"quantity": 1},
        {"tourId": 1, "roomId": 1},
        {"tourId": 1, "roomId": 1, "flightId": 1},
    ],
)
def test_booking_needs_exactly_one_target(client, db, customer_headers, body):
    response = book(client, customer_headers, **body)

    assert response.status_code == 400
    assert response.json()["message"] == "Exactly one of tourId, roomId or flightId must be provided"
    assert db.query(Booking).count() == 0


def test_booking_unknown_target(client, customer_headers):
    response = book(client, customer_headers, tourId=999)

    assert response.status_code == 404
    assert response.json() == {"message": "Tour not found"}


def test_quantity_is_validated(client, customer_headers, make_tour):
    tour = make_tour()

    response = book(client, customer_headers, tourId=tour.id, quantity=0)

    assert response.status_code == 422
    assert response.json()["errors"] == {"quantity": "Quantity must be between 1 and 100"}


# ---------- TOUR CAPACITY ----------
def test_tour_capacity_walkthrough(client, db, customer_headers, admin_headers, make_tour):
    tour = make_tour(max_guests=2, price=120)

    first = book(client, customer_headers, tourId=tour.id, quantity=1)
    assert first.status_code == 201
    assert first.json()["data"]["totalPrice"] == 120
    assert first.json()["data"]["status"] == "PENDING"

    too_many = book(client, customer_headers, tourId=tour.id, quantity=2)
    assert too_many.status_code == 409
    db.refresh(tour)
    assert tour.guests_booked == 1

    second = book(client, customer_headers, tourId=tour.id, quantity=1)
    assert second.status_code == 201
    db.refresh(tour)
    assert tour.guests_booked == 2

    assert book(client, customer_headers, tourId=tour.id, quantity=1).status_code == 409

    cancelled = set_status(client, admin_headers, first.json()["data"]["id"], "CANCELLED")
    assert cancelled.status_code == 200
    db.refresh(tour)
    assert tour.guests_booked == 1

    assert book(client, customer_headers, tourId=tour.id, quantity=1).status_code == 201
    db.refresh(tour)
    assert tour.guests_booked == 2


def test_finished_tour_cannot_be_booked(client, customer_headers, make_tour):
    tour = make_tour(status=TourStatus.COMPLETED)
    assert book(client, customer_headers, tourId=tour.id).status_code == 409


# ---------- ROOMS / FLIGHTS ----------
def test_room_is_held_by_an_active_booking(client, db, customer_headers, other_headers, admin_headers, make_room):
    room = make_room(price=80)

    first = book(client, customer_headers, roomId=room.id, quantity=3)
    assert first.status_code == 201
    assert first.json()["data"]["totalPrice"] == 240
    assert first.json()["data"]["item"]["name"].endswith("- Deluxe")

    assert book(client, other_headers, roomId=room.id).status_code == 409

    set_status(client, admin_headers, first.json()["data"]["id"], "CANCELLED")
    db.refresh(room)
    assert room.available is True


def test_completed_stay_frees_the_room(client, db, customer_headers, other_headers, admin_headers, make_room):
    room = make_room(price=80)
    booking_id = book(client, customer_headers, roomId=room.id).json()["data"]["id"]

    payment = client.post(
        "/payments/", json={"bookingId": booking_id, "paymentMethod": "DEBIT_CARD"}, headers=customer_headers
    ).json()["data"]
    verified = client.get("/payments/callback", params={"reference": payment["transactionReference"]}).json()["data"]
    assert verified["bookingStatus"] == "CONFIRMED"
    db.refresh(room)
    assert room.available is False

    assert set_status(client, admin_headers, booking_id, "COMPLETED").status_code == 200
    db.refresh(room)
    assert room.available is True
    assert book(client, other_headers, roomId=room.id).status_code == 201


def test_flight_seats(client, db, customer_headers, admin_headers, make_flight):
    flight = make_flight(seats=3, price=250)

    response = book(client, customer_headers, flightId=flight.id, quantity=2)
    assert response.status_code == 201
    assert response.json()["data"]["item"]["description"] == "Kotoka to Jomo Kenyatta"
    db.refresh(flight)
    assert flight.seats_available == 1

    assert book(client, customer_headers, flightId=flight.id, quantity=2).status_code == 409

    client.delete(f"/bookings/{response.json()['data']['id']}", headers=admin_headers)
    db.refresh(flight)
    assert flight.seats_available == 3


def test_departed_flight_cannot_be_booked(client, customer_headers, make_flight):
    flight = make_flight(departure=utcnow() - timedelta(hours=1))
    response = book(client, customer_headers, flightId=flight.id)

    assert response.status_code == 409
    assert response.json() == {"message": "Flight has already departed"}


# ---------- OWNERSHIP ----------
def test_customer_books_only_for_self(client, customer_headers, other_customer, make_tour):
    tour = make_tour()
    response = book(client, customer_headers, tourId=tour.id, userId=other_customer.id)
    assert response.status_code == 403


def test_staff_books_on_behalf_of_customer(client, agent_headers, customer, make_tour):
    tour = make_tour()
    response = book(client, agent_headers, tourId=tour.id, userId=customer.id)

    assert response.status_code == 201
    assert response.json()["data"]["user"]["email"] == customer.email


def test_customers_see_only_their_bookings(client, customer_headers, other_headers, agent_headers, make_tour):
    tour = make_tour()
    mine = book(client, customer_headers, tourId=tour.id).json()["data"]
    book(client, other_headers, tourId=tour.id)

    listed = client.get("/bookings/", headers=customer_headers).json()
    assert [b["id"] for b in listed["data"]] == [mine["id"]]
    assert listed["meta"]["total"] == 1

    assert client.get(f"/bookings/{mine['id']}", headers=other_headers).status_code == 403
    assert client.get("/bookings/", headers=agent_headers).json()["meta"]["total"] == 2


# ---------- TRANSITIONS ----------
def test_booking_transitions(client, db, customer_headers, admin_headers, make_tour):
    tour = make_tour()
    booking_id = book(client, customer_headers, tourId=tour.id).json()["data"]["id"]

    assert set_status(client, customer_headers, booking_id, "CONFIRMED").status_code == 403

    skip = set_status(client, admin_headers, booking_id, "COMPLETED")
    assert skip.status_code == 409
    assert skip.json()["message"] == "Cannot change booking status from PENDING to COMPLETED"

    assert set_status(client, admin_headers, booking_id, "CONFIRMED").status_code == 200

    unpaid = set_status(client, admin_headers, booking_id, "COMPLETED")
    assert unpaid.status_code == 409

    db.add(
        Payment(
            booking_id=booking_id,
            user_id=db.get(Booking, booking_id).user_id,
            amount=tour.price,
            currency="GHS",
            payment_method=PaymentMethod.CREDIT_CARD,
            status=PaymentStatus.COMPLETED,
            transaction_reference=f"booking_{booking_id}_manual",
        )
    )
    db.commit()

    done = set_status(client, admin_headers, booking_id, "COMPLETED")
    assert done.status_code == 200
    assert done.json()["data"]["status"] == "COMPLETED"
    db.refresh(tour)
    assert tour.guests_booked == 1

    assert set_status(client, admin_headers, booking_id, "CANCELLED").status_code == 409


def test_stale_transition_is_not_applied(db, customer, make_tour):
    tour = make_tour(max_guests=5)
    tour.guests_booked = 1
    booking = Booking(
        user_id=customer.id,
        type=BookingType.TOUR,
        tour_id=tour.id,
        quantity=1,
        status=BookingStatus.PENDING,
        total_price=tour.price,
        booking_date=utcnow(),
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)

    # A second request cancels the booking after we loaded it
    other = TestingSessionLocal()
    fresh = other.get(Booking, booking.id)
    assert apply_transition(other, fresh, BookingStatus.CANCELLED)
    other.commit()
    other.close()

    assert booking.status == BookingStatus.PENDING
    assert apply_transition(db, booking, BookingStatus.CONFIRMED) is False
    db.rollback()

    db.expire_all()
    assert db.get(Booking, booking.id).status == BookingStatus.CANCELLED
    assert tour.guests_booked == 0


def test_transition_table_is_enforced(db, customer, make_tour):
    tour = make_tour()
    booking = Booking(
        user_id=customer.id,
        type=BookingType.TOUR,
        tour_id=tour.id,
        quantity=1,
        status=BookingStatus.CANCELLED,
        total_price=tour.price,
        booking_date=utcnow(),
    )
    db.add(booking)
    db.commit()

    with pytest.raises(InvalidStateTransitionError):
        apply_transition(db, booking, BookingStatus.CONFIRMED)


# ---------- DELETE ----------
def test_paid_booking_cannot_be_deleted(client, db, customer, admin_headers, make_tour):
    tour = make_tour()
    booking = Booking(
        user_id=customer.id,
        type=BookingType.TOUR,
        tour_id=tour.id,
        quantity=1,
        status=BookingStatus.CONFIRMED,
        total_price=tour.price,
        booking_date=utcnow(),
    )
    db.add(booking)
    db.flush()
    db.add(
        Payment(
            booking_id=booking.id,
            user_id=customer.id,
            amount=tour.price,
            currency="GHS",
            payment_method=PaymentMethod.MOBILE_MONEY,
            status=PaymentStatus.COMPLETED,
            transaction_reference=f"booking_{booking.id}_paid",
        )
    )
    db.commit()

    assert client.delete(f"/bookings/{booking.id}", headers=admin_headers).status_code == 409
    assert client.delete("/bookings/", headers=admin_headers).status_code == 409
    assert db.query(Booking).count() == 1


def test_bulk_delete_by_status_releases_capacity(client, db, customer_headers, admin_headers, agent_headers, make_tour):
    tour = make_tour(max_guests=5)
    kept = book(client, customer_headers, tourId=tour.id, quantity=1).json()["data"]
    dropped = book(client, customer_headers, tourId=tour.id, quantity=2).json()["data"]
    set_status(client, admin_headers, kept["id"], "CONFIRMED")

    assert client.delete("/bookings/", headers=agent_headers).status_code == 403

    response = client.delete("/bookings/", params={"status": "PENDING"}, headers=admin_headers)

    assert response.json()["data"] == {"count": 1}
    assert [b.id for b in db.query(Booking).all()] == [kept["id"]]
    db.refresh(tour)
    assert tour.guests_booked == 1
    assert dropped["id"] != kept["id"]
