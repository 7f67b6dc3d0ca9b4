from travel_app.models.booking import Booking
from travel_app.models.enums import BookingStatus, BookingType
from travel_app.models.user import User
from travel_app.utils.dates import utcnow


def test_only_admin_lists_users(client, admin, customer, admin_headers, customer_headers, agent_headers):
    assert client.get("/users/", headers=customer_headers).status_code == 403
    assert client.get("/users/", headers=agent_headers).status_code == 403

    response = client.get("/users/", params={"role": "CUSTOMER"}, headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert [u["email"] for u in body["data"]] == ["customer@example.com"]
    assert body["meta"] == {"total": 1, "page": 1, "limit": 10, "totalPages": 1}


def test_forbidden_message(client, customer_headers):
    response = client.get("/users/", headers=customer_headers)
    assert response.json() == {"message": "Only ADMIN can access this resource"}


def test_user_updates_own_profile(client, customer, customer_headers):
    response = client.put(
        f"/users/{customer.id}",
        data={"name": "Esi Updated", "address": "12 Oxford Street"},
        headers=customer_headers,
    )

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Esi Updated"
    assert response.json()["data"]["address"] == "12 Oxford Street"


def test_user_cannot_update_someone_else(client, customer, other_headers):
    response = client.put(f"/users/{customer.id}", data={"name": "Hacker"}, headers=other_headers)
    assert response.status_code == 403


def test_only_admin_changes_roles(client, db, customer, customer_headers, admin_headers):
    denied = client.put(f"/users/{customer.id}", data={"role": "ADMIN"}, headers=customer_headers)
    assert denied.status_code == 403

    allowed = client.put(f"/users/{customer.id}", data={"role": "AGENT"}, headers=admin_headers)
    assert allowed.status_code == 200
    assert allowed.json()["data"]["role"] == "AGENT"


def test_update_requires_a_field(client, customer, customer_headers):
    response = client.put(f"/users/{customer.id}", data={}, headers=customer_headers)
    assert response.status_code == 400


def test_email_change_is_checked_for_uniqueness(client, customer, other_customer, customer_headers):
    response = client.put(f"/users/{customer.id}", data={"email": "OTHER@example.com"}, headers=customer_headers)

    assert response.status_code == 422
    assert response.json()["errors"] == {"email": "Email is already registered"}


def test_user_with_bookings_cannot_be_deleted(client, db, customer, admin_headers, make_tour):
    tour = make_tour()
    db.add(
        Booking(
            user_id=customer.id,
            type=BookingType.TOUR,
            tour_id=tour.id,
            quantity=1,
            status=BookingStatus.PENDING,
            total_price=tour.price,
            booking_date=utcnow(),
        )
    )
    db.commit()

    response = client.delete(f"/users/{customer.id}", headers=admin_headers)

    assert response.status_code == 409


def test_bulk_delete_keeps_the_caller(client, db, admin, customer, other_customer, admin_headers):
    response = client.delete("/users/", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"] == {"count": 2}
    assert [u.email for u in db.query(User).all()] == ["admin@example.com"]


def test_admin_cannot_delete_self(client, admin, admin_headers):
    assert client.delete(f"/users/{admin.id}", headers=admin_headers).status_code == 409
