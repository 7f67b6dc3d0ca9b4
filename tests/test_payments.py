import json

import pytest
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from conftest import TestingSessionLocal, sign
from travel_app.core.context import SessionContext
from travel_app.models.booking import Booking
from travel_app.models.enums import BookingStatus, PaymentMethod, PaymentStatus
from travel_app.models.payment import Payment
from travel_app.schemas.payment import PaymentCreate
from travel_app.services.payment_service import DUPLICATE_REFUND_REASON, create_payment, delete_payment, reconcile
from travel_app.services.paystack import FAILED, PENDING, SUCCESS


@pytest.fixture()
def pending_booking(client, customer_headers, make_tour):
    tour = make_tour(max_guests=4, price=150)
    response = client.post("/bookings/", json={"tourId": tour.id, "quantity": 2}, headers=customer_headers)
    return response.json()["data"]


def pay(client, headers, booking_id, method="MOBILE_MONEY"):
    return client.post("/payments/", json={"bookingId": booking_id, "paymentMethod": method}, headers=headers)


def paid(client, gateway, headers, booking_id):
    reference = pay(client, headers, booking_id).json()["data"]["transactionReference"]
    client.get("/payments/callback", params={"reference": reference})
    return reference


def context_for(user):
    return SessionContext(user_id=user.id, email=user.email, name=user.name, role=user.role)


# ---------- INITIALIZE ----------
def test_mobile_money_payment_flow(client, db, gateway, customer_headers, pending_booking):
    booking_id = pending_booking["id"]

    created = pay(client, customer_headers, booking_id)
    assert created.status_code == 201
    data = created.json()["data"]
    reference = data["transactionReference"]
    assert reference.startswith(f"booking_{booking_id}_")
    assert data["status"] == "PENDING"
    assert data["amount"] == 300
    assert data["currency"] == "GHS"
    assert data["authorizationUrl"].endswith(reference)
    assert gateway.initialized[reference]["channels"] == ["mobile_money"]
    assert gateway.initialized[reference]["email"] == "customer@example.com"

    again = pay(client, customer_headers, booking_id)
    assert again.status_code == 200
    assert again.json()["message"] == "A pending payment already exists for this booking"
    assert again.json()["data"]["paymentId"] == data["paymentId"]
    assert len(gateway.initialized) == 1

    callback = client.get("/payments/callback", params={"trxref": reference})
    assert callback.status_code == 200
    verified = callback.json()["data"]
    assert verified["paymentStatus"] == "COMPLETED"
    assert verified["bookingStatus"] == "CONFIRMED"
    assert verified["paymentDate"]

    repeat = client.get("/payments/callback", params={"reference": reference})
    assert repeat.json()["data"]["paymentStatus"] == "COMPLETED"
    assert gateway.verify_calls == [reference]
    assert db.query(Payment).count() == 1


def test_card_payment_uses_card_channel(client, gateway, customer_headers, pending_booking):
    reference = pay(client, customer_headers, pending_booking["id"], "CREDIT_CARD").json()["data"]["transactionReference"]
    assert gateway.initialized[reference]["channels"] == ["card"]


def test_payment_validation(client, customer_headers):
    response = client.post("/payments/", json={}, headers=customer_headers)

    assert response.status_code == 422
    assert set(response.json()["errors"]) == {"bookingId", "paymentMethod"}


def test_gateway_failure_persists_nothing(client, db, gateway, customer_headers, pending_booking):
    gateway.fail_initialize = True

    response = pay(client, customer_headers, pending_booking["id"])

    assert response.status_code == 502
    assert response.json() == {"message": "Payment gateway timed out, please retry"}
    assert db.query(Payment).count() == 0


def test_only_pending_bookings_are_paid(client, customer_headers, admin_headers, pending_booking):
    client.put(f"/bookings/{pending_booking['id']}", json={"status": "CANCELLED"}, headers=admin_headers)

    assert pay(client, customer_headers, pending_booking["id"]).status_code == 409


def test_customer_cannot_pay_for_someone_else(client, other_headers, pending_booking):
    assert pay(client, other_headers, pending_booking["id"]).status_code == 403


def test_concurrent_initialization_keeps_one_open_payment(client, db, gateway, customer, customer_headers, pending_booking):
    data = PaymentCreate(booking_id=pending_booking["id"], payment_method=PaymentMethod.MOBILE_MONEY)

    # A second request for the same booking stores its payment while ours waits on the gateway
    def racing_request():
        other = TestingSessionLocal()
        try:
            create_payment(other, context_for(customer), data, gateway)
        finally:
            other.close()

    gateway.on_initialize = racing_request
    response = pay(client, customer_headers, pending_booking["id"])

    assert response.status_code == 200
    assert len(gateway.initialized) == 2
    stored = db.query(Payment).one()
    assert response.json()["data"]["paymentId"] == stored.id

    for reference in gateway.initialized:
        client.get("/payments/callback", params={"reference": reference})

    db.expire_all()
    assert [p.status for p in db.query(Payment).all()] == [PaymentStatus.COMPLETED]
    assert gateway.verify_calls == [stored.transaction_reference]


# ---------- CALLBACK OUTCOMES ----------
def test_failed_gateway_outcome(client, gateway, customer_headers, pending_booking):
    reference = pay(client, customer_headers, pending_booking["id"]).json()["data"]["transactionReference"]
    gateway.set_outcome(reference, FAILED)

    verified = client.get("/payments/callback", params={"reference": reference}).json()["data"]

    assert verified["paymentStatus"] == "FAILED"
    assert verified["bookingStatus"] == "PENDING"


def test_amount_mismatch_fails_the_payment(client, gateway, customer_headers, pending_booking):
    reference = pay(client, customer_headers, pending_booking["id"]).json()["data"]["transactionReference"]
    gateway.set_outcome(reference, SUCCESS, amount=1.0)

    verified = client.get("/payments/callback", params={"reference": reference}).json()["data"]

    assert verified["paymentStatus"] == "FAILED"
    assert verified["bookingStatus"] == "PENDING"


def test_gateway_still_pending_changes_nothing(client, gateway, customer_headers, pending_booking):
    reference = pay(client, customer_headers, pending_booking["id"]).json()["data"]["transactionReference"]
    gateway.set_outcome(reference, PENDING)

    verified = client.get("/payments/callback", params={"reference": reference}).json()["data"]

    assert verified["paymentStatus"] == "PENDING"
    assert verified["paymentDate"] is None


def test_callback_for_unknown_reference(client):
    assert client.get("/payments/callback", params={"reference": "booking_1_nope"}).status_code == 404
    assert client.get("/payments/callback").status_code == 400


def test_callback_that_loses_the_race_reports_the_winner(client, db, gateway, customer_headers, pending_booking):
    reference = pay(client, customer_headers, pending_booking["id"]).json()["data"]["transactionReference"]
    payment = db.query(Payment).one()
    assert payment.status == PaymentStatus.PENDING
    verification = gateway.verify(reference)

    # Another callback for the same reference settles it after we loaded the row
    other = TestingSessionLocal()
    try:
        assert reconcile(other, other.get(Payment, payment.id), verification).status == PaymentStatus.COMPLETED
    finally:
        other.close()

    result = reconcile(db, payment, verification)

    assert result.status == PaymentStatus.COMPLETED
    db.expire_all()
    assert [p.status for p in db.query(Payment).all()] == [PaymentStatus.COMPLETED]
    booking = db.get(Booking, pending_booking["id"])
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.tour.guests_booked == 2


def test_second_successful_charge_is_failed_and_refunded(client, db, gateway, customer, customer_headers, pending_booking):
    # Rows written before the open-payment index existed can still pair two pending payments
    db.execute(text("DROP INDEX uq_payments_booking_open"))
    db.commit()

    first = pay(client, customer_headers, pending_booking["id"]).json()["data"]["transactionReference"]
    duplicate = Payment(
        booking_id=pending_booking["id"],
        user_id=customer.id,
        amount=300,
        currency="GHS",
        payment_method=PaymentMethod.MOBILE_MONEY,
        status=PaymentStatus.PENDING,
        transaction_reference=f"booking_{pending_booking['id']}_duplicate",
    )
    db.add(duplicate)
    db.commit()
    gateway.set_outcome(duplicate.transaction_reference, SUCCESS, amount=300)

    assert client.get("/payments/callback", params={"reference": first}).json()["data"]["paymentStatus"] == "COMPLETED"
    verified = client.get("/payments/callback", params={"reference": duplicate.transaction_reference}).json()["data"]

    assert verified["paymentStatus"] == "FAILED"
    assert verified["bookingStatus"] == "CONFIRMED"
    assert gateway.refunds == [(duplicate.transaction_reference, 300, DUPLICATE_REFUND_REASON)]
    db.expire_all()
    assert sorted(p.status.value for p in db.query(Payment).all()) == ["COMPLETED", "FAILED"]


# ---------- WEBHOOK ----------
def test_webhook_with_valid_signature(client, db, gateway, customer_headers, pending_booking):
    reference = pay(client, customer_headers, pending_booking["id"]).json()["data"]["transactionReference"]
    body = json.dumps({"event": "charge.success", "data": {"reference": reference}}).encode()

    response = client.post(
        "/payments/webhook",
        content=body,
        headers={"x-paystack-signature": sign(body), "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json()["data"] == {"event": "charge.success", "processed": True, "status": "COMPLETED"}
    db.expire_all()
    assert db.get(Booking, pending_booking["id"]).status == BookingStatus.CONFIRMED


def test_webhook_with_bad_signature(client, db, customer_headers, pending_booking):
    reference = pay(client, customer_headers, pending_booking["id"]).json()["data"]["transactionReference"]
    body = json.dumps({"event": "charge.success", "data": {"reference": reference}}).encode()

    response = client.post("/payments/webhook", content=body, headers={"x-paystack-signature": "forged"})

    assert response.status_code == 401
    assert db.query(Payment).one().status == PaymentStatus.PENDING


def test_webhook_ignores_other_events(client):
    body = json.dumps({"event": "transfer.success", "data": {}}).encode()

    response = client.post("/payments/webhook", content=body, headers={"x-paystack-signature": sign(body)})

    assert response.json()["data"] == {"event": "transfer.success", "processed": False}


def test_webhook_handler_runs_off_the_event_loop(client, monkeypatch):
    offloaded = []

    async def recording(func, *args):
        offloaded.append(func.__name__)
        return await run_in_threadpool(func, *args)

    monkeypatch.setattr("travel_app.api.routes.payments.run_in_threadpool", recording)
    body = json.dumps({"event": "transfer.success", "data": {}}).encode()

    response = client.post("/payments/webhook", content=body, headers={"x-paystack-signature": sign(body)})

    assert response.status_code == 200
    assert offloaded == ["handle_webhook"]


# ---------- ADMIN OVERRIDE / REFUND ----------
def test_status_override_follows_transition_table(client, customer_headers, admin_headers, pending_booking):
    payment_id = pay(client, customer_headers, pending_booking["id"]).json()["data"]["paymentId"]

    assert client.patch(f"/payments/{payment_id}", json={"status": "COMPLETED"}, headers=customer_headers).status_code == 403

    completed = client.patch(f"/payments/{payment_id}", json={"status": "COMPLETED"}, headers=admin_headers)
    assert completed.status_code == 200
    assert completed.json()["data"]["status"] == "COMPLETED"

    back = client.patch(f"/payments/{payment_id}", json={"status": "PENDING"}, headers=admin_headers)
    assert back.status_code == 409
    assert back.json()["message"] == "Cannot change payment status from COMPLETED to PENDING"

    booking = client.get(f"/bookings/{pending_booking['id']}", headers=customer_headers).json()["data"]
    assert booking["status"] == "CONFIRMED"


def test_refund_cancels_booking_and_releases_capacity(client, db, gateway, customer_headers, admin_headers, pending_booking):
    paid(client, gateway, customer_headers, pending_booking["id"])
    payment = db.query(Payment).one()

    response = client.patch(
        f"/payments/{payment.id}/refund", json={"reason": "Customer cancelled"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "REFUNDED"
    assert response.json()["data"]["refundReason"] == "Customer cancelled"
    assert gateway.refunds == [(payment.transaction_reference, 300, "Customer cancelled")]

    db.expire_all()
    booking = db.get(Booking, pending_booking["id"])
    assert booking.status == BookingStatus.CANCELLED
    assert booking.tour.guests_booked == 0


def test_refund_requires_completed_payment(client, gateway, customer_headers, admin_headers, pending_booking):
    payment_id = pay(client, customer_headers, pending_booking["id"]).json()["data"]["paymentId"]

    response = client.patch(f"/payments/{payment_id}/refund", json={}, headers=admin_headers)

    assert response.status_code == 409
    assert gateway.refunds == []


def test_failed_refund_leaves_payment_completed(client, db, gateway, customer_headers, admin_headers, pending_booking):
    paid(client, gateway, customer_headers, pending_booking["id"])
    payment = db.query(Payment).one()
    gateway.fail_refund = True

    response = client.patch(f"/payments/{payment.id}/refund", json={}, headers=admin_headers)

    assert response.status_code == 502
    db.expire_all()
    assert db.get(Payment, payment.id).status == PaymentStatus.COMPLETED


# ---------- READ / DELETE ----------
def test_payment_visibility(client, customer, customer_headers, other_headers, agent_headers, pending_booking):
    payment_id = pay(client, customer_headers, pending_booking["id"]).json()["data"]["paymentId"]

    assert client.get(f"/payments/{payment_id}", headers=other_headers).status_code == 403
    assert client.get(f"/payments/user/{customer.id}", headers=other_headers).status_code == 403
    assert client.get("/payments/", headers=other_headers).json()["meta"]["total"] == 0

    mine = client.get(f"/payments/user/{customer.id}", headers=customer_headers).json()
    assert [p["id"] for p in mine["data"]] == [payment_id]

    found = client.get("/payments/", params={"search": "customer@example"}, headers=agent_headers).json()
    assert found["meta"]["total"] == 1
    assert found["data"][0]["user"]["email"] == "customer@example.com"


def test_completed_payment_cannot_be_deleted(client, db, gateway, customer_headers, admin_headers, pending_booking):
    paid(client, gateway, customer_headers, pending_booking["id"])
    payment = db.query(Payment).one()

    assert client.delete(f"/payments/{payment.id}", headers=admin_headers).status_code == 409
    assert client.delete("/payments/", headers=admin_headers).status_code == 409
    assert db.query(Payment).count() == 1


def test_pending_payment_can_be_deleted(client, db, customer_headers, agent_headers, pending_booking):
    payment_id = pay(client, customer_headers, pending_booking["id"]).json()["data"]["paymentId"]

    assert client.delete(f"/payments/{payment_id}", headers=customer_headers).status_code == 403
    assert client.delete(f"/payments/{payment_id}", headers=agent_headers).status_code == 200
    assert db.query(Payment).count() == 0


def test_user_payments_route_with_filters(client, customer, other_customer, agent_headers, customer_headers, pending_booking):
    payment_id = pay(client, customer_headers, pending_booking["id"]).json()["data"]["paymentId"]

    listed = client.get(f"/payments/user/{customer.id}", params={"status": "PENDING"}, headers=agent_headers)
    assert listed.status_code == 200
    assert [p["id"] for p in listed.json()["data"]] == [payment_id]

    assert client.get(f"/payments/user/{customer.id}", params={"status": "COMPLETED"}, headers=agent_headers).json()["meta"]["total"] == 0
    assert client.get(f"/payments/user/{other_customer.id}", headers=agent_headers).json()["meta"]["total"] == 0
    assert client.get("/payments/user/999", headers=agent_headers).status_code == 404

    assert client.get("/payments/", params={"userId": customer.id}, headers=agent_headers).json()["meta"]["total"] == 1
    assert client.get("/payments/", params={"userId": other_customer.id}, headers=agent_headers).json()["meta"]["total"] == 0


def test_failed_delete_rolls_back(client, db, agent, customer_headers, pending_booking, monkeypatch):
    payment_id = pay(client, customer_headers, pending_booking["id"]).json()["data"]["paymentId"]
    session = TestingSessionLocal()

    def broken_commit():
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(session, "commit", broken_commit)
    try:
        with pytest.raises(SQLAlchemyError):
            delete_payment(session, context_for(agent), payment_id)

        assert not session.in_transaction()
        assert session.get(Payment, payment_id) is not None
    finally:
        session.close()

    assert db.query(Payment).count() == 1
