"""
Payment lifecycle against the Paystack gateway.

    PENDING --gateway success--> COMPLETED --admin refund--> REFUNDED
    PENDING --gateway failure--> FAILED

Every transition is a conditional UPDATE on the current status, so repeated or
concurrent callbacks for one reference apply the transition (and the booking
cascade) at most once. Gateway calls happen before anything is written: if
initialization fails no payment row exists, and if verification or refund
fails the stored state is untouched. The one exception is a duplicate charge
for an already paid booking, which is refunded after it is recorded as FAILED.
"""

import json
import uuid

from sqlalchemy import asc, desc, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from travel_app.core.context import SessionContext
from travel_app.core.errors import (
    ConflictError,
    ExternalServiceError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
    UnauthorizedError,
)
from travel_app.core.logging_config import admin_logger, payment_logger
from travel_app.models.booking import Booking
from travel_app.models.enums import (
    ACTIVE_BOOKING_STATUSES,
    PAYMENT_TRANSITIONS,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
)
from travel_app.models.payment import Payment
from travel_app.models.user import User
from travel_app.schemas.common import paginate
from travel_app.schemas.filters import PaymentDeleteFilters, PaymentFilters
from travel_app.schemas.payment import PaymentCreate
from travel_app.services.booking_service import apply_transition
from travel_app.services.paystack import PAYMENT_CURRENCY, GatewayVerification, PaystackGateway, channels_for
from travel_app.services.reporting_service import invalidate_dashboard_cache
from travel_app.utils.dates import start_of_day, utcnow
from travel_app.validation.entities import payment_rules, payment_status_rules, refund_rules
from travel_app.validation.rules import run_validation

SORT_COLUMNS = {
    "createdAt": Payment.created_at,
    "amount": Payment.amount,
    "status": Payment.status,
    "paymentDate": Payment.payment_date,
}

# Amounts travel through the gateway in minor units
AMOUNT_TOLERANCE = 0.01

DUPLICATE_REFUND_REASON = "Duplicate payment for an already paid booking"


def new_reference(booking_id: int) -> str:
    return f"booking_{booking_id}_{uuid.uuid4().hex}"


def _get_payment(db: Session, payment_id: int) -> Payment:
    payment = db.get(Payment, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


def _open_payment_after_conflict(db: Session, booking_id: int, reference: str):
    """A concurrent request stored its payment first; hand that one back."""
    winner = (
        db.query(Payment)
        .filter(
            Payment.booking_id == booking_id,
            Payment.status.in_([PaymentStatus.PENDING, PaymentStatus.COMPLETED]),
        )
        .first()
    )
    if not winner:
        raise ConflictError("A payment with this reference already exists")

    payment_logger.warning(
        f"Concurrent Payment Init | Booking={booking_id} | Dropped Ref={reference} | Kept Ref={winner.transaction_reference}"
    )
    if winner.status == PaymentStatus.COMPLETED:
        raise ConflictError("This booking has already been paid")
    return winner, False


# =====================================================================
#                           INITIALIZE PAYMENT
# =====================================================================
def create_payment(db: Session, ctx: SessionContext, data: PaymentCreate, gateway: PaystackGateway):
    """
    Start a gateway transaction for a pending booking.

    Returns ``(payment, created)``; ``created`` is False when an earlier
    pending payment for the booking is handed back instead.
    """
    run_validation(data.model_dump(), payment_rules())
    method = PaymentMethod(data.payment_method)

    # Row lock serializes initializations for one booking where the backend supports it
    booking = db.query(Booking).filter(Booking.id == data.booking_id).with_for_update().first()
    if not booking:
        raise NotFoundError("Booking not found")
    if not ctx.can_access(booking.user_id):
        raise ForbiddenError("You can only pay for your own bookings")

    payments = db.query(Payment).filter(Payment.booking_id == booking.id).all()
    if any(p.status == PaymentStatus.COMPLETED for p in payments):
        raise ConflictError("This booking has already been paid")
    if booking.status != BookingStatus.PENDING:
        raise ConflictError(f"Only pending bookings can be paid; this booking is {booking.status.value}")

    pending = next((p for p in payments if p.status == PaymentStatus.PENDING), None)
    if pending:
        payment_logger.info(f"Payment Reused | ID={pending.id} | Booking={booking.id} | Ref={pending.transaction_reference}")
        return pending, False

    booking_id = booking.id

    reference = new_reference(booking.id)
    init = gateway.initialize(
        email=booking.user.email,
        amount=booking.total_price,
        reference=reference,
        currency=PAYMENT_CURRENCY,
        channels=channels_for(method),
        metadata={"bookingId": booking.id, "userId": booking.user_id, "paymentMethod": method.value},
    )

    payment = Payment(
        booking_id=booking.id,
        user_id=booking.user_id,
        amount=booking.total_price,
        currency=PAYMENT_CURRENCY,
        payment_method=method,
        status=PaymentStatus.PENDING,
        transaction_reference=init.reference,
        authorization_url=init.authorization_url,
    )
    db.add(payment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return _open_payment_after_conflict(db, booking_id, init.reference)

    db.refresh(payment)
    invalidate_dashboard_cache()

    payment_logger.info(
        f"Payment Initialized | ID={payment.id} | Booking={booking.id} | {payment.amount} {payment.currency} "
        f"| Method={method.value} | Ref={payment.transaction_reference}"
    )
    return payment, True


# =====================================================================
#                        CALLBACK RECONCILIATION
# =====================================================================
def _confirm_booking(db: Session, booking: Booking):
    if booking.status != BookingStatus.PENDING:
        payment_logger.warning(
            f"Payment completed for booking {booking.id} in status {booking.status.value}; booking left unchanged"
        )
        return
    if not apply_transition(db, booking, BookingStatus.CONFIRMED):
        payment_logger.warning(f"Booking {booking.id} changed while confirming payment; booking left unchanged")


def _settled_elsewhere(db: Session, payment: Payment) -> bool:
    return (
        db.query(Payment.id)
        .filter(
            Payment.booking_id == payment.booking_id,
            Payment.id != payment.id,
            Payment.status == PaymentStatus.COMPLETED,
        )
        .first()
        is not None
    )


def _refund_duplicate(payment: Payment, verification: GatewayVerification, gateway: PaystackGateway | None):
    ref = payment.transaction_reference
    payment_logger.warning(f"Duplicate Charge | ID={payment.id} | Booking={payment.booking_id} | Ref={ref}")
    if gateway is None:
        payment_logger.error(f"Duplicate Charge Not Refunded | Ref={ref} | No gateway available")
        return
    try:
        gateway.refund(ref, verification.amount, DUPLICATE_REFUND_REASON)
    except ExternalServiceError as e:
        # The FAILED row keeps the reason so the charge can be refunded by hand
        payment_logger.error(f"Duplicate Charge Refund Failed | Ref={ref} | {e.message}")


def reconcile(
    db: Session,
    payment: Payment,
    verification: GatewayVerification,
    gateway: PaystackGateway | None = None,
) -> Payment:
    """
    Apply a gateway verification result to a PENDING payment.

    A successful charge for a booking that another payment already settled is
    stored as FAILED and handed back through ``gateway.refund``.
    """
    if not verification.succeeded and not verification.failed:
        payment_logger.info(f"Payment Still Pending | Ref={payment.transaction_reference} | Gateway={verification.raw_status}")
        return payment

    amount_matches = abs(verification.amount - payment.amount) < AMOUNT_TOLERANCE
    if verification.succeeded and not amount_matches:
        payment_logger.warning(
            f"Amount Mismatch | Ref={payment.transaction_reference} | Expected={payment.amount} | Paid={verification.amount}"
        )

    new_status = PaymentStatus.COMPLETED if verification.succeeded and amount_matches else PaymentStatus.FAILED
    duplicate = new_status == PaymentStatus.COMPLETED and _settled_elsewhere(db, payment)
    if duplicate:
        new_status = PaymentStatus.FAILED

    changes = {Payment.status: new_status}
    if new_status == PaymentStatus.COMPLETED:
        changes[Payment.payment_date] = utcnow()
    if duplicate:
        changes[Payment.refund_reason] = DUPLICATE_REFUND_REASON

    try:
        updated = (
            db.query(Payment)
            .filter(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
            .update(changes, synchronize_session=False)
        )
        if not updated:
            # Another callback got there first; report its outcome
            db.rollback()
            db.refresh(payment)
            return payment

        if new_status == PaymentStatus.COMPLETED:
            _confirm_booking(db, payment.booking)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payment)
    invalidate_dashboard_cache()

    if duplicate:
        _refund_duplicate(payment, verification, gateway)

    payment_logger.info(
        f"Payment {new_status.value.title()} | ID={payment.id} | Booking={payment.booking_id} | Ref={payment.transaction_reference}"
    )
    return payment


def handle_callback(db: Session, reference: str, gateway: PaystackGateway) -> Payment:
    if not reference:
        raise InvalidInputError("Payment reference is required", {"reference": "This field is required"})

    payment = db.query(Payment).filter(Payment.transaction_reference == reference).first()
    if not payment:
        raise NotFoundError("Payment not found for this reference")

    if payment.status != PaymentStatus.PENDING:
        payment_logger.info(f"Callback Ignored | Ref={reference} | Already {payment.status.value}")
        return payment

    verification = gateway.verify(reference)
    return reconcile(db, payment, verification, gateway)


def handle_webhook(db: Session, body: bytes, signature: str | None, gateway: PaystackGateway) -> dict:
    if not gateway.verify_signature(body, signature):
        payment_logger.warning("Webhook rejected | Invalid signature")
        raise UnauthorizedError("Invalid webhook signature")

    try:
        event = json.loads(body)
    except ValueError:
        raise InvalidInputError("Webhook body is not valid JSON")

    name = event.get("event")
    data = event.get("data") or {}
    reference = data.get("reference")

    if name != "charge.success" or not reference:
        payment_logger.info(f"Webhook Acknowledged | Event={name}")
        return {"event": name, "processed": False}

    payment = db.query(Payment).filter(Payment.transaction_reference == reference).first()
    if not payment:
        payment_logger.warning(f"Webhook for unknown reference | Ref={reference}")
        return {"event": name, "processed": False}

    payment = handle_callback(db, reference, gateway)
    return {"event": name, "processed": True, "status": payment.status.value}


# =====================================================================
#                       ADMIN OVERRIDE / REFUND
# =====================================================================
def update_payment_status(
    db: Session,
    ctx: SessionContext,
    payment_id: int,
    new_status,
    gateway: PaystackGateway,
    reason: str | None = None,
) -> Payment:
    run_validation({"status": new_status}, payment_status_rules())
    new_status = PaymentStatus(new_status)

    payment = _get_payment(db, payment_id)
    if new_status == PaymentStatus.REFUNDED:
        return refund_payment(db, ctx, payment_id, reason, gateway)

    current = payment.status
    if new_status not in PAYMENT_TRANSITIONS[current]:
        raise InvalidStateTransitionError(
            f"Cannot change payment status from {current.value} to {new_status.value}"
        )

    changes = {Payment.status: new_status}
    if new_status == PaymentStatus.COMPLETED:
        changes[Payment.payment_date] = utcnow()

    try:
        updated = (
            db.query(Payment)
            .filter(Payment.id == payment.id, Payment.status == current)
            .update(changes, synchronize_session=False)
        )
        if not updated:
            raise InvalidStateTransitionError("Payment status was changed by another request, reload and retry")

        if new_status == PaymentStatus.COMPLETED:
            _confirm_booking(db, payment.booking)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payment)
    invalidate_dashboard_cache()

    admin_logger.info(f"Payment Status Override | ID={payment.id} | {current.value} -> {new_status.value} | By={ctx.email}")
    return payment


def refund_payment(
    db: Session,
    ctx: SessionContext,
    payment_id: int,
    reason: str | None,
    gateway: PaystackGateway,
) -> Payment:
    run_validation({"reason": reason}, refund_rules())

    payment = _get_payment(db, payment_id)
    if payment.status != PaymentStatus.COMPLETED:
        raise InvalidStateTransitionError(
            f"Only completed payments can be refunded; this payment is {payment.status.value}"
        )

    booking = payment.booking
    if booking.status == BookingStatus.COMPLETED:
        raise ConflictError("Cannot refund a payment for a completed booking")

    gateway.refund(payment.transaction_reference, payment.amount, reason)

    try:
        updated = (
            db.query(Payment)
            .filter(Payment.id == payment.id, Payment.status == PaymentStatus.COMPLETED)
            .update({Payment.status: PaymentStatus.REFUNDED, Payment.refund_reason: reason}, synchronize_session=False)
        )
        if not updated:
            raise InvalidStateTransitionError("Payment was already refunded")

        if booking.status in ACTIVE_BOOKING_STATUSES:
            apply_transition(db, booking, BookingStatus.CANCELLED)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payment)
    invalidate_dashboard_cache()

    payment_logger.info(f"Payment Refunded | ID={payment.id} | Amount={payment.amount} | Reason={reason} | By={ctx.email}")
    return payment


# =====================================================================
#                                 READ
# =====================================================================
def get_payment(db: Session, ctx: SessionContext, payment_id: int) -> Payment:
    payment = (
        db.query(Payment)
        .options(joinedload(Payment.user))
        .filter(Payment.id == payment_id)
        .first()
    )
    if not payment:
        raise NotFoundError("Payment not found")
    if not ctx.can_access(payment.user_id):
        raise ForbiddenError("You can only view your own payments")
    return payment


def _filtered(db: Session, ctx: SessionContext, filters):
    query = db.query(Payment)

    user_id = filters.user_id if ctx.is_staff else ctx.user_id
    if user_id:
        query = query.filter(Payment.user_id == user_id)
    if filters.status:
        query = query.filter(Payment.status == filters.status)
    if filters.payment_method:
        query = query.filter(Payment.payment_method == filters.payment_method)
    return query


def list_payments(db: Session, ctx: SessionContext, filters: PaymentFilters):
    query = _filtered(db, ctx, filters).options(joinedload(Payment.user))

    if filters.search:
        term = f"%{filters.search.strip()}%"
        query = query.join(User, User.id == Payment.user_id).filter(
            or_(
                Payment.transaction_reference.ilike(term),
                User.name.ilike(term),
                User.email.ilike(term),
            )
        )

    order = asc if filters.sort_order == "asc" else desc
    query = query.order_by(order(SORT_COLUMNS[filters.sort_by]), order(Payment.id))

    return paginate(query, filters.page, filters.limit)


def list_user_payments(db: Session, ctx: SessionContext, user_id: int, filters: PaymentFilters):
    if not ctx.can_access(user_id):
        raise ForbiddenError("You can only view your own payments")
    if not db.get(User, user_id):
        raise NotFoundError("User not found")
    return list_payments(db, ctx, filters.model_copy(update={"user_id": user_id}))


# =====================================================================
#                                DELETE
# =====================================================================
def delete_payment(db: Session, ctx: SessionContext, payment_id: int):
    payment = _get_payment(db, payment_id)
    if payment.status == PaymentStatus.COMPLETED:
        raise ConflictError("Completed payments cannot be deleted; refund the payment instead")

    reference = payment.transaction_reference
    try:
        db.delete(payment)
        db.commit()
    except Exception:
        db.rollback()
        raise

    invalidate_dashboard_cache()
    admin_logger.info(f"Payment Deleted | ID={payment_id} | Ref={reference} | By={ctx.email}")


def delete_all_payments(db: Session, ctx: SessionContext, filters: PaymentDeleteFilters) -> int:
    query = _filtered(db, ctx, filters)
    if filters.before_date:
        query = query.filter(Payment.created_at < start_of_day(filters.before_date))

    payments = query.all()
    blocked = [p.id for p in payments if p.status == PaymentStatus.COMPLETED]
    if blocked:
        raise ConflictError(
            "Completed payments cannot be deleted; refund them instead",
            {"paymentIds": ", ".join(str(i) for i in blocked)},
        )

    try:
        for payment in payments:
            db.delete(payment)
        db.commit()
    except Exception:
        db.rollback()
        raise

    invalidate_dashboard_cache()
    admin_logger.warning(f"Bulk Payment Delete | Count={len(payments)} | By={ctx.email}")
    return len(payments)
