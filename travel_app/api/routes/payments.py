from fastapi import APIRouter, Depends, Header, Query, Request, Response
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import admin_only, get_current_session, get_db, staff_only
from travel_app.models.payment import Payment
from travel_app.schemas.common import envelope
from travel_app.schemas.filters import PaymentDeleteFilters, PaymentFilters, payment_delete_filters, payment_filters
from travel_app.schemas.payment import (
    PaymentCreate,
    PaymentInitOut,
    PaymentOut,
    PaymentStatusUpdate,
    PaymentVerificationOut,
    RefundRequest,
)
from travel_app.services import payment_service
from travel_app.services.paystack import PaystackGateway, get_payment_gateway

router = APIRouter(prefix="/payments", tags=["Payments"])


def verification_out(payment: Payment) -> PaymentVerificationOut:
    return PaymentVerificationOut(
        payment_id=payment.id,
        transaction_reference=payment.transaction_reference,
        payment_status=payment.status,
        booking_id=payment.booking_id,
        booking_status=payment.booking.status,
        amount=payment.amount,
        currency=payment.currency,
        payment_date=payment.payment_date,
    )


# =====================================================================
#                           INITIALIZE PAYMENT
# =====================================================================
@router.post("/", status_code=201)
def create_payment(
    body: PaymentCreate,
    response: Response,
    ctx: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
    gateway: PaystackGateway = Depends(get_payment_gateway),
):
    payment, created = payment_service.create_payment(db, ctx, body, gateway)

    data = PaymentInitOut(
        payment_id=payment.id,
        transaction_reference=payment.transaction_reference,
        authorization_url=payment.authorization_url,
        status=payment.status,
        amount=payment.amount,
        currency=payment.currency,
    )
    if not created:
        response.status_code = 200
        return envelope("A pending payment already exists for this booking", data)
    return envelope("Payment initialized successfully", data)


# =====================================================================
#                       GATEWAY CALLBACK / WEBHOOK
# =====================================================================
@router.get("/callback")
def payment_callback(
    reference: str | None = Query(None),
    trxref: str | None = Query(None),
    db: Session = Depends(get_db),
    gateway: PaystackGateway = Depends(get_payment_gateway),
):
    # Paystack redirects with both; they carry the same value
    payment = payment_service.handle_callback(db, reference or trxref, gateway)
    return envelope("Payment verified", verification_out(payment))


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    x_paystack_signature: str | None = Header(None),
    db: Session = Depends(get_db),
    gateway: PaystackGateway = Depends(get_payment_gateway),
):
    body = await request.body()
    result = await run_in_threadpool(payment_service.handle_webhook, db, body, x_paystack_signature, gateway)
    return envelope("Webhook received", result)


# =====================================================================
#                                 READ
# =====================================================================
@router.get("/")
def list_payments(
    filters: PaymentFilters = Depends(payment_filters),
    ctx: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    items, meta = payment_service.list_payments(db, ctx, filters)
    return envelope("Payments retrieved successfully", [PaymentOut.model_validate(p) for p in items], meta)


@router.get("/user/{user_id}")
def list_user_payments(
    user_id: int,
    filters: PaymentFilters = Depends(payment_filters),
    ctx: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    items, meta = payment_service.list_user_payments(db, ctx, user_id, filters)
    return envelope("Payments retrieved successfully", [PaymentOut.model_validate(p) for p in items], meta)


@router.get("/{payment_id}")
def get_payment(
    payment_id: int,
    ctx: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    payment = payment_service.get_payment(db, ctx, payment_id)
    return envelope("Payment retrieved successfully", PaymentOut.model_validate(payment))


# =====================================================================
#                       ADMIN OVERRIDE / REFUND
# =====================================================================
@router.patch("/{payment_id}")
def update_payment_status(
    payment_id: int,
    body: PaymentStatusUpdate,
    ctx: SessionContext = Depends(admin_only),
    db: Session = Depends(get_db),
    gateway: PaystackGateway = Depends(get_payment_gateway),
):
    payment = payment_service.update_payment_status(db, ctx, payment_id, body.status, gateway, body.reason)
    return envelope("Payment status updated successfully", PaymentOut.model_validate(payment))


@router.patch("/{payment_id}/refund")
def refund_payment(
    payment_id: int,
    body: RefundRequest,
    ctx: SessionContext = Depends(admin_only),
    db: Session = Depends(get_db),
    gateway: PaystackGateway = Depends(get_payment_gateway),
):
    payment = payment_service.refund_payment(db, ctx, payment_id, body.reason, gateway)
    return envelope("Payment refunded successfully", PaymentOut.model_validate(payment))


# =====================================================================
#                                DELETE
# =====================================================================
@router.delete("/{payment_id}")
def delete_payment(
    payment_id: int,
    ctx: SessionContext = Depends(staff_only),
    db: Session = Depends(get_db),
):
    payment_service.delete_payment(db, ctx, payment_id)
    return envelope("Payment deleted successfully")


@router.delete("/")
def delete_all_payments(
    filters: PaymentDeleteFilters = Depends(payment_delete_filters),
    ctx: SessionContext = Depends(admin_only),
    db: Session = Depends(get_db),
):
    count = payment_service.delete_all_payments(db, ctx, filters)
    return envelope("Payments deleted successfully", {"count": count})
