from datetime import datetime

from travel_app.models.enums import BookingStatus, PaymentMethod, PaymentStatus
from travel_app.schemas.common import CamelModel


class PaymentCreate(CamelModel):
    booking_id: int | None = None
    payment_method: PaymentMethod | None = None


class PaymentStatusUpdate(CamelModel):
    status: PaymentStatus | None = None
    reason: str | None = None


class RefundRequest(CamelModel):
    reason: str | None = None


class PaymentInitOut(CamelModel):
    payment_id: int
    transaction_reference: str
    authorization_url: str | None = None
    status: PaymentStatus
    amount: float
    currency: str


class PaymentVerificationOut(CamelModel):
    payment_id: int
    transaction_reference: str
    payment_status: PaymentStatus
    booking_id: int
    booking_status: BookingStatus
    amount: float
    currency: str
    payment_date: datetime | None = None


class PaymentUser(CamelModel):
    id: int
    name: str
    email: str


class PaymentOut(CamelModel):
    id: int
    booking_id: int
    user_id: int
    amount: float
    currency: str
    payment_method: PaymentMethod
    status: PaymentStatus
    transaction_reference: str
    authorization_url: str | None = None
    payment_date: datetime | None = None
    refund_reason: str | None = None
    user: PaymentUser | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
