from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from travel_app.db.session import Base
from travel_app.models.enums import PaymentMethod, PaymentStatus


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        # At most one open (pending or paid) payment per booking
        Index(
            "uq_payments_booking_open",
            "booking_id",
            unique=True,
            sqlite_where=text("status IN ('PENDING', 'COMPLETED')"),
            postgresql_where=text("status IN ('PENDING', 'COMPLETED')"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="GHS")
    payment_method = Column(Enum(PaymentMethod, name="paymentmethod"), nullable=False)
    status = Column(Enum(PaymentStatus, name="paymentstatus"), nullable=False, default=PaymentStatus.PENDING)

    # Gateway correlation id, used to reconcile callbacks
    transaction_reference = Column(String(100), unique=True, index=True, nullable=False)
    authorization_url = Column(String, nullable=True)

    payment_date = Column(DateTime, nullable=True)
    refund_reason = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="payments")
    user = relationship("User", back_populates="payments")
