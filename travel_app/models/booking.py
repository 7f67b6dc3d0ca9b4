from sqlalchemy import CheckConstraint, Column, DateTime, Enum, Float, ForeignKey, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from travel_app.db.session import Base
from travel_app.models.enums import BookingStatus, BookingType
from travel_app.utils.dates import utcnow


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Tagged union: `type` names which one of the three references is set
    type = Column(Enum(BookingType, name="bookingtype"), nullable=False)
    tour_id = Column(Integer, ForeignKey("tours.id"), nullable=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True, index=True)
    flight_id = Column(Integer, ForeignKey("flights.id"), nullable=True, index=True)

    # guests (tour), nights (room) or seats (flight)
    quantity = Column(Integer, nullable=False, default=1)

    status = Column(Enum(BookingStatus, name="bookingstatus"), nullable=False, default=BookingStatus.PENDING)
    total_price = Column(Float, nullable=False)
    booking_date = Column(DateTime, nullable=False, default=utcnow, index=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="bookings")
    tour = relationship("Tour", back_populates="bookings")
    room = relationship("Room", back_populates="bookings")
    flight = relationship("Flight", back_populates="bookings")
    payments = relationship("Payment", back_populates="booking", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_booking_quantity"),
        CheckConstraint(
            "(type = 'TOUR' AND tour_id IS NOT NULL AND room_id IS NULL AND flight_id IS NULL)"
            " OR (type = 'ROOM' AND room_id IS NOT NULL AND tour_id IS NULL AND flight_id IS NULL)"
            " OR (type = 'FLIGHT' AND flight_id IS NOT NULL AND tour_id IS NULL AND room_id IS NULL)",
            name="ck_booking_single_target",
        ),
    )

    @property
    def target_id(self):
        return {
            BookingType.TOUR: self.tour_id,
            BookingType.ROOM: self.room_id,
            BookingType.FLIGHT: self.flight_id,
        }[self.type]

    @property
    def item(self):
        """Short summary of whatever was booked, for listings and receipts."""
        if self.type == BookingType.TOUR and self.tour:
            return {"id": self.tour.id, "name": self.tour.name, "description": self.tour.description, "type": self.type}
        if self.type == BookingType.ROOM and self.room:
            hotel = self.room.hotel
            name = f"{hotel.name} - {self.room.room_type}" if hotel else self.room.room_type
            return {"id": self.room.id, "name": name, "description": self.room.description, "type": self.type}
        if self.type == BookingType.FLIGHT and self.flight:
            flight = self.flight
            route = f"{flight.origin.name} to {flight.destination.name}" if flight.origin and flight.destination else None
            return {"id": flight.id, "name": f"{flight.airline} {flight.flight_number}", "description": route, "type": self.type}
        return None
