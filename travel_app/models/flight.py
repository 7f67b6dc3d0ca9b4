from sqlalchemy import CheckConstraint, Column, DateTime, Enum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from travel_app.db.session import Base
from travel_app.models.enums import FlightClass


class Flight(Base):
    __tablename__ = "flights"

    id = Column(Integer, primary_key=True, index=True)
    flight_number = Column(String(10), nullable=False, index=True)
    airline = Column(String(100), nullable=False)

    departure = Column(DateTime, nullable=False)
    arrival = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    stops = Column(Integer, nullable=False, default=0)

    origin_id = Column(Integer, ForeignKey("destinations.id"), nullable=False, index=True)
    destination_id = Column(Integer, ForeignKey("destinations.id"), nullable=False, index=True)

    price = Column(Float, nullable=False)
    flight_class = Column(Enum(FlightClass, name="flightclass"), nullable=False, default=FlightClass.ECONOMY)
    seats_available = Column(Integer, nullable=False, default=0)
    photo = Column(String, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    origin = relationship("Destination", foreign_keys=[origin_id], back_populates="departing_flights")
    destination = relationship("Destination", foreign_keys=[destination_id], back_populates="arriving_flights")
    bookings = relationship("Booking", back_populates="flight")

    __table_args__ = (
        CheckConstraint("seats_available >= 0", name="ck_flight_seats_non_negative"),
        CheckConstraint("departure < arrival", name="ck_flight_schedule"),
    )
