from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from travel_app.db.session import Base
from travel_app.models.enums import TourStatus, TourType


class Tour(Base):
    __tablename__ = "tours"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Enum(TourType, name="tourtype"), nullable=False)
    status = Column(Enum(TourStatus, name="tourstatus"), nullable=False, default=TourStatus.UPCOMING)

    price = Column(Float, nullable=False)
    max_guests = Column(Integer, nullable=False)
    guests_booked = Column(Integer, nullable=False, default=0)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # days, derived from start/end
    location = Column(String(255), nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    bookings = relationship("Booking", back_populates="tour")
    itineraries = relationship(
        "TourItinerary",
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by="TourItinerary.day",
    )
    inclusions = relationship("TourInclusion", back_populates="tour", cascade="all, delete-orphan")
    exclusions = relationship("TourExclusion", back_populates="tour", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("guests_booked >= 0", name="ck_tour_guests_non_negative"),
        CheckConstraint("guests_booked <= max_guests", name="ck_tour_guests_capacity"),
        CheckConstraint("start_date < end_date", name="ck_tour_dates"),
    )

    @property
    def available_slots(self):
        return self.max_guests - (self.guests_booked or 0)


class TourItinerary(Base):
    __tablename__ = "tour_itineraries"

    id = Column(Integer, primary_key=True, index=True)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    day = Column(Integer, nullable=False)
    title = Column(String(100), nullable=False)
    activities = Column(Text, nullable=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tour = relationship("Tour", back_populates="itineraries")

    __table_args__ = (UniqueConstraint("tour_id", "day", name="uq_tour_itinerary_day"),)


class TourInclusion(Base):
    __tablename__ = "tour_inclusions"

    id = Column(Integer, primary_key=True, index=True)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String(255), nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tour = relationship("Tour", back_populates="inclusions")


class TourExclusion(Base):
    __tablename__ = "tour_exclusions"

    id = Column(Integer, primary_key=True, index=True)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String(255), nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tour = relationship("Tour", back_populates="exclusions")
