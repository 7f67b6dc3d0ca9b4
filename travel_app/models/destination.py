from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from travel_app.db.session import Base


class Destination(Base):
    __tablename__ = "destinations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    country = Column(String(100), nullable=False)
    city = Column(String(100), nullable=True)
    photo = Column(String, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    hotels = relationship("Hotel", back_populates="destination")

    # A destination is both the origin and the destination of flights
    departing_flights = relationship(
        "Flight", foreign_keys="Flight.origin_id", back_populates="origin"
    )
    arriving_flights = relationship(
        "Flight", foreign_keys="Flight.destination_id", back_populates="destination"
    )
